# app/services/pricing_services/common.py
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from app.schemas.pricing_schemas import (
    DiscountCandidate,
    DiscountSource,
    DiscountType,
    TrailEntry,
    TrailOutcome,
)
from app.utils.decimal_utils import HUNDRED, ZERO, non_negative, quantize_money, to_decimal

RESOLVER_ERROR = "resolver-error"


def discount_amount(discount_type, value, base, max_amount=None) -> Decimal:
    """Absolute amount for a discount against `base`, never above base or the cap."""
    base = non_negative(base)
    value = non_negative(value)
    if DiscountType(discount_type) == DiscountType.PERCENT:
        amount = base * value / HUNDRED
    else:
        amount = min(value, base)
    cap = to_decimal(max_amount) if max_amount is not None else ZERO
    if cap > ZERO:
        amount = min(amount, cap)
    return quantize_money(amount)


@dataclass
class ResolverOutcome:
    """What one resolver found: a candidate, or the reason there is none."""
    source: DiscountSource
    candidate: Optional[DiscountCandidate] = None
    rejection: Optional[TrailEntry] = None
    notes: List[TrailEntry] = field(default_factory=list)

    @classmethod
    def found(cls, candidate: DiscountCandidate, notes: Optional[List[TrailEntry]] = None) -> "ResolverOutcome":
        return cls(source=candidate.source, candidate=candidate, notes=list(notes or []))

    @classmethod
    def rejected(cls, source: DiscountSource, reason: str, detail: str = "", name: str = None,
                 source_id: int = None, notes: Optional[List[TrailEntry]] = None) -> "ResolverOutcome":
        entry = TrailEntry(
            source=source,
            outcome=TrailOutcome.REJECTED,
            reason=reason,
            detail=detail,
            name=name,
            source_id=source_id,
        )
        return cls(source=source, rejection=entry, notes=list(notes or []))

    @classmethod
    def failed(cls, source: DiscountSource, detail: str) -> "ResolverOutcome":
        entry = TrailEntry(source=source, outcome=TrailOutcome.ERROR, reason=RESOLVER_ERROR, detail=detail)
        return cls(source=source, rejection=entry)


def superseded(candidate: DiscountCandidate, reason: str, detail: str) -> TrailEntry:
    return TrailEntry(
        source=candidate.source,
        outcome=TrailOutcome.SUPERSEDED,
        reason=reason,
        detail=detail,
        name=candidate.name,
        source_id=candidate.source_id,
    )
