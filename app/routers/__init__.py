# app/routers/__init__.py
from . import auth, pricing, discounts

__all__ = ["auth", "pricing", "discounts"]
