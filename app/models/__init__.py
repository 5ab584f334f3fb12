# app/models/__init__.py
from app.models.user_models import User
from app.models.activity_models import UserActivity
from app.models.discount_models import DiscountCode, DiscountCodeUsage
from app.models.loyalty_models import LoyaltyProgram, CustomerLoyalty, LoyaltyTransaction, LoyaltyTransactionType
from app.models.campaign_models import SeasonalCampaign
from app.models.volume_models import VolumeDiscountSchedule, VolumeDiscountTier
from app.models.rule_models import AutoDiscountRule
from app.models.approval_models import ApprovalPolicy, RoleDiscountLimit, DiscountApprovalRequest, ApprovalStatus
from app.models.proposal_models import FinalizedProposal
