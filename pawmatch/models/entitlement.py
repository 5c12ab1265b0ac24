"""
pawmatch/models/entitlement.py

Entitlement tier and Plus subscription models.

Purchases arrive as already-authorized events; no pricing or payment
state lives here.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class PlanCode(str, Enum):
    FREE = "free"
    PLUS = "plus"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


class Entitlement(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    plan_code: PlanCode
    expires_at: Optional[datetime] = None


class Subscription(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    product_code: str
    status: SubscriptionStatus
    renews_every_months: int
    current_period_start: datetime
    current_period_end: datetime
    auto_renews: bool
    cancel_at_period_end: bool
    canceled_at: Optional[datetime] = None


class SubscriptionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    error: Optional[str] = None
    subscription: Optional[Subscription] = None
    entitlement: Optional[Entitlement] = None
