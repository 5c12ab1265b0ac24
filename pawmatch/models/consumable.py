"""
pawmatch/models/consumable.py

Consumable inventory models.

A balance is split into a renewing "included" allotment (from Plus) and a
non-expiring "purchased" allotment. Included units are always spent first.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


# Reported balance for unlimited kinds
UNLIMITED_BALANCE = 999999


class ConsumableKind(str, Enum):
    BOOST = "boost"
    REWIND = "rewind"
    COMPLIMENT = "compliment"
    RESET_DISLIKES = "reset_dislikes"


class ConsumableBalance(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ConsumableKind
    balance: int = Field(ge=0)
    purchased_balance: int = Field(ge=0)
    included_remaining: int = Field(ge=0)
    included_total: int = Field(ge=0)
    unlimited: bool = False
    renews_at: Optional[datetime] = None
    renewal_period_days: Optional[int] = None
    renewal_period_months: Optional[int] = None


class ConsumeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    error: Optional[str] = None
    unlimited: bool = False
    from_included: int = 0
    from_purchased: int = 0


class PurchaseResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    error: Optional[str] = None
    kind: Optional[ConsumableKind] = None
    purchased_balance: Optional[int] = None
    duplicate: bool = False
