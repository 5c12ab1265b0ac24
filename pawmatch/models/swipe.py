"""
pawmatch/models/swipe.py

Swipe decisions, connection events and quota read models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from pawmatch.models.lane import Lane


class SwipeAction(str, Enum):
    PASS = "pass"
    REJECT = "reject"
    ACCEPT = "accept"


class ConnectionEventType(str, Enum):
    MUTUAL = "mutual"
    CROSS_LANE_CHOOSER = "cross_lane_chooser"


class ConnectionEvent(BaseModel):
    """Emitted when a new accept completes a same-lane or cross-lane mutual."""

    model_config = ConfigDict(frozen=True)

    type: ConnectionEventType
    other_user_id: str
    lane: Optional[Lane] = Field(default=None, description="Set for mutual events only")


class SwipeRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    viewer_id: str
    candidate_id: str
    lane: Lane
    action: SwipeAction
    created_at: datetime


class SwipeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    error: Optional[str] = None
    lane: Optional[Lane] = None
    remaining_accepts: Optional[int] = Field(default=None, description="None when the lane is unlimited")
    connection_event: Optional[ConnectionEvent] = None
    # Populated on daily_limit_reached
    limit: Optional[int] = None
    used: Optional[int] = None


class UndoPassResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    error: Optional[str] = None
    candidate_id: Optional[str] = None
    lane: Optional[Lane] = None


class QuotaStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    lane: Lane
    limit: Optional[int]
    used: int = Field(ge=0)
    remaining: Optional[int]
