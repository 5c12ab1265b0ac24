"""
pawmatch/models/crosslane.py

Cross-lane pending connection state.

A pair that accepted each other in different lanes sits in exactly one of two
states. The state is derived from the stored row and only changes through the
transition functions in features/crosslane/state.py.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union
from pydantic import BaseModel, ConfigDict

from pawmatch.models.lane import Lane, PairKey


class CrossLaneStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class HeldMessage(BaseModel):
    """First message sent while the pair was pending, replayed on resolution."""

    model_config = ConfigDict(frozen=True)

    sender_id: str
    body: str
    client_message_id: str
    lane: Optional[Lane] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class PendingState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: CrossLaneStatus = CrossLaneStatus.PENDING
    expires_at: datetime
    chooser_id: str


class ResolvedState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: CrossLaneStatus = CrossLaneStatus.RESOLVED
    lane: Lane
    resolved_by: Optional[str] = None  # None when resolved by the expiry sweep
    resolved_at: datetime


class CrossLaneConnection(BaseModel):
    model_config = ConfigDict(frozen=True)

    pair: PairKey
    pals_user_id: str
    match_user_id: str
    created_at: datetime
    state: Union[PendingState, ResolvedState]
    message: Optional[HeldMessage] = None

    @property
    def is_pending(self) -> bool:
        return isinstance(self.state, PendingState)


class ResolveResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    error: Optional[str] = None
    conversation_id: Optional[str] = None
    lane: Optional[Lane] = None
    resolved_lane: Optional[Lane] = None  # set with already_resolved


class AutoResolveResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    resolved: int = 0


class CrossLanePendingView(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    error: Optional[str] = None
    pals_user_id: Optional[str] = None
    match_user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_chooser: bool = False
    message: Optional[HeldMessage] = None
