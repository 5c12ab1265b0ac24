"""
pawmatch/models/chat.py

Compliment (chat request) result model.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict

from pawmatch.models.swipe import ConnectionEvent


class ChatRequestResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    error: Optional[str] = None
    conversation_id: Optional[str] = None
    cross_lane_pending: bool = False
    remaining_accepts: Optional[int] = None
    connection_event: Optional[ConnectionEvent] = None
