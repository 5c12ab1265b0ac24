"""
pawmatch/api/chat.py

Compliment sends (a like plus a first message).
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from pawmatch.core.auth import get_current_user_id
from pawmatch.core.errors import error_from_result
from pawmatch.features.chat.service import send_chat_request

router = APIRouter(prefix="/v1/chat", tags=["chat"])


class ChatRequestIn(BaseModel):
    target_id: str = Field(..., min_length=1)
    lane: str
    body: str
    client_message_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("target_id", "client_message_id")
    @classmethod
    def _trim(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


@router.post("/requests")
def post_chat_request(body: ChatRequestIn, user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    result = send_chat_request(
        user_id,
        body.target_id,
        body.lane,
        body.body,
        body.client_message_id,
        metadata=body.metadata,
    )
    if not result.ok:
        raise error_from_result(result.error)
    return {"data": result.model_dump(mode="json")}
