"""
pawmatch/features/chat/service.py

Compliment send: an accept plus a first message, paid for with a compliment
credit instead of the daily accept quota.

Retries with the same client_message_id are no-ops: the credit is charged
only by the call that actually wrote the message (held on a pending
cross-lane row, or appended to the conversation).
"""

from typing import Any, Dict, Optional
import logging

from pawmatch.core.clock import normalize_now
from pawmatch.core.errors import InsufficientBalanceError
from pawmatch.core.locks import locked_session, swipe_lock_key
from pawmatch.features.consumables.service import consume_consumable
from pawmatch.features.conversations.service import append_message, open_request
from pawmatch.features.crosslane.state import hold_message, is_pending
from pawmatch.features.quota.service import current_quota
from pawmatch.features.swipes.ledger import has_accept
from pawmatch.features.swipes.service import record_free_accept
from pawmatch.models.chat import ChatRequestResult
from pawmatch.models.consumable import ConsumableKind
from pawmatch.models.lane import PairKey, parse_lane


logger = logging.getLogger(__name__)


def _charge_compliment(session, sender_id: str, now) -> None:
    charge = consume_consumable(session, sender_id, ConsumableKind.COMPLIMENT, 1, now)
    if not charge.ok:
        # Raising rolls back the swipe and message written in this unit of work
        raise InsufficientBalanceError("insufficient compliments", code="insufficient_compliments")


def send_chat_request(
    sender_id: Optional[str],
    target_id: Optional[str],
    lane,
    body: Optional[str],
    client_message_id: Optional[str],
    *,
    metadata: Optional[Dict[str, Any]] = None,
    now: Optional[Any] = None,
) -> ChatRequestResult:
    """
    Send a compliment: a free accept plus a first message, paid with one compliment.

    Args:
        sender_id: User sending the compliment
        target_id: Recipient
        lane: friendship | romantic
        body: Message text (must not be blank)
        client_message_id: Client key making retries idempotent
        metadata: Optional message metadata stored with the message
        now: Override for the current time (defaults to UTC now)

    Returns:
        ChatRequestResult with conversation_id, or cross_lane_pending=True when
        the message is held on a pending pair; insufficient_compliments rolls
        back the whole send
    """
    if not sender_id:
        return ChatRequestResult(ok=False, error="not_authenticated")
    if not target_id or target_id == sender_id:
        return ChatRequestResult(ok=False, error="invalid_target")
    parsed_lane = parse_lane(lane)
    if parsed_lane is None:
        return ChatRequestResult(ok=False, error="invalid_lane")
    if body is None or not body.strip():
        return ChatRequestResult(ok=False, error="empty_message")
    if not client_message_id or not client_message_id.strip():
        return ChatRequestResult(ok=False, error="missing_client_message_id")

    normalized_now = normalize_now(now)
    pair = PairKey.of(sender_id, target_id)

    try:
        with locked_session(swipe_lock_key(sender_id)) as session:
            is_mutual_like = has_accept(session, target_id, sender_id, parsed_lane)
            outcome = record_free_accept(session, sender_id, target_id, parsed_lane, normalized_now)
            remaining = current_quota(session, sender_id, parsed_lane, normalized_now).remaining

            if is_pending(session, pair):
                held = hold_message(
                    session,
                    pair,
                    sender_id,
                    body,
                    client_message_id,
                    parsed_lane,
                    normalized_now,
                    metadata=metadata,
                )
                if held:
                    _charge_compliment(session, sender_id, normalized_now)
                result = ChatRequestResult(
                    ok=True,
                    cross_lane_pending=True,
                    remaining_accepts=remaining,
                    connection_event=outcome.connection_event,
                )
                charged = held
            else:
                conversation_id = open_request(
                    session, sender_id, target_id, parsed_lane, is_mutual_like, normalized_now
                )
                appended = append_message(
                    session,
                    conversation_id,
                    sender_id,
                    body,
                    client_message_id,
                    normalized_now,
                    metadata=metadata,
                )
                if appended:
                    _charge_compliment(session, sender_id, normalized_now)
                result = ChatRequestResult(
                    ok=True,
                    conversation_id=conversation_id,
                    remaining_accepts=remaining,
                    connection_event=outcome.connection_event,
                )
                charged = appended
    except InsufficientBalanceError as exc:
        logger.info(
            "[chat] compliment blocked",
            extra={"user_id": sender_id, "other_user_id": target_id, "lane": parsed_lane.value, "error_code": exc.code},
        )
        return ChatRequestResult(ok=False, error=exc.code)

    logger.info(
        "[chat] compliment sent",
        extra={
            "user_id": sender_id,
            "other_user_id": target_id,
            "lane": parsed_lane.value,
            "cross_lane_pending": result.cross_lane_pending,
            "charged": charged,
        },
    )
    return result
