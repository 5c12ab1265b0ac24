"""
pawmatch/features/feed/ranking.py

Boost-aware ordering with keyset pagination.

effective_ts = updated_at (+100 years while boosted) (-1000 years for
reduced-visibility moderation), sorted descending by (effective_ts, user_id).
The penalty outweighs the boost, so a reported-but-boosted user still sorts
below everyone unpenalized. The cursor is the exact sort key of the last
candidate served.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple, TypeVar

from dateutil.relativedelta import relativedelta


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
BOOST_OFFSET = relativedelta(years=100)
LOW_MODERATION_OFFSET = relativedelta(years=-1000)

T = TypeVar("T")


class InvalidCursor(ValueError):
    pass


@dataclass(frozen=True, order=True)
class SortKey:
    effective_ts: datetime
    user_id: str


def effective_timestamp(updated_at: Optional[datetime], *, boosted: bool, moderation_status: Optional[str]) -> datetime:
    ts = updated_at or EPOCH
    if boosted:
        ts = ts + BOOST_OFFSET
    if (moderation_status or "normal") == "low":
        ts = ts + LOW_MODERATION_OFFSET
    return ts


def encode_cursor(key: SortKey) -> str:
    raw = json.dumps({"ts": key.effective_ts.isoformat(), "uid": key.user_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: Optional[str]) -> Optional[SortKey]:
    if not cursor:
        return None
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
        ts = datetime.fromisoformat(data["ts"])
        uid = str(data["uid"])
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as exc:
        raise InvalidCursor(str(exc)) from exc
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return SortKey(effective_ts=ts, user_id=uid)


def paginate(
    items: Iterable[Tuple[SortKey, T]],
    limit: int,
    after: Optional[SortKey] = None,
) -> Tuple[List[Tuple[SortKey, T]], Optional[str]]:
    """Sort descending, keep keys strictly below `after`, cut a page.

    Returns the page and the cursor for the next one (None on the last page).
    """
    ordered: Sequence[Tuple[SortKey, T]] = sorted(items, key=lambda pair: pair[0], reverse=True)
    if after is not None:
        ordered = [pair for pair in ordered if pair[0] < after]
    page = list(ordered[:limit])
    next_cursor = encode_cursor(page[-1][0]) if page and len(ordered) > limit else None
    return page, next_cursor
