"""
pawmatch/models/feed.py

Feed and liked-you page models.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from pawmatch.models.lane import Lane


class FeedCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    display_name: Optional[str] = None
    city: Optional[str] = None
    distance_miles: Optional[float] = None
    is_boosted: bool = False
    effective_ts: datetime = Field(description="Ranking key; opaque to clients")


class FeedPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    error: Optional[str] = None
    lane: Optional[Lane] = None
    candidates: List[FeedCandidate] = Field(default_factory=list)
    next_cursor: Optional[str] = None


class LikedYouEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    liker_id: str
    liked_at: datetime
    lane: Lane
    display_name: Optional[str] = None
    city: Optional[str] = None


class LikedYouPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    error: Optional[str] = None
    entries: List[LikedYouEntry] = Field(default_factory=list)
    next_cursor: Optional[str] = None
