"""
pawmatch/models/boost.py

Boost session models.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class BoostStartResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None  # also set with already_active


class BoostStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_active: bool
    started_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    remaining_seconds: int = Field(default=0, ge=0)
