"""
pawmatch/models/lane.py

Lanes and canonical pair keys.

Two parallel interest categories run side by side: friendship and romantic.
Pairs of users are keyed by (low, high) under lexicographic order of the id
string so a pair maps to exactly one row regardless of who acted first.
"""

from enum import Enum
from typing import NamedTuple, Optional


class Lane(str, Enum):
    FRIENDSHIP = "friendship"
    ROMANTIC = "romantic"

    @property
    def other(self) -> "Lane":
        return Lane.ROMANTIC if self is Lane.FRIENDSHIP else Lane.FRIENDSHIP


def parse_lane(value) -> Optional[Lane]:
    """Return the Lane for `value`, or None when it is not a known lane."""
    if isinstance(value, Lane):
        return value
    try:
        return Lane(value)
    except ValueError:
        return None


class PairKey(NamedTuple):
    low: str
    high: str

    @classmethod
    def of(cls, a: str, b: str) -> "PairKey":
        return cls(a, b) if a < b else cls(b, a)
