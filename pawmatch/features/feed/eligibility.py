"""
pawmatch/features/feed/eligibility.py

Preference predicates for feed eligibility.

The friendship lane is one-directional: only the viewer's preferences gate
the candidate. The romantic lane is bidirectional: the candidate's romantic
preferences must also admit the viewer. The default predicate checks gender,
age range and distance; callers may inject their own predicate.
"""

from dataclasses import dataclass, field
from datetime import date
from math import asin, cos, radians, sin, sqrt
from typing import Callable, Optional, Tuple

from dateutil.relativedelta import relativedelta

from pawmatch.models.lane import Lane


EARTH_RADIUS_MILES = 3958.8
MILES_PER_DEGREE_LAT = 69.0


@dataclass(frozen=True)
class LanePreferences:
    enabled: bool = False
    preferred_genders: Tuple[str, ...] = ()
    age_min: Optional[int] = None
    age_max: Optional[int] = None
    distance_miles: Optional[float] = None


@dataclass(frozen=True)
class Person:
    user_id: str
    gender: Optional[str] = None
    birth_date: Optional[date] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    friendship: LanePreferences = field(default_factory=LanePreferences)
    romantic: LanePreferences = field(default_factory=LanePreferences)

    def prefs(self, lane: Lane) -> LanePreferences:
        return self.romantic if lane == Lane.ROMANTIC else self.friendship


# (viewer, candidate, lane, distance_miles, today) -> bool
PreferencePredicate = Callable[[Person, Person, Lane, Optional[float], date], bool]


def haversine_miles(lat1: Optional[float], lon1: Optional[float], lat2: Optional[float], lon2: Optional[float]) -> Optional[float]:
    if None in (lat1, lon1, lat2, lon2):
        return None
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * asin(min(1.0, sqrt(a)))


def bounding_box(lat: float, lon: float, distance_miles: float) -> Tuple[float, float, float, float]:
    """Coarse (min_lat, max_lat, min_lon, max_lon) prefilter around a point."""
    dlat = distance_miles / MILES_PER_DEGREE_LAT
    dlon = distance_miles / (MILES_PER_DEGREE_LAT * max(cos(radians(lat)), 0.01))
    return lat - dlat, lat + dlat, lon - dlon, lon + dlon


def age_on(birth_date: date, today: date) -> int:
    return relativedelta(today, birth_date).years


def admits(prefs: LanePreferences, other: Person, distance_miles: Optional[float], today: date) -> bool:
    """Whether one side's lane preferences accept `other`."""
    if prefs.preferred_genders:
        if other.gender is None or other.gender not in prefs.preferred_genders:
            return False

    if prefs.age_min is not None or prefs.age_max is not None:
        if other.birth_date is None:
            return False
        age = age_on(other.birth_date, today)
        if prefs.age_min is not None and age < prefs.age_min:
            return False
        if prefs.age_max is not None and age > prefs.age_max:
            return False

    if prefs.distance_miles is not None:
        if distance_miles is None or distance_miles > prefs.distance_miles:
            return False

    return True


def default_predicate(viewer: Person, candidate: Person, lane: Lane, distance_miles: Optional[float], today: date) -> bool:
    if not admits(viewer.prefs(lane), candidate, distance_miles, today):
        return False
    if lane == Lane.ROMANTIC:
        return admits(candidate.romantic, viewer, distance_miles, today)
    return True


def lane_ok(
    viewer: Person,
    candidate: Person,
    lane: Lane,
    distance_miles: Optional[float],
    today: date,
    suppressed: bool,
    predicate: PreferencePredicate = default_predicate,
) -> bool:
    if not viewer.prefs(lane).enabled or not candidate.prefs(lane).enabled:
        return False
    if suppressed:
        return False
    return predicate(viewer, candidate, lane, distance_miles, today)


def feed_eligible(
    viewer: Person,
    candidate: Person,
    lane: Lane,
    distance_miles: Optional[float],
    today: date,
    suppressed_lanes: Tuple[Lane, ...] = (),
    predicate: PreferencePredicate = default_predicate,
) -> bool:
    """Final per-candidate gate; romantic wins over friendship for the same person."""
    if not lane_ok(viewer, candidate, lane, distance_miles, today, lane in suppressed_lanes, predicate):
        return False
    if lane == Lane.FRIENDSHIP and viewer.romantic.enabled:
        romantic = lane_ok(
            viewer, candidate, Lane.ROMANTIC, distance_miles, today, Lane.ROMANTIC in suppressed_lanes, predicate
        )
        if romantic:
            return False
    return True
