"""
pawmatch/features/feed/service.py

Candidate selection for one viewer and lane.

Hard filters (visibility, blocks, bans, lane enablement, prior hard swipes,
pass cooldown, bounding box) run in SQL; precise distance, preference
predicates, suppressions, ranking and pagination run on the prefiltered set.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple
import logging

from sqlalchemy import and_, exists, func, select
from sqlalchemy.orm import Session

from pawmatch.core.clock import as_utc, normalize_now
from pawmatch.core.config import settings
from pawmatch.core.database import (
    blocked_users,
    get_db_session,
    moderation_states,
    preferences,
    profiles,
    swipes,
    user_suppressions,
)
from pawmatch.features.boosts.service import active_boosted_user_ids
from pawmatch.features.feed.eligibility import (
    LanePreferences,
    Person,
    PreferencePredicate,
    bounding_box,
    default_predicate,
    feed_eligible,
    haversine_miles,
)
from pawmatch.features.feed.ranking import InvalidCursor, SortKey, decode_cursor, effective_timestamp, paginate
from pawmatch.models.feed import FeedCandidate, FeedPage
from pawmatch.models.lane import Lane, parse_lane
from pawmatch.models.swipe import SwipeAction


logger = logging.getLogger(__name__)

VISIBLE_LIFECYCLE = ("active", "limited")


def _lane_prefs(row, prefix: str) -> LanePreferences:
    genders = getattr(row, f"{prefix}_preferred_genders") or ()
    return LanePreferences(
        enabled=bool(getattr(row, f"{prefix}_enabled")),
        preferred_genders=tuple(genders),
        age_min=getattr(row, f"{prefix}_age_min"),
        age_max=getattr(row, f"{prefix}_age_max"),
        distance_miles=getattr(row, f"{prefix}_distance_miles"),
    )


def person_from_row(row) -> Person:
    return Person(
        user_id=row.user_id,
        gender=row.gender,
        birth_date=row.birth_date,
        latitude=row.latitude,
        longitude=row.longitude,
        friendship=_lane_prefs(row, "friendship"),
        romantic=_lane_prefs(row, "romantic"),
    )


def _person_columns():
    return [
        profiles.c.user_id,
        profiles.c.display_name,
        profiles.c.city,
        profiles.c.gender,
        profiles.c.birth_date,
        profiles.c.latitude,
        profiles.c.longitude,
        profiles.c.updated_at,
        preferences.c.friendship_enabled,
        preferences.c.friendship_preferred_genders,
        preferences.c.friendship_age_min,
        preferences.c.friendship_age_max,
        preferences.c.friendship_distance_miles,
        preferences.c.romantic_enabled,
        preferences.c.romantic_preferred_genders,
        preferences.c.romantic_age_min,
        preferences.c.romantic_age_max,
        preferences.c.romantic_distance_miles,
    ]


def load_viewer(session: Session, viewer_id: str) -> Optional[Person]:
    row = session.execute(
        select(*_person_columns())
        .select_from(profiles.join(preferences, preferences.c.user_id == profiles.c.user_id))
        .where(profiles.c.user_id == viewer_id)
    ).first()
    return person_from_row(row) if row else None


def suppressed_lanes_by_target(session: Session, actor_id: str, now: datetime) -> Dict[str, Tuple[Lane, ...]]:
    """Lanes in which each target is hard-suppressed for `actor_id`."""
    rows = session.execute(
        select(user_suppressions).where(user_suppressions.c.actor_id == actor_id)
    ).all()
    result: Dict[str, Tuple[Lane, ...]] = {}
    for row in rows:
        if row.blocked_at is not None or row.reported_at is not None:
            result[row.target_id] = (Lane.FRIENDSHIP, Lane.ROMANTIC)
            continue
        lanes = []
        friendship_until = as_utc(row.friendship_pass_until)
        romantic_until = as_utc(row.romantic_pass_until)
        if friendship_until is not None and friendship_until > now:
            lanes.append(Lane.FRIENDSHIP)
        if romantic_until is not None and romantic_until > now:
            lanes.append(Lane.ROMANTIC)
        if lanes:
            result[row.target_id] = tuple(lanes)
    return result


def _prefilter(session: Session, viewer: Person, lane: Lane, now: datetime):
    lane_enabled_col = preferences.c.romantic_enabled if lane == Lane.ROMANTIC else preferences.c.friendship_enabled
    pass_cutoff = now - timedelta(hours=settings.PASS_COOLDOWN_HOURS)

    blocked_by_me = exists().where(
        blocked_users.c.blocker_id == viewer.user_id,
        blocked_users.c.blocked_id == profiles.c.user_id,
    )
    blocked_me = exists().where(
        blocked_users.c.blocker_id == profiles.c.user_id,
        blocked_users.c.blocked_id == viewer.user_id,
    )
    hard_swiped = exists().where(
        swipes.c.viewer_id == viewer.user_id,
        swipes.c.candidate_id == profiles.c.user_id,
        swipes.c.action.in_((SwipeAction.ACCEPT.value, SwipeAction.REJECT.value)),
    )
    recently_passed = exists().where(
        swipes.c.viewer_id == viewer.user_id,
        swipes.c.candidate_id == profiles.c.user_id,
        swipes.c.lane == lane.value,
        swipes.c.action == SwipeAction.PASS.value,
        swipes.c.created_at > pass_cutoff,
    )
    moderation = func.coalesce(moderation_states.c.status, "normal")

    stmt = (
        select(*_person_columns(), moderation.label("moderation_status"))
        .select_from(
            profiles.join(preferences, preferences.c.user_id == profiles.c.user_id).outerjoin(
                moderation_states, moderation_states.c.user_id == profiles.c.user_id
            )
        )
        .where(profiles.c.user_id != viewer.user_id)
        .where(profiles.c.lifecycle_status.in_(VISIBLE_LIFECYCLE))
        .where(func.coalesce(profiles.c.is_hidden, False).is_(False))
        .where(profiles.c.deleted_at.is_(None))
        .where(~blocked_by_me)
        .where(~blocked_me)
        .where(moderation != "banned")
        .where(lane_enabled_col.is_(True))
        .where(~hard_swiped)
        .where(~recently_passed)
    )

    distance = viewer.prefs(lane).distance_miles
    if distance is not None:
        if viewer.latitude is None or viewer.longitude is None:
            return []
        min_lat, max_lat, min_lon, max_lon = bounding_box(viewer.latitude, viewer.longitude, distance)
        stmt = stmt.where(
            and_(
                profiles.c.latitude.is_not(None),
                profiles.c.longitude.is_not(None),
                profiles.c.latitude.between(min_lat, max_lat),
                profiles.c.longitude.between(min_lon, max_lon),
            )
        )

    return session.execute(stmt).all()


def get_feed_page(
    viewer_id: Optional[str],
    lane,
    limit: Optional[int] = None,
    cursor: Optional[str] = None,
    *,
    now: Optional[Any] = None,
    predicate: PreferencePredicate = default_predicate,
) -> FeedPage:
    """
    Return one page of ranked candidates and the cursor for the next page.

    Args:
        viewer_id: User browsing the feed
        lane: friendship | romantic
        limit: Page size (clamped to FEED_MAX_PAGE_SIZE)
        cursor: Opaque cursor from the previous page
        now: Override for the current time (defaults to UTC now)
        predicate: Preference check applied to each candidate

    Returns:
        FeedPage with candidates and next_cursor (None on the last page)
    """
    if not viewer_id:
        return FeedPage(ok=False, error="not_authenticated")
    parsed_lane = parse_lane(lane)
    if parsed_lane is None:
        return FeedPage(ok=False, error="invalid_lane")
    try:
        after = decode_cursor(cursor)
    except InvalidCursor:
        return FeedPage(ok=False, error="invalid_cursor")

    page_size = max(1, min(limit or settings.FEED_DEFAULT_PAGE_SIZE, settings.FEED_MAX_PAGE_SIZE))
    normalized_now = normalize_now(now)
    today = normalized_now.date()

    with get_db_session() as session:
        viewer = load_viewer(session, viewer_id)
        if viewer is None or not viewer.prefs(parsed_lane).enabled:
            return FeedPage(lane=parsed_lane)

        rows = _prefilter(session, viewer, parsed_lane, normalized_now)
        suppressions = suppressed_lanes_by_target(session, viewer_id, normalized_now)
        boosted = active_boosted_user_ids(session, normalized_now)

    ranked = []
    for row in rows:
        candidate = person_from_row(row)
        distance = haversine_miles(viewer.latitude, viewer.longitude, candidate.latitude, candidate.longitude)
        if not feed_eligible(
            viewer,
            candidate,
            parsed_lane,
            distance,
            today,
            suppressions.get(candidate.user_id, ()),
            predicate,
        ):
            continue
        is_boosted = candidate.user_id in boosted
        key = SortKey(
            effective_ts=effective_timestamp(
                as_utc(row.updated_at), boosted=is_boosted, moderation_status=row.moderation_status
            ),
            user_id=candidate.user_id,
        )
        ranked.append((key, (row, distance, is_boosted)))

    page, next_cursor = paginate(ranked, page_size, after)
    candidates = [
        FeedCandidate(
            user_id=key.user_id,
            display_name=row.display_name,
            city=row.city,
            distance_miles=round(distance, 1) if distance is not None else None,
            is_boosted=is_boosted,
            effective_ts=key.effective_ts,
        )
        for key, (row, distance, is_boosted) in page
    ]

    logger.info(
        "[feed] page served",
        extra={
            "user_id": viewer_id,
            "lane": parsed_lane.value,
            "prefiltered": len(rows),
            "eligible": len(ranked),
            "returned": len(candidates),
        },
    )
    return FeedPage(lane=parsed_lane, candidates=candidates, next_cursor=next_cursor)
