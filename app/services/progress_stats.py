"""
Progress statistics service: RecordStore query -> stats aggregator.

The store is always passed in explicitly; nothing here holds a shared
instance.

Public API
----------
get_user_activity(store, user_id, date_from, date_to) -> list[dict]
get_user_stats(store, user_id)                       -> ProgressStats
get_user_heatmap(store, user_id, days, today)        -> list[HeatmapEntry]
get_goal_progress(store, user_id, targets, now)      -> dict[str, GoalProgress]
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from app.core.config import settings
from app.core.timestamps import parse_timestamp
from app.services.record_store import RecordStore
from app.services.stats_aggregator import (
    GoalProgress,
    GoalTargets,
    HeatmapEntry,
    ProgressStats,
    aggregate,
    build_heatmap,
    evaluate_goals,
)

PROGRESS_COLLECTION = "progress"


def _activity_day(record: dict[str, Any]) -> Optional[date]:
    moment = parse_timestamp(record.get("completedAt")) or parse_timestamp(record.get("createdAt"))
    if moment is None:
        return None
    return moment.astimezone(settings.stats_tzinfo).date()


def get_user_activity(
    store: RecordStore,
    user_id: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> list[dict[str, Any]]:
    """
    The user's progress records in stored order, optionally limited to the
    inclusive day range [date_from, date_to]. Records without a usable
    timestamp are dropped only when a range is requested.
    """
    records = store.find(PROGRESS_COLLECTION, lambda r: r.get("userId") == user_id)
    if date_from is None and date_to is None:
        return records

    selected = []
    for record in records:
        day = _activity_day(record)
        if day is None:
            continue
        if date_from is not None and day < date_from:
            continue
        if date_to is not None and day > date_to:
            continue
        selected.append(record)
    return selected


def get_user_stats(store: RecordStore, user_id: str) -> ProgressStats:
    return aggregate(get_user_activity(store, user_id), tz=settings.stats_tzinfo)


def get_user_heatmap(
    store: RecordStore,
    user_id: str,
    days: Optional[int] = None,
    today: Optional[date] = None,
) -> list[HeatmapEntry]:
    return build_heatmap(
        get_user_activity(store, user_id),
        days=settings.HEATMAP_DAYS if days is None else days,
        today=today,
        tz=settings.stats_tzinfo,
    )


def get_goal_progress(
    store: RecordStore,
    user_id: str,
    targets: GoalTargets,
    now: Optional[datetime] = None,
) -> dict[str, GoalProgress]:
    stats = get_user_stats(store, user_id)
    return evaluate_goals(stats, targets, now=now, tz=settings.stats_tzinfo)
