"""
Statistics output schemas.

Field names are serialized in camelCase (totalRecords, dailyStats, ...) and
are a stable contract for chart / export consumers:

aggregate()      -> ProgressStatsOut
build_heatmap()  -> list[HeatmapEntryOut]
evaluate_goals() -> dict[str, GoalProgressOut]
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.services.stats_aggregator import (
    Bucket,
    GoalProgress,
    HeatmapEntry,
    MonthBucket,
    ProgressStats,
    WeekBucket,
)

Number = Union[int, float]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BucketOut(_CamelModel):
    time_spent: Number
    sessions: int
    satisfaction_sum: int
    satisfaction_count: int
    average_satisfaction: Number


class WeekBucketOut(BucketOut):
    year: int
    week: int = Field(description="Simplified week index (days since Jan 1 // 7 + 1).")
    days: list[str]


class MonthBucketOut(BucketOut):
    year: int
    month: int
    days: list[str]


class ProductiveDayOut(_CamelModel):
    date: Optional[str] = Field(description="None when there is no activity.")
    time_spent: Number


class ProgressStatsOut(_CamelModel):
    total_records: int
    total_time_spent: Number
    average_time_spent: Number
    average_satisfaction: Number
    by_difficulty: dict[str, int]
    by_satisfaction: dict[str, int]
    by_progress_type: dict[str, int]
    daily_stats: dict[str, BucketOut]
    weekly_stats: dict[str, WeekBucketOut]
    monthly_stats: dict[str, MonthBucketOut]
    tasks_worked_on: int
    most_productive_day: ProductiveDayOut
    longest_session: Number
    total_sessions: int


class HeatmapEntryOut(_CamelModel):
    date: str
    time_spent: Number
    level: int = Field(ge=0, le=4)


class GoalProgressOut(_CamelModel):
    target: Number
    actual: Number
    percentage: int
    completed: bool


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _num(value: Decimal) -> Number:
    """Integral decimals become int, everything else float."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _bucket_fields(b: Bucket) -> dict:
    return dict(
        time_spent=_num(b.time_spent),
        sessions=b.sessions,
        satisfaction_sum=b.satisfaction_sum,
        satisfaction_count=b.satisfaction_count,
        average_satisfaction=_num(b.average_satisfaction),
    )


def _week_to_response(w: WeekBucket) -> WeekBucketOut:
    return WeekBucketOut(year=w.year, week=w.week, days=list(w.days), **_bucket_fields(w))


def _month_to_response(m: MonthBucket) -> MonthBucketOut:
    return MonthBucketOut(year=m.year, month=m.month, days=list(m.days), **_bucket_fields(m))


def stats_to_response(s: ProgressStats) -> ProgressStatsOut:
    best = s.most_productive_day
    return ProgressStatsOut(
        total_records=s.total_records,
        total_time_spent=_num(s.total_time_spent),
        average_time_spent=_num(s.average_time_spent),
        average_satisfaction=_num(s.average_satisfaction),
        by_difficulty=dict(s.by_difficulty),
        by_satisfaction=dict(s.by_satisfaction),
        by_progress_type=dict(s.by_progress_type),
        daily_stats={k: BucketOut(**_bucket_fields(b)) for k, b in s.daily_stats.items()},
        weekly_stats={k: _week_to_response(w) for k, w in s.weekly_stats.items()},
        monthly_stats={k: _month_to_response(m) for k, m in s.monthly_stats.items()},
        tasks_worked_on=s.tasks_worked_on,
        most_productive_day=ProductiveDayOut(
            date=str(best.date) if best.date else None,
            time_spent=_num(best.time_spent),
        ),
        longest_session=_num(s.longest_session),
        total_sessions=s.total_sessions,
    )


def heatmap_to_response(entries: list[HeatmapEntry]) -> list[HeatmapEntryOut]:
    return [
        HeatmapEntryOut(date=str(e.date), time_spent=_num(e.time_spent), level=e.level)
        for e in entries
    ]


def goals_to_response(goals: dict[str, GoalProgress]) -> dict[str, GoalProgressOut]:
    return {
        horizon: GoalProgressOut(
            target=_num(g.target),
            actual=_num(g.actual),
            percentage=g.percentage,
            completed=g.completed,
        )
        for horizon, g in goals.items()
    }
