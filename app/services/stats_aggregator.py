"""
Stats aggregator — multi-resolution statistics over activity records.

Input is an ordered sequence of raw progress records (dicts, as returned by
RecordStore) for one subject. Each is converted to an ActivityRecord at the
boundary; malformed fields degrade to defaults, so nothing here raises on
empty or partial input and every output is fully populated.

Time reference
--------------
One timezone (settings.STATS_TIMEZONE unless a `tz` is passed) is applied to
both record timestamps and "now"/"today". Records with no usable timestamp
count toward totals and breakdowns but fall in no bucket.

Rollups
-------
day   : key "YYYY-MM-DD"
week  : key "YYYY-Www" using simplified_week_index(), NOT ISO-8601
month : key "YYYY-MM"
Week and month buckets are built from day buckets, and all durations are
summed as Decimal, so every rollup equals the exact sum of its days.

Heatmap levels (minutes that day)
---------------------------------
0 -> 0 | (0, 30) -> 1 | [30, 60) -> 2 | [60, 120) -> 3 | >= 120 -> 4

Public API
----------
aggregate(records, tz)                         -> ProgressStats
build_heatmap(records, days, today, tz)        -> list[HeatmapEntry]
evaluate_goals(stats, targets, now, tz)        -> dict[str, GoalProgress]
simplified_week_index(day)                     -> int
activity_level(minutes)                        -> int
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Any, Iterable, Mapping, Optional

from app.core.config import settings
from app.schemas.activity import (
    DIFFICULTY_LEVELS,
    PROGRESS_TYPES,
    SATISFACTION_SCALE,
    ActivityRecord,
    to_minutes,
)


# ---------------------------------------------------------------------------
# Result types (plain dataclasses, no ORM)
# ---------------------------------------------------------------------------

@dataclass
class Bucket:
    time_spent: Decimal = Decimal(0)
    sessions: int = 0
    satisfaction_sum: int = 0
    satisfaction_count: int = 0

    @property
    def average_satisfaction(self) -> Decimal:
        return _average(Decimal(self.satisfaction_sum), self.satisfaction_count)

    def absorb(self, other: "Bucket") -> None:
        self.time_spent += other.time_spent
        self.sessions += other.sessions
        self.satisfaction_sum += other.satisfaction_sum
        self.satisfaction_count += other.satisfaction_count


@dataclass
class DayBucket(Bucket):
    day: Optional[date] = None


@dataclass
class WeekBucket(Bucket):
    year: int = 0
    week: int = 0
    days: list[str] = field(default_factory=list)   # constituent day keys


@dataclass
class MonthBucket(Bucket):
    year: int = 0
    month: int = 0
    days: list[str] = field(default_factory=list)


@dataclass
class ProductiveDay:
    date: Optional[date]        # None only when there is no bucketed activity
    time_spent: Decimal


@dataclass
class ProgressStats:
    total_records: int
    total_time_spent: Decimal
    average_time_spent: Decimal
    average_satisfaction: Decimal
    by_difficulty: dict[str, int]
    by_satisfaction: dict[str, int]
    by_progress_type: dict[str, int]
    daily_stats: dict[str, DayBucket]
    weekly_stats: dict[str, WeekBucket]
    monthly_stats: dict[str, MonthBucket]
    tasks_worked_on: int
    most_productive_day: ProductiveDay
    longest_session: Decimal
    total_sessions: int          # bucketed records only; undated ones are excluded


@dataclass
class HeatmapEntry:
    date: date
    time_spent: Decimal
    level: int


@dataclass
class GoalTargets:
    """Target minutes per horizon; None means no goal for that horizon."""
    daily_minutes: Optional[Decimal] = None
    weekly_minutes: Optional[Decimal] = None
    monthly_minutes: Optional[Decimal] = None


@dataclass
class GoalProgress:
    horizon: str                 # "daily" | "weekly" | "monthly"
    target: Decimal
    actual: Decimal
    percentage: int
    completed: bool


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_TWO_PLACES = Decimal("0.01")

# (lower bound in minutes, level), highest first
_LEVEL_THRESHOLDS = (
    (Decimal(120), 4),
    (Decimal(60), 3),
    (Decimal(30), 2),
)


def _tz(tz: Optional[tzinfo]) -> tzinfo:
    return tz or settings.stats_tzinfo


def _now(tz: tzinfo) -> datetime:
    return datetime.now(tz=tz)


def _quantize(value: Decimal, exp: Decimal) -> Decimal:
    """Round half-up to `exp`, with enough precision for any finite value."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() - exp.as_tuple().exponent + 2)
        return value.quantize(exp, rounding=ROUND_HALF_UP)


def _average(total: Decimal, count: int) -> Decimal:
    if not count:
        return Decimal("0.00")
    return _quantize(total / Decimal(count), _TWO_PLACES)


def _day_key(d: date) -> str:
    return d.isoformat()


def _week_key(d: date) -> str:
    return f"{d.year}-W{simplified_week_index(d):02d}"


def _month_key(d: date) -> str:
    return f"{d.year}-{d.month:02d}"


def _local_day(activity: ActivityRecord, tz: tzinfo) -> Optional[date]:
    if activity.completed_at is None:
        return None
    return activity.completed_at.astimezone(tz).date()


def _to_activities(records: Iterable[Mapping[str, Any]]) -> list[ActivityRecord]:
    return [ActivityRecord.from_record(r) for r in records]


def simplified_week_index(day: date) -> int:
    """
    Week number counted from January 1 of the day's own year:
    floor(days_since_jan_1 / 7) + 1, range 1..53.

    Not ISO-8601. Weeks restart on every January 1, so the days around a year
    boundary split into a short week 53 and a new week 1 that need not line up
    with calendar (Monday-based) weeks.
    """
    return (day - date(day.year, 1, 1)).days // 7 + 1


def activity_level(minutes: Decimal | int | float) -> int:
    """Discrete 0-4 heatmap intensity for a day's summed duration."""
    value = Decimal(str(minutes))
    if value <= 0:
        return 0
    for lower, level in _LEVEL_THRESHOLDS:
        if value >= lower:
            return level
    return 1


# ---------------------------------------------------------------------------
# Bucketing
# ---------------------------------------------------------------------------

def _bucket_days(activities: list[ActivityRecord], tz: tzinfo) -> dict[str, DayBucket]:
    days: dict[str, DayBucket] = {}
    for activity in activities:
        day = _local_day(activity, tz)
        if day is None:
            continue
        bucket = days.setdefault(_day_key(day), DayBucket(day=day))
        bucket.time_spent += activity.time_spent
        bucket.sessions += 1
        if activity.satisfaction is not None:
            bucket.satisfaction_sum += activity.satisfaction
            bucket.satisfaction_count += 1
    return {key: days[key] for key in sorted(days)}


def _roll_up_weeks(daily: dict[str, DayBucket]) -> dict[str, WeekBucket]:
    weeks: dict[str, WeekBucket] = {}
    for key, day_bucket in daily.items():
        d = day_bucket.day
        week = weeks.setdefault(
            _week_key(d),
            WeekBucket(year=d.year, week=simplified_week_index(d)),
        )
        week.absorb(day_bucket)
        week.days.append(key)
    return {key: weeks[key] for key in sorted(weeks)}


def _roll_up_months(daily: dict[str, DayBucket]) -> dict[str, MonthBucket]:
    months: dict[str, MonthBucket] = {}
    for key, day_bucket in daily.items():
        d = day_bucket.day
        month = months.setdefault(_month_key(d), MonthBucket(year=d.year, month=d.month))
        month.absorb(day_bucket)
        month.days.append(key)
    return {key: months[key] for key in sorted(months)}


def _most_productive_day(daily: dict[str, DayBucket]) -> ProductiveDay:
    """Maximum summed duration; ties go to the earliest date."""
    best: Optional[DayBucket] = None
    for key in sorted(daily):
        bucket = daily[key]
        if best is None or bucket.time_spent > best.time_spent:
            best = bucket
    if best is None:
        return ProductiveDay(date=None, time_spent=Decimal(0))
    return ProductiveDay(date=best.day, time_spent=best.time_spent)


def _count_labels(values: Iterable[Optional[str]], known: Iterable[str]) -> dict[str, int]:
    counts = {label: 0 for label in known}
    for value in values:
        if value is not None:
            counts[value] = counts.get(value, 0) + 1
    return counts


# ---------------------------------------------------------------------------
# Public — full statistics
# ---------------------------------------------------------------------------

def aggregate(
    records: Iterable[Mapping[str, Any]],
    tz: Optional[tzinfo] = None,
) -> ProgressStats:
    """Derive every statistic from one subject's activity records."""
    zone = _tz(tz)
    activities = _to_activities(records)

    daily = _bucket_days(activities, zone)
    total_time = sum((a.time_spent for a in activities), Decimal(0))
    ratings = [a.satisfaction for a in activities if a.satisfaction is not None]

    return ProgressStats(
        total_records=len(activities),
        total_time_spent=total_time,
        average_time_spent=_average(total_time, len(activities)),
        average_satisfaction=_average(Decimal(sum(ratings)), len(ratings)),
        by_difficulty=_count_labels((a.difficulty for a in activities), DIFFICULTY_LEVELS),
        by_satisfaction=_count_labels(
            (str(r) for r in ratings), (str(s) for s in SATISFACTION_SCALE)
        ),
        by_progress_type=_count_labels((a.progress_type for a in activities), PROGRESS_TYPES),
        daily_stats=daily,
        weekly_stats=_roll_up_weeks(daily),
        monthly_stats=_roll_up_months(daily),
        tasks_worked_on=len({a.task_id for a in activities if a.task_id is not None}),
        most_productive_day=_most_productive_day(daily),
        longest_session=max((a.time_spent for a in activities), default=Decimal(0)),
        total_sessions=sum(b.sessions for b in daily.values()),
    )


# ---------------------------------------------------------------------------
# Public — heatmap
# ---------------------------------------------------------------------------

def build_heatmap(
    records: Iterable[Mapping[str, Any]],
    days: int = 365,
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> list[HeatmapEntry]:
    """
    Exactly `days` contiguous entries, oldest first, ending on `today`
    (defaults to the current date in the stats timezone). Days without
    activity are zero-filled.
    """
    if days < 0:
        raise ValueError(f"days must be >= 0, got {days}")
    zone = _tz(tz)
    end = today or _now(zone).date()
    if isinstance(end, datetime):
        end = end.astimezone(zone).date() if end.tzinfo else end.date()
    daily = _bucket_days(_to_activities(records), zone)

    entries: list[HeatmapEntry] = []
    for offset in range(days - 1, -1, -1):
        d = end - timedelta(days=offset)
        bucket = daily.get(_day_key(d))
        minutes = bucket.time_spent if bucket is not None else Decimal(0)
        entries.append(HeatmapEntry(date=d, time_spent=minutes, level=activity_level(minutes)))
    return entries


# ---------------------------------------------------------------------------
# Public — goals
# ---------------------------------------------------------------------------

def _goal(horizon: str, target: Any, bucket: Optional[Bucket]) -> GoalProgress:
    # minutes at 0.01 resolution; malformed or out-of-range targets read as 0
    target = _quantize(to_minutes(target), _TWO_PLACES)
    actual = bucket.time_spent if bucket is not None else Decimal(0)
    if target <= 0:
        percentage = 100
    else:
        percentage = int(_quantize(Decimal(100) * actual / target, Decimal(1)))
    return GoalProgress(
        horizon=horizon,
        target=target,
        actual=actual,
        percentage=percentage,
        completed=actual >= target,
    )


def evaluate_goals(
    stats: ProgressStats,
    targets: GoalTargets,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> dict[str, GoalProgress]:
    """
    Compare the current day / week / month against their targets. Only the
    period containing `now` is evaluated; horizons without a target are
    omitted. The week is the simplified week used by weekly_stats.
    """
    zone = _tz(tz)
    moment = now or _now(zone)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=zone)
    today = moment.astimezone(zone).date()

    result: dict[str, GoalProgress] = {}
    if targets.daily_minutes is not None:
        result["daily"] = _goal(
            "daily", targets.daily_minutes, stats.daily_stats.get(_day_key(today))
        )
    if targets.weekly_minutes is not None:
        result["weekly"] = _goal(
            "weekly", targets.weekly_minutes, stats.weekly_stats.get(_week_key(today))
        )
    if targets.monthly_minutes is not None:
        result["monthly"] = _goal(
            "monthly", targets.monthly_minutes, stats.monthly_stats.get(_month_key(today))
        )
    return result
