"""
Typed view of a progress (activity) record.

The store keeps records free-form; the aggregator converts each one into an
ActivityRecord at the boundary. Coercion is lenient: a malformed value
degrades to its default instead of failing validation, so aggregation never
raises on partially-populated input.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.timestamps import parse_timestamp

DIFFICULTY_LEVELS = ("easy", "medium", "hard")
PROGRESS_TYPES = ("manual", "auto", "timer")
SATISFACTION_SCALE = (1, 2, 3, 4, 5)

# Anything longer than this (about 1900 years) is treated as malformed
MAX_MINUTES = Decimal(10) ** 9


def to_minutes(value: Any) -> Decimal:
    """
    Duration in minutes as an exact Decimal. Non-numeric values and
    magnitudes beyond MAX_MINUTES are 0.
    """
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        minutes = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not minutes.is_finite() or abs(minutes) > MAX_MINUTES:
        return Decimal(0)
    return minutes


class ActivityRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    task_id: Optional[str] = Field(default=None, alias="taskId")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")
    time_spent: Decimal = Field(default=Decimal(0), alias="timeSpent")
    satisfaction: Optional[int] = None
    difficulty: Optional[str] = None
    progress_type: Optional[str] = Field(default=None, alias="progressType")
    tags: list[str] = Field(default_factory=list)
    notes: str = ""

    @field_validator("id", "user_id", "task_id", mode="before")
    @classmethod
    def _opaque_id(cls, v: Any) -> Optional[str]:
        if v is None or v == "" or isinstance(v, (dict, list)):
            return None
        return str(v)

    @field_validator("completed_at", mode="before")
    @classmethod
    def _timestamp(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @field_validator("time_spent", mode="before")
    @classmethod
    def _duration(cls, v: Any) -> Decimal:
        return to_minutes(v)

    @field_validator("satisfaction", mode="before")
    @classmethod
    def _rating(cls, v: Any) -> Optional[int]:
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
        try:
            rating = Decimal(str(v))
        except (InvalidOperation, ValueError):
            return None
        if not rating.is_finite() or rating != rating.to_integral_value():
            return None
        if rating not in SATISFACTION_SCALE:
            return None
        return int(rating)

    @field_validator("difficulty", "progress_type", mode="before")
    @classmethod
    def _label(cls, v: Any) -> Optional[str]:
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip()

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v: Any) -> list[str]:
        if not isinstance(v, (list, tuple)):
            return []
        return [str(t) for t in v if t is not None]

    @field_validator("notes", mode="before")
    @classmethod
    def _notes(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ActivityRecord":
        """
        Build from a stored record. completedAt falls back to createdAt when
        the record has no usable completion timestamp.
        """
        data = dict(record)
        if parse_timestamp(data.get("completedAt")) is None:
            data["completedAt"] = data.get("createdAt")
        return cls.model_validate(data)
