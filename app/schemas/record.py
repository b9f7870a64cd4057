"""
Generic record envelope used at the storage boundary.

A stored record is a flat JSON object. The envelope separates the keys the
store owns (id, createdAt, updatedAt) from the caller-defined fields, which
stay opaque.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

RESERVED_FIELDS = ("id", "createdAt", "updatedAt")


class RecordEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "created_at", "updated_at", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return str(v)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "RecordEnvelope":
        fields = {k: v for k, v in record.items() if k not in RESERVED_FIELDS}
        return cls(
            id=record.get("id"),
            created_at=record.get("createdAt"),
            updated_at=record.get("updatedAt"),
            fields=fields,
        )

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = dict(self.fields)
        if self.id is not None:
            record["id"] = self.id
        if self.created_at is not None:
            record["createdAt"] = self.created_at
        if self.updated_at is not None:
            record["updatedAt"] = self.updated_at
        return record
