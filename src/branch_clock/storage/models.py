"""Data models for the persisted duration document."""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DOCUMENT_VERSION = 1

_FRACTION = re.compile(r"(\d{2}:\d{2}:\d{2})\.\d+")


def parse_timestamp(value: Any) -> int:
    """Convert a stored timestamp into integer UTC epoch seconds.

    Accepts ``YYYY-MM-DDTHH:MM:SSZ`` as written by the store, plus fractional
    seconds (truncated), explicit offsets, ``datetime`` objects and plain
    integer epochs. Naive values are taken to be UTC.
    """

    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str):
        text = value.strip()
        if text[-1:] in {"Z", "z"}:
            text = text[:-1] + "+00:00"
        # fromisoformat before 3.11 only takes 3 or 6 fraction digits
        text = _FRACTION.sub(r"\1", text, count=1)
        try:
            moment = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp {value!r}") from exc
    else:
        raise ValueError(f"Invalid timestamp {value!r}")
    return calendar.timegm(moment.utctimetuple())


def format_timestamp(seconds: int) -> str:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime(TIMESTAMP_FORMAT)


class DurationRecord(BaseModel):
    """A contiguous interval attributed to one branch of a repository."""

    branch: str = Field(..., description="Branch the interval is attributed to.")
    start: int = Field(..., description="Interval start, UTC epoch seconds.")
    end: int = Field(..., description="Interval end, UTC epoch seconds.")

    @field_validator("branch")
    @classmethod
    def _validate_branch(cls, value: str) -> str:
        if not value:
            raise ValueError("Duration branch must not be empty")
        return value

    @field_validator("start", "end", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> int:
        return parse_timestamp(value)

    @field_serializer("start", "end")
    def _serialize_timestamp(self, value: int) -> str:
        return format_timestamp(value)

    @model_validator(mode="after")
    def _check_order(self) -> "DurationRecord":
        if self.end < self.start:
            raise ValueError(
                f"Duration for branch '{self.branch}' ends before it starts"
            )
        return self

    @property
    def seconds(self) -> int:
        return self.end - self.start


class RepositoryEntry(BaseModel):
    """All duration records owned by one repository, in insertion order."""

    durations: list[DurationRecord] = Field(default_factory=list)


class StoreDocument(BaseModel):
    """The single durable document backing the duration store."""

    version: int = Field(default=DOCUMENT_VERSION)
    repositories: dict[str, RepositoryEntry] = Field(default_factory=dict)

    @field_validator("version")
    @classmethod
    def _validate_version(cls, value: int) -> int:
        if value != DOCUMENT_VERSION:
            raise ValueError(f"Unsupported store document version {value}")
        return value


class ExportDocument(BaseModel):
    """Self-contained snapshot of the store with its generation time."""

    exported: int = Field(..., description="Snapshot time, UTC epoch seconds.")
    repositories: dict[str, RepositoryEntry] = Field(default_factory=dict)

    @field_validator("exported", mode="before")
    @classmethod
    def _parse_exported(cls, value: Any) -> int:
        return parse_timestamp(value)

    @field_serializer("exported")
    def _serialize_exported(self, value: int) -> str:
        return format_timestamp(value)


@dataclass(slots=True)
class BranchTotal:
    branch: str
    total_seconds: int
    records: int


__all__ = [
    "BranchTotal",
    "DurationRecord",
    "ExportDocument",
    "RepositoryEntry",
    "StoreDocument",
    "format_timestamp",
    "parse_timestamp",
]
