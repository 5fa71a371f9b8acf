"""Value types passed between the extractor, grouper, planner and session."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

UNKNOWN_DATE = "unknown-date"

GroupKey = Tuple[str, ...]


@dataclass(frozen=True)
class UploadedItem:
    name: str
    content: bytes


@dataclass(frozen=True)
class GpsBucket:
    """Latitude/longitude already rounded to two decimal places."""

    lat: float
    lon: float


@dataclass(frozen=True)
class ExtractedMetadata:
    date_key: str = UNKNOWN_DATE
    gps: Optional[GpsBucket] = None

    @classmethod
    def unknown(cls) -> "ExtractedMetadata":
        return cls(date_key=UNKNOWN_DATE, gps=None)


@dataclass(frozen=True)
class Placement:
    virtual_path: str
    item: UploadedItem
    metadata: ExtractedMetadata
    group_key: GroupKey
