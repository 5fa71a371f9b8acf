"""Grouper: turn extracted metadata into the folder segments an upload is filed under."""
from __future__ import annotations

from .models import ExtractedMetadata, GpsBucket, GroupKey, UNKNOWN_DATE


def format_gps_segment(gps: GpsBucket) -> str:
    """Return ``gps_<lat>_<lon>`` with both coordinates printed to two decimals.

    Every bucket goes through the same format so equal buckets always map to
    the same folder, e.g. ``gps_40.71_-74.01``.
    """
    return f"gps_{gps.lat:.2f}_{gps.lon:.2f}"


def resolve_group_key(meta: ExtractedMetadata, use_gps: bool) -> GroupKey:
    """Return ``(date,)`` or ``(date, gps_segment)`` when GPS grouping applies."""
    date_segment = meta.date_key or UNKNOWN_DATE
    if use_gps and meta.gps is not None:
        return (date_segment, format_gps_segment(meta.gps))
    return (date_segment,)
