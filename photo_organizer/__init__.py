"""Photo Organizer package - extract metadata, group, place and zip uploaded photos."""

from .extractor import extract_metadata
from .grouper import resolve_group_key
from .placement import NameRegistry, place
from .archiver import ArchiveBuilder, build_archive
from .services.session import Session, SessionState, organize

__all__ = [
    "extract_metadata",
    "resolve_group_key",
    "NameRegistry",
    "place",
    "ArchiveBuilder",
    "build_archive",
    "Session",
    "SessionState",
    "organize",
]
