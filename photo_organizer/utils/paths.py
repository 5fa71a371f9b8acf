"""Helpers for building the virtual paths used inside the output archive."""
from __future__ import annotations

import posixpath
import re
from typing import Iterable, Tuple

PLACEHOLDER_NAME = "photo.jpg"

_SEPARATORS = re.compile(r"[\\/]+")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f]")


def clean_filename(value: str | None) -> str:
    """Reduce an uploaded filename to a single safe path component.

    Browsers on Windows may send ``C:\\Users\\me\\IMG_1.jpg``; only the last
    component is kept. Empty names and ``.``/``..`` fall back to
    ``PLACEHOLDER_NAME``.
    """
    if not value:
        return PLACEHOLDER_NAME
    name = _SEPARATORS.split(value)[-1]
    name = _CONTROL_CHARS.sub("", name).strip()
    if not name or name in (".", ".."):
        return PLACEHOLDER_NAME
    return name


def split_name(filename: str) -> Tuple[str, str]:
    """``IMG_1.jpg`` -> ``("IMG_1", ".jpg")``; dotfiles keep their full name as the base."""
    return posixpath.splitext(filename)


def join_virtual(segments: Iterable[str], filename: str) -> str:
    return "/".join([*segments, filename])
