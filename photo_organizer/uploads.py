"""Uploads: turn the multipart file parts of a request into UploadedItems."""
from __future__ import annotations

from typing import Iterable, List

from werkzeug.datastructures import FileStorage

from .errors import EmptyBatchError, UploadLimitError
from .models import UploadedItem

FALSE_VALUES = {"", "0", "false", "off", "no"}


def parse_flag(value: str | None) -> bool:
    """Checkbox semantics: absent or an explicit false-ish value means False."""
    if value is None:
        return False
    return value.strip().lower() not in FALSE_VALUES


def _read_limited(part: FileStorage, max_size: int) -> bytes:
    data = part.stream.read(max_size + 1)
    if len(data) > max_size:
        raise UploadLimitError(f"{part.filename or 'upload'} is larger than {max_size} bytes")
    return data


def collect_uploads(parts: Iterable[FileStorage], max_files: int, max_size: int) -> List[UploadedItem]:
    """Read every non-empty part into memory, enforcing the batch limits.

    Args:
        parts: file parts of the request (``request.files.getlist("photos")``)
        max_files: most files one batch may carry
        max_size: largest allowed file, in bytes

    Raises EmptyBatchError when no file was sent and UploadLimitError when a
    limit is exceeded.
    """
    items: List[UploadedItem] = []
    for part in parts:
        if part is None:
            continue
        content = _read_limited(part, max_size)
        # a form submitted without a file selected still sends one empty part
        if not part.filename and not content:
            continue
        if len(items) >= max_files:
            raise UploadLimitError(f"Too many files (limit {max_files})")
        items.append(UploadedItem(name=part.filename or "", content=content))

    if not items:
        raise EmptyBatchError("No files uploaded.")
    return items
