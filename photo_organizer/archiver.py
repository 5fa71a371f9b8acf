"""Archiver: stream a ZIP of (virtual path, content) entries chunk by chunk.

The zip is written to a sink that cannot seek, so every entry carries a data
descriptor and nothing has to be rewritten once emitted. After each piece of
input is compressed the bytes produced so far are yielded and dropped, which
means the consumer pulling from the generator paces the compression and only
one piece of output is ever held in memory. The central directory is written
once the last entry is done.
"""
from __future__ import annotations

import io
import logging
import zipfile
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Tuple, Union

from .errors import ArchiveBuildError

EntrySource = Union[bytes, bytearray, Path]
Entry = Tuple[str, EntrySource]


class _ChunkSink(io.RawIOBase):
    """Write-only, non-seekable buffer drained by the archive generator."""

    def __init__(self):
        super().__init__()
        self._chunks: List[bytes] = []

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        data = bytes(b)
        if data:
            self._chunks.append(data)
        return len(data)

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def _open_source(source: EntrySource) -> BinaryIO:
    if isinstance(source, Path):
        return open(source, "rb")
    return io.BytesIO(bytes(source))


class ArchiveBuilder:
    def __init__(self, compresslevel: int = 9, chunk_size: int = 64 * 1024,
                 compression: int = zipfile.ZIP_DEFLATED):
        self.compresslevel = compresslevel
        self.chunk_size = chunk_size
        self.compression = compression
        self.entries_written = 0
        self.bytes_emitted = 0

    def stream(self, entries: Iterable[Entry]) -> Iterator[bytes]:
        """Yield the archive bytes for `entries`, in insertion order.

        Raises ArchiveBuildError if an entry can't be read or compressed, or if
        the archive can't be finalized; ``bytes_emitted`` on the error tells
        whether part of the archive already went out.
        """
        sink = _ChunkSink()
        self.entries_written = 0
        self.bytes_emitted = 0
        current = None
        try:
            with zipfile.ZipFile(sink, mode="w", compression=self.compression,
                                 compresslevel=self.compresslevel) as zf:
                for virtual_path, source in entries:
                    current = virtual_path
                    # opening by name stamps the entry with the archive's compression settings
                    with _open_source(source) as src, zf.open(virtual_path, mode="w") as dst:
                        for piece in iter(lambda: src.read(self.chunk_size), b""):
                            dst.write(piece)
                            data = sink.drain()
                            if data:
                                self.bytes_emitted += len(data)
                                yield data
                    self.entries_written += 1
                current = None
            # central directory and end record
            tail = sink.drain()
        except Exception as exc:
            where = f"entry {current!r}" if current else "archive trailer"
            raise ArchiveBuildError(f"Failed writing {where}: {exc}", bytes_emitted=self.bytes_emitted) from exc
        if tail:
            self.bytes_emitted += len(tail)
            yield tail


def build_archive(entries: Iterable[Entry], **kwargs) -> bytes:
    """Build the whole archive in memory; for callers that don't stream."""
    builder = ArchiveBuilder(**kwargs)
    data = b"".join(builder.stream(entries))
    logging.debug("Built archive with %d entries (%d bytes)", builder.entries_written, len(data))
    return data
