"""Request-scoped session: owns the workspace and name registry for one batch."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Sequence
import logging
import shutil
import tempfile
import uuid

from photo_organizer.archiver import ArchiveBuilder, Entry
from photo_organizer.errors import (
    ArchiveBuildError,
    PhotoOrganizerError,
    ResourceReleaseError,
    TransportAbortError,
)
from photo_organizer.extractor import extract_metadata
from photo_organizer.grouper import resolve_group_key
from photo_organizer.models import ExtractedMetadata, Placement, UploadedItem
from photo_organizer.placement import NameRegistry, place


class SessionState(str, Enum):
    CREATED = "created"
    POPULATING = "populating"
    PACKAGING = "packaging"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = {SessionState.COMPLETED, SessionState.FAILED}


class Session:
    """One upload batch from workspace allocation to release.

    States run CREATED -> POPULATING -> PACKAGING -> COMPLETED, and any state
    may drop to FAILED. `release()` may be called any number of times; only
    the first call removes the workspace.
    """

    def __init__(self, workspace_root: str | None = None):
        self.session_id = uuid.uuid4().hex
        self.workspace = Path(tempfile.mkdtemp(prefix="photo-org-", dir=workspace_root))
        self.registry = NameRegistry()
        self.placements: List[Placement] = []
        self.state = SessionState.CREATED
        self.error: Optional[BaseException] = None
        self.bytes_sent = 0
        self._spooled: List[Path] = []
        self._released = False
        logging.info("Session %s created (workspace %s)", self.session_id, self.workspace)

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is not None:
            self.fail(exc)
        self.release()
        return False

    @property
    def released(self) -> bool:
        return self._released

    def _enter_state(self, state: SessionState) -> None:
        if self.state in TERMINAL_STATES:
            raise PhotoOrganizerError(f"Session {self.session_id} already {self.state.value}")
        self.state = state

    def fail(self, error: BaseException) -> None:
        """Move to FAILED; the first recorded error is kept."""
        if self.state == SessionState.COMPLETED:
            return
        if self.error is None:
            self.error = error
        self.state = SessionState.FAILED

    def populate(self, items: Sequence[UploadedItem], group_by_gps: bool, workers: int = 1) -> List[Placement]:
        """Place every item and spool its bytes into the workspace.

        Extraction is independent per item and may run in a thread pool;
        placement always runs in upload order because each collision check
        depends on every earlier placement.
        """
        self._enter_state(SessionState.POPULATING)
        if workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                metas: List[ExtractedMetadata] = list(pool.map(extract_metadata, [i.content for i in items]))
        else:
            metas = [extract_metadata(i.content) for i in items]

        for index, (item, meta) in enumerate(zip(items, metas)):
            group_key = resolve_group_key(meta, group_by_gps)
            virtual_path = place(group_key, item.name, self.registry)
            spool = self.workspace / f"{index:05d}.bin"
            spool.write_bytes(item.content)
            self._spooled.append(spool)
            self.placements.append(Placement(virtual_path=virtual_path, item=item,
                                             metadata=meta, group_key=group_key))
            logging.debug("Session %s: %s -> %s", self.session_id, item.name, virtual_path)
        return self.placements

    def entries(self) -> List[Entry]:
        return [(p.virtual_path, spool) for p, spool in zip(self.placements, self._spooled)]

    def stream_archive(self, builder: ArchiveBuilder | None = None) -> Iterator[bytes]:
        """Yield the archive for the placed items, releasing the session when done.

        Closing the generator before the end (the client went away) marks the
        session FAILED with a TransportAbortError. Build failures mark it
        FAILED and re-raise as ArchiveBuildError.
        """
        builder = builder or ArchiveBuilder()
        self._enter_state(SessionState.PACKAGING)
        stream = builder.stream(self.entries())
        try:
            for chunk in stream:
                self.bytes_sent += len(chunk)
                yield chunk
            self.state = SessionState.COMPLETED
            logging.info("Session %s completed: %d entries, %d bytes",
                         self.session_id, builder.entries_written, self.bytes_sent)
        except GeneratorExit:
            self.fail(TransportAbortError(f"client disconnected after {self.bytes_sent} bytes"))
            logging.info("Session %s aborted by client after %d bytes", self.session_id, self.bytes_sent)
            raise
        except ArchiveBuildError as exc:
            self.fail(exc)
            self._log_build_failure(exc)
            raise
        except Exception as exc:
            wrapped = ArchiveBuildError(str(exc), bytes_emitted=self.bytes_sent)
            self.fail(wrapped)
            self._log_build_failure(wrapped)
            raise wrapped from exc
        finally:
            stream.close()
            self.release()

    def _log_build_failure(self, exc: ArchiveBuildError) -> None:
        if exc.partial:
            logging.error("Session %s: archive truncated after %d bytes: %s",
                          self.session_id, exc.bytes_emitted, exc)
        else:
            logging.error("Session %s: archive build failed: %s", self.session_id, exc)

    def close(self) -> None:
        """Finalization hook: anything short of COMPLETED counts as an abort."""
        if self.state != SessionState.COMPLETED:
            self.fail(TransportAbortError("response closed before the archive finished"))
        self.release()

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            shutil.rmtree(self.workspace)
        except OSError as exc:
            err = ResourceReleaseError(f"could not remove {self.workspace}: {exc}")
            logging.error("Session %s: %s", self.session_id, err)
        else:
            logging.info("Session %s released (%s)", self.session_id, self.state.value)


def organize(items: Sequence[UploadedItem], group_by_gps: bool, workspace_root: str | None = None,
             builder: ArchiveBuilder | None = None) -> bytes:
    """Run a whole session synchronously and return the finished archive."""
    with Session(workspace_root=workspace_root) as session:
        session.populate(items, group_by_gps)
        return b"".join(session.stream_archive(builder))
