"""File-backed duration store with locked, atomically published updates."""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, Iterator

from pydantic import ValidationError

from .models import (
    BranchTotal,
    DurationRecord,
    ExportDocument,
    RepositoryEntry,
    StoreDocument,
)

if TYPE_CHECKING:  # pragma: no cover
    from ..config import BranchClockSettings

logger = logging.getLogger(__name__)

_LOCK_POLL_INTERVAL = 0.05


class StoreError(RuntimeError):
    """Base class for duration store errors."""


class StoreUnavailableError(StoreError):
    """Raised when the data directory cannot be created, read or written."""


class StoreCorruptedError(StoreError):
    """Raised when the durable document cannot be parsed or validated."""


class StoreWriteError(StoreError):
    """Raised when an update cannot be locked or published."""


def parse_document(raw: str, *, source: Path | str = "<memory>") -> StoreDocument:
    """Parse and validate a serialized store document."""

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StoreCorruptedError(f"Store document {source} is not valid JSON: {exc}") from exc
    try:
        return StoreDocument.model_validate(payload)
    except ValidationError as exc:
        raise StoreCorruptedError(f"Store document {source} failed validation: {exc}") from exc


def serialize_document(document: StoreDocument | ExportDocument) -> str:
    return json.dumps(document.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"


def write_document(path: Path, document: StoreDocument, *, retries: int = 3) -> None:
    """Publish ``document`` at ``path`` all-or-nothing.

    The payload is staged in a temporary file next to ``path``, synced and
    swapped in with ``os.replace``. Each failed attempt removes its staging
    file; after ``retries`` failures the previous file is left untouched and
    :class:`StoreWriteError` is raised.
    """

    payload = serialize_document(document)
    last_error: OSError | None = None

    for attempt in range(1, retries + 1):
        staging: str | None = None
        try:
            fd, staging = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(staging, path)
            return
        except OSError as exc:
            last_error = exc
            logger.warning(
                "Store publish attempt failed",
                extra={"path": str(path), "attempt": attempt, "error": str(exc)},
            )
            if staging is not None:
                try:
                    os.unlink(staging)
                except FileNotFoundError:
                    pass

    raise StoreWriteError(
        f"Could not publish store document {path} after {retries} attempts: {last_error}"
    ) from last_error


def _last_for_branch(durations: list[DurationRecord], branch: str) -> DurationRecord | None:
    for record in reversed(durations):
        if record.branch == branch:
            return record
    return None


def _totals(records: Iterable[DurationRecord]) -> list[BranchTotal]:
    totals: dict[str, BranchTotal] = {}
    for record in records:
        total = totals.get(record.branch)
        if total is None:
            total = totals[record.branch] = BranchTotal(branch=record.branch, total_seconds=0, records=0)
        total.total_seconds += record.seconds
        total.records += 1
    return sorted(totals.values(), key=lambda item: (-item.total_seconds, item.branch))


class DurationStore:
    """Durable mapping from repository path to per-branch duration records.

    Every operation reads the document from disk; nothing is cached between
    calls because other shell sessions update the same file.
    """

    def __init__(
        self,
        path: Path,
        *,
        merge_threshold: int = 1800,
        write_retries: int = 3,
        lock_timeout: float = 5.0,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._path = Path(path)
        self._lock_path = self._path.with_name(self._path.name + ".lock")
        self._merge_threshold = merge_threshold
        self._write_retries = write_retries
        self._lock_timeout = lock_timeout
        self._clock = clock or (lambda: int(time.time()))

    @classmethod
    def from_settings(cls, settings: "BranchClockSettings") -> "DurationStore":
        return cls(
            settings.store_path,
            merge_threshold=settings.duration_merge_threshold,
            write_retries=settings.write_retries,
            lock_timeout=settings.lock_timeout,
        )

    @property
    def path(self) -> Path:
        return self._path

    @property
    def merge_threshold(self) -> int:
        return self._merge_threshold

    def ensure_available(self) -> None:
        """Create the data directory and verify the store can be written."""

        directory = self._path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreUnavailableError(f"Cannot create data directory {directory}: {exc}") from exc
        if not os.access(directory, os.W_OK | os.X_OK):
            raise StoreUnavailableError(f"Data directory {directory} is not writable")
        if self._path.exists() and not os.access(self._path, os.R_OK):
            raise StoreUnavailableError(f"Store document {self._path} is not readable")

    def load(self) -> StoreDocument:
        """Read the current durable state; a missing file is an empty store."""

        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return StoreDocument()
        except OSError as exc:
            raise StoreUnavailableError(f"Cannot read store document {self._path}: {exc}") from exc
        return parse_document(raw, source=self._path)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(self._lock_path), os.O_CREAT | os.O_RDWR, 0o644)
        except OSError as exc:
            raise StoreUnavailableError(f"Cannot open lock file {self._lock_path}: {exc}") from exc

        try:
            deadline = time.monotonic() + self._lock_timeout
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise StoreWriteError(
                            f"Timed out after {self._lock_timeout}s waiting for {self._lock_path}"
                        ) from None
                    time.sleep(_LOCK_POLL_INTERVAL)
                except OSError as exc:
                    raise StoreUnavailableError(f"Cannot lock {self._lock_path}: {exc}") from exc
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)

    @contextmanager
    def transaction(self) -> Iterator[StoreDocument]:
        """Read-modify-write the document under the store lock.

        The yielded document is published when the block exits normally and
        discarded if it raises.
        """

        with self._locked():
            document = self.load()
            yield document
            write_document(self._path, document, retries=self._write_retries)

    def record(self, repository: str, branch: str, sample_start: int, seconds: int) -> DurationRecord:
        """Add ``seconds`` of activity starting at ``sample_start`` to a branch.

        The sample extends the branch's most recently appended record when the
        gap since that record's end is within the merge threshold; the
        extended end is ``sample_start + seconds``. Otherwise a new record is
        appended.
        """

        if seconds < 0:
            raise ValueError("seconds must be >= 0")
        new_end = sample_start + seconds

        with self.transaction() as document:
            entry = document.repositories.setdefault(repository, RepositoryEntry())
            last = _last_for_branch(entry.durations, branch)
            if last is not None and sample_start - last.end <= self._merge_threshold:
                # an out-of-order sample may not move the end before the start
                last.end = max(new_end, last.start)
                result = last
                action = "merged"
            else:
                result = DurationRecord(branch=branch, start=sample_start, end=new_end)
                entry.durations.append(result)
                action = "appended"

        logger.debug(
            "Recorded duration",
            extra={
                "repository": repository,
                "branch": branch,
                "seconds": seconds,
                "action": action,
            },
        )
        return result.model_copy()

    def aggregate(self, repository: str | None = None, branch: str | None = None) -> list[BranchTotal]:
        """Per-branch totals for one repository, or all repositories combined."""

        document = self.load()
        if repository is None:
            entries = list(document.repositories.values())
        else:
            entry = document.repositories.get(repository)
            entries = [entry] if entry is not None else []

        return _totals(
            record
            for entry in entries
            for record in entry.durations
            if branch is None or record.branch == branch
        )

    def aggregate_by_repository(self, branch: str | None = None) -> dict[str, list[BranchTotal]]:
        """Per-branch totals for every repository that has matching records."""

        document = self.load()
        results: dict[str, list[BranchTotal]] = {}
        for repository in sorted(document.repositories):
            totals = _totals(
                record
                for record in document.repositories[repository].durations
                if branch is None or record.branch == branch
            )
            if totals:
                results[repository] = totals
        return results

    def export(self, now: int | None = None) -> ExportDocument:
        document = self.load()
        return ExportDocument(
            exported=self._clock() if now is None else now,
            repositories=document.repositories,
        )

    def clear_repository(self, repository: str) -> bool:
        """Remove every record of one repository; returns whether it existed."""

        with self.transaction() as document:
            existed = document.repositories.pop(repository, None) is not None
        logger.info("Cleared repository", extra={"repository": repository, "existed": existed})
        return existed

    def clear_all(self) -> None:
        """Replace the store with an empty document without reading it first."""

        with self._locked():
            write_document(self._path, StoreDocument(), retries=self._write_retries)
        logger.info("Cleared all repositories", extra={"path": str(self._path)})


__all__ = [
    "DurationStore",
    "StoreCorruptedError",
    "StoreError",
    "StoreUnavailableError",
    "StoreWriteError",
    "parse_document",
    "serialize_document",
    "write_document",
]
