"""Persisted pending-file queue for resumable directory jobs."""

import logging
import os
import tempfile
from pathlib import Path

from .config import QUEUE_FILENAME

logger = logging.getLogger(__name__)


def _unique(paths) -> list[Path]:
    seen: set[Path] = set()
    result = []
    for p in paths:
        if p not in seen:
            seen.add(p)
            result.append(p)
    return result


class BatchQueue:
    """Pending files for one directory job, backed by a plain text record.

    The record lives at `<directory>/.lock`, one absolute path per line. Its
    presence means a batch is in progress: it is the exact resume point and is
    rewritten after every completed file. It is removed once the queue is empty.
    """

    def __init__(self, directory: Path, pending: list[Path], resumed: bool = False):
        self.directory = directory
        self.resumed = resumed
        self._pending = _unique(pending)

    @property
    def record_path(self) -> Path:
        return self.directory / QUEUE_FILENAME

    @classmethod
    def load_or_create(cls, directory: Path, source_extension: str) -> "BatchQueue":
        """Resume from an existing record, or scan the directory and persist a new one."""
        directory = directory.resolve()
        record = directory / QUEUE_FILENAME

        if record.exists():
            with open(record, "r", encoding="utf-8") as f:
                # Only the newline is stripped: paths may end in spaces
                pending = [Path(line.rstrip("\n")) for line in f if line.rstrip("\n")]
            queue = cls(directory, pending, resumed=True)
            logger.info("Resuming from %s with %d files remaining", record, len(queue))
            return queue

        pending = sorted(
            p.resolve() for p in directory.rglob(f"*{source_extension}")
            if p.is_file() and p.name != QUEUE_FILENAME
        )
        queue = cls(directory, pending)
        if pending:
            queue.checkpoint()
            logger.info("Found %d %s files to process", len(pending), source_extension)
        return queue

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, path: Path) -> bool:
        return path in self._pending

    @property
    def pending(self) -> list[Path]:
        return list(self._pending)

    def complete(self, path: Path):
        """Drop a successfully converted file and checkpoint immediately."""
        self._pending = [p for p in self._pending if p != path]
        self.checkpoint()

    def checkpoint(self):
        """Rewrite the record wholesale: temp file in the same directory, then os.replace."""
        fd, tmp_name = tempfile.mkstemp(
            prefix=QUEUE_FILENAME + ".", suffix=".tmp", dir=self.directory,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for p in self._pending:
                    f.write(f"{p}\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.record_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def finish(self) -> bool:
        """Remove the record if nothing is pending. Returns True when removed."""
        if self._pending:
            return False
        self.record_path.unlink(missing_ok=True)
        logger.info("Directory processing complete, removed %s", self.record_path)
        return True
