"""Size-rotated log file sink."""

import logging
import os
import threading
from pathlib import Path

from harness_observability.core.config import parse_file_size

logger = logging.getLogger(__name__)


class RotatingLogFile:
    """Append-only log file with numbered rotation.

    When an append finds the active file larger than ``max_bytes``,
    the file is rotated first: ``file.(N-1)`` becomes ``file.N`` down to
    ``file`` becoming ``file.1``, and anything beyond ``max_files`` is
    deleted. All appends and rotations run under one lock, so lines from
    different threads never interleave.

    I/O failures are reported on the module logger and never raised.

    Args:
        path: Path of the active log file. Parent directories are created.
        max_file_size: Size threshold such as ``"10MB"``, or a byte count.
        max_files: Number of files kept including the active one.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        max_file_size: str | int = "10MB",
        max_files: int = 5,
    ) -> None:
        self._path = Path(path)
        self._max_bytes = parse_file_size(max_file_size)
        self._max_files = max_files
        self._lock = threading.Lock()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.touch(exist_ok=True)
        except OSError:
            logger.exception("Failed to initialize log file %s", self._path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    def configure(self, max_file_size: str | int, max_files: int) -> None:
        with self._lock:
            self._max_bytes = parse_file_size(max_file_size)
            self._max_files = max_files

    def write(self, line: str) -> None:
        """Append ``line`` plus a newline, rotating first if the file is full."""
        with self._lock:
            try:
                self._rotate_if_needed()
            except OSError:
                logger.exception("Failed to rotate log file %s", self._path)
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as handle:
                    handle.write(line + "\n")
            except OSError:
                logger.exception("Failed to write to log file %s", self._path)

    def size(self) -> int | None:
        try:
            return self._path.stat().st_size
        except FileNotFoundError:
            return None
        except OSError:
            logger.exception("Failed to stat log file %s", self._path)
            return None

    def read_lines(self) -> list[str]:
        with self._lock:
            try:
                text = self._path.read_text(encoding="utf-8", errors="replace")
            except FileNotFoundError:
                return []
            except OSError:
                logger.exception("Failed to read log file %s", self._path)
                return []
        return [line for line in text.split("\n") if line.strip()]

    def rotated_paths(self) -> list[Path]:
        """Return the existing rotated siblings, newest first."""
        paths = []
        for index in range(1, max(self._max_files, 1)):
            candidate = self._sibling(index)
            if candidate.exists():
                paths.append(candidate)
        return paths

    def _sibling(self, index: int) -> Path:
        return self._path.with_name(f"{self._path.name}.{index}")

    def _rotate_if_needed(self) -> None:
        current = self.size()
        if current is None or current <= self._max_bytes:
            return
        if self._max_files <= 1:
            self._path.unlink()
            return
        oldest = self._sibling(self._max_files - 1)
        if oldest.exists():
            oldest.unlink()
        for index in range(self._max_files - 2, 0, -1):
            source = self._sibling(index)
            if source.exists():
                source.rename(self._sibling(index + 1))
        self._path.rename(self._sibling(1))
