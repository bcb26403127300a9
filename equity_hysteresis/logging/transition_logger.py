"""
Transition Logger - Append-only JSONL log of transition records.

Design principles:
- Never lose data (append-only, fsync on flush)
- Always replayable (one transition per line, oldest first)
- Files follow snapshot time, not wall-clock time, so replaying an old
  feed lands in the day it describes
"""

import json
import os
import threading

from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from ..types import TransitionRecord


class TransitionLogger:
    """
    Thread-safe, buffered writer of transition records.

    Usage:
        with TransitionLogger("./artifacts/transitions") as log:
            log.log_many(result.records)
    """

    def __init__(
        self,
        log_directory: str,
        buffer_size: int = 50,
        rotate_daily: bool = True,
        params_version: str | None = None,
    ):
        """
        Initialize the transition logger.

        Args:
            log_directory: Directory for log files
            buffer_size: Records held in memory before a flush
            rotate_daily: One file per snapshot day instead of a single file
            params_version: Stamped on every line when given
        """
        self.log_directory = Path(log_directory)
        self.log_directory.mkdir(parents=True, exist_ok=True)

        self.buffer_size = buffer_size
        self.rotate_daily = rotate_daily
        self.params_version = params_version

        self._pending: list[tuple[Path, str]] = []
        self._lock = threading.Lock()
        self._written = 0

    @property
    def written(self) -> int:
        """Records flushed to disk so far."""
        return self._written

    def log(self, record: TransitionRecord) -> None:
        """Queue one record; flushes once the buffer is full."""
        entry: dict[str, Any] = record.to_dict()
        if self.params_version is not None:
            entry["params_version"] = self.params_version
        line = json.dumps(entry, separators=(",", ":"))

        with self._lock:
            self._pending.append((self.log_path_for(record.ts), line))
            if len(self._pending) >= self.buffer_size:
                self._flush()

    def log_many(self, records: Iterable[TransitionRecord]) -> int:
        """Queue several records; returns how many were queued."""
        count = 0
        for record in records:
            self.log(record)
            count += 1
        return count

    def flush(self) -> None:
        with self._lock:
            self._flush()

    def _flush(self) -> None:
        """Write pending lines grouped by target file. Caller holds the lock."""
        if not self._pending:
            return

        by_file: dict[Path, list[str]] = {}
        for path, line in self._pending:
            by_file.setdefault(path, []).append(line)

        for path, lines in by_file.items():
            with open(path, "a", encoding="utf-8") as f:
                f.write("\n".join(lines) + "\n")
                f.flush()
                os.fsync(f.fileno())

        self._written += len(self._pending)
        self._pending.clear()

    def close(self) -> None:
        self.flush()

    def __enter__(self) -> "TransitionLogger":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def log_path_for(self, ts: datetime | None) -> Path:
        """File a record with timestamp ts is appended to (today if unknown)."""
        if not self.rotate_daily:
            return self.log_directory / "transitions.jsonl"
        day = (ts or datetime.now()).strftime("%Y-%m-%d")
        return self.log_directory / f"transitions_{day}.jsonl"

    @property
    def current_log_path(self) -> Path:
        return self.log_path_for(None)
