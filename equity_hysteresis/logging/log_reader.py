"""
Log Reader - Streams transition records back from JSONL logs.

Never loads the whole history into memory. Corrupt lines are skipped
with a warning so one bad write cannot block replay.
"""

import json
import logging

from collections.abc import Generator
from pathlib import Path

from ..types import TransitionRecord, TransitionType

logger = logging.getLogger(__name__)


class TransitionLogReader:
    """
    Reads transition records from JSONL log files.

    Usage:
        reader = TransitionLogReader("./artifacts/transitions")
        for record in reader.stream(unit="U-17"):
            process(record)
    """

    def __init__(self, log_directory: str):
        self.log_directory = Path(log_directory)

    def stream(
        self,
        unit: str | None = None,
        transition_type: TransitionType | None = None,
    ) -> Generator[TransitionRecord, None, None]:
        """
        Stream records from every log file, oldest file first.

        Args:
            unit: Only records for this unit
            transition_type: Only records of this type

        Yields:
            TransitionRecord objects in file order
        """
        for log_file in self._log_files():
            yield from self._stream_file(log_file, unit, transition_type)

    def read_all(
        self,
        unit: str | None = None,
        transition_type: TransitionType | None = None,
    ) -> list[TransitionRecord]:
        """Collect streamed records into a list."""
        return list(self.stream(unit=unit, transition_type=transition_type))

    def count(self, unit: str | None = None) -> int:
        """Count records without keeping them."""
        count = 0
        for _ in self.stream(unit=unit):
            count += 1
        return count

    def _log_files(self) -> list[Path]:
        if not self.log_directory.exists():
            return []
        # Date-stamped names sort chronologically
        return sorted(self.log_directory.glob("transitions*.jsonl"))

    def _stream_file(
        self,
        log_file: Path,
        unit: str | None,
        transition_type: TransitionType | None,
    ) -> Generator[TransitionRecord, None, None]:
        with open(log_file, encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue

                try:
                    record = TransitionRecord.from_dict(json.loads(line))
                except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
                    logger.warning(f"Skipping corrupt line {log_file.name}:{line_number}: {e}")
                    continue

                if unit is not None and record.unit != unit:
                    continue
                if transition_type is not None and record.type != transition_type:
                    continue

                yield record
