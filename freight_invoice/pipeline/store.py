"""Caller-owned result collection and active rate schedule."""
import logging
from typing import Iterable, Optional

from ..core.models import ExtractedRecord, RateSchedule
from .comparator import annotate

logger = logging.getLogger(__name__)


class ResultStore:
    """Accumulates extracted records, de-duplicated by (invoice number, filename)."""

    def __init__(self) -> None:
        self._records: list[ExtractedRecord] = []
        self._keys: set[tuple[str, Optional[str]]] = set()

    def add(self, records: ExtractedRecord | Iterable[ExtractedRecord]) -> list[ExtractedRecord]:
        """Append records whose key is not already stored; return the ones added."""
        if isinstance(records, ExtractedRecord):
            records = [records]

        added = []
        for record in records:
            if record.dedup_key in self._keys:
                logger.debug(f"Skipping duplicate record {record.dedup_key}")
                continue
            self._keys.add(record.dedup_key)
            self._records.append(record)
            added.append(record)
        return added

    def clear(self) -> None:
        self._records.clear()
        self._keys.clear()

    @property
    def records(self) -> list[ExtractedRecord]:
        return list(self._records)

    def compared(self, schedule: Optional[RateSchedule]) -> list[ExtractedRecord]:
        """Stored records with comparisons against ``schedule`` attached."""
        return annotate(self._records, schedule)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(list(self._records))


class RateScheduleContext:
    """Holds at most one active rate schedule.

    Comparisons are computed on demand from :attr:`active`, so replacing or
    clearing the schedule affects every comparison made afterwards.
    """

    def __init__(self, schedule: Optional[RateSchedule] = None) -> None:
        self._active = schedule

    @property
    def active(self) -> Optional[RateSchedule]:
        return self._active

    def set(self, schedule: Optional[RateSchedule]) -> None:
        self._active = schedule

    def clear(self) -> None:
        self._active = None
