"""Bounded in-memory store of failure records.

Records are keyed by (event_id, strategy_name) and kept in least recently
updated order so the oldest entry is evicted first once the store is full.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterable, Iterator
from datetime import datetime, timedelta
from typing import NamedTuple

from registrar.core.logging import get_logger
from registrar.schemas.registration import FailureRecord

logger = get_logger(__name__)

__all__ = ["FailureHistory", "FailureKey"]


class FailureKey(NamedTuple):
    """Identity of a failure record."""

    event_id: str
    strategy_name: str

    @classmethod
    def of(cls, record: FailureRecord) -> FailureKey:
        return cls(record.event_id, record.strategy_name)


class FailureHistory:
    """LRU-bounded failure records with a retention window."""

    def __init__(self, max_entries: int = 1000):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._records: OrderedDict[FailureKey, FailureRecord] = OrderedDict()

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[FailureRecord]:
        return iter(list(self._records.values()))

    def get(self, key: FailureKey) -> FailureRecord | None:
        return self._records.get(key)

    def record_failure(self, record: FailureRecord) -> None:
        """Insert or replace the record for its key, evicting the oldest if full."""
        key = FailureKey.of(record)
        self._records[key] = record
        self._records.move_to_end(key)

        while len(self._records) > self.max_entries:
            evicted_key, _ = self._records.popitem(last=False)
            logger.debug(
                "failure_record_evicted_capacity",
                event_id=evicted_key.event_id,
                strategy=evicted_key.strategy_name,
                max_entries=self.max_entries,
            )

    def discard(self, key: FailureKey) -> None:
        self._records.pop(key, None)

    def load(self, records: Iterable[FailureRecord]) -> int:
        """Merge durable records, keeping whichever copy is newer.

        Returns:
            Number of records accepted
        """
        accepted = 0
        for record in sorted(records, key=lambda r: r.last_failure_at):
            existing = self._records.get(FailureKey.of(record))
            if existing is not None and existing.last_failure_at >= record.last_failure_at:
                continue
            self.record_failure(record)
            accepted += 1
        return accepted

    def is_cooling_down(self, key: FailureKey, now: datetime, cooldown: timedelta) -> bool:
        """Check whether the last failure for ``key`` is inside the cool-down window."""
        record = self._records.get(key)
        # Guard: never failed
        if record is None:
            return False
        return now - record.last_failure_at < cooldown

    def evict_older_than(self, cutoff: datetime) -> int:
        """Drop records whose last failure is before ``cutoff``.

        Returns:
            Number of records removed
        """
        stale = [key for key, record in self._records.items() if record.last_failure_at < cutoff]
        for key in stale:
            del self._records[key]
        return len(stale)

    def clear(self) -> None:
        self._records.clear()
