"""
Event deduplication for the events core stream.

The first record seen for an event key is the one written to the core file;
later records sharing the key go to the occurrences file only.
"""

from typing import Sequence

from refine.observability.logger import get_logger

logger = get_logger(__name__)


class EventDeduplicator:
    """
    Tracks which event keys have already been emitted.

    Optionally checks that later records of an event agree with the first one
    on the event-level columns. Disagreements are logged once per event and
    recorded, but never change what gets written.
    """

    def __init__(
        self,
        seen: set[str],
        event_field_indexes: Sequence[int] = (),
        fingerprints: dict[str, tuple[str | None, ...]] | None = None,
        inconsistent: set[str] | None = None,
    ):
        """
        Initialize the deduplicator.

        Args:
            seen: Run-scoped set of emitted event keys (mutated in place)
            event_field_indexes: Canonical column indexes that must agree within an event
            fingerprints: Run-scoped store of first-record values per event
            inconsistent: Run-scoped set receiving keys of inconsistent events
        """
        self.seen = seen
        self.event_field_indexes = tuple(event_field_indexes)
        self.fingerprints = fingerprints if fingerprints is not None else {}
        self.inconsistent = inconsistent if inconsistent is not None else set()

    def should_emit(self, key: str, record: Sequence[str | None] | None = None) -> bool:
        """
        Decide whether the record is the first one of its event.

        Args:
            key: Event key
            record: Canonical record, used only for the consistency check

        Returns:
            True (and the key is remembered) on first sight, False afterwards
        """
        if key in self.seen:
            if record is not None and self.event_field_indexes:
                self._check_consistency(key, record)
            return False

        self.seen.add(key)
        if record is not None and self.event_field_indexes:
            self.fingerprints[key] = self._fingerprint(record)
        return True

    def _fingerprint(self, record: Sequence[str | None]) -> tuple[str | None, ...]:
        return tuple(record[index] for index in self.event_field_indexes)

    def _check_consistency(self, key: str, record: Sequence[str | None]) -> None:
        if key in self.inconsistent:
            return
        expected = self.fingerprints.get(key)
        if expected is None or expected == self._fingerprint(record):
            return
        self.inconsistent.add(key)
        logger.warning(
            f"Event {key} has records disagreeing on event-level fields; keeping the first",
            extra={"event_id": key},
        )
