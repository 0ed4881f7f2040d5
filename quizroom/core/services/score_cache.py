"""Service holding computed score records apart from participant data."""

from __future__ import annotations

from threading import Lock

from quizroom.core.models import ScoreRecord

ScoreKey = tuple[str, int]


class ScoreCache:
    """Score records keyed by participant id and attempt number.

    Records are only trusted until the participant's answers change; writers
    must call ``invalidate`` whenever they mutate an attempt. Readers that
    pass the participant's current ``revision`` never get a record scored
    from an older copy, even one written back after the invalidation.
    """

    def __init__(self) -> None:
        self._records: dict[ScoreKey, ScoreRecord] = {}
        self._lock = Lock()

    def get(
        self,
        participant_id: str,
        attempt_number: int,
        revision: int | None = None,
    ) -> ScoreRecord | None:
        with self._lock:
            record = self._records.get((participant_id, attempt_number))
        if record is None or (revision is not None and record.revision != revision):
            return None
        return record

    def put(self, record: ScoreRecord) -> None:
        """Store ``record`` unless a record from a newer revision is cached."""
        key = (record.participant_id, record.attempt_number)
        with self._lock:
            existing = self._records.get(key)
            if existing is not None and existing.revision > record.revision:
                return
            self._records[key] = record

    def invalidate(self, participant_id: str, attempt_number: int) -> None:
        with self._lock:
            self._records.pop((participant_id, attempt_number), None)

    def invalidate_participants(self, participant_ids: set[str]) -> None:
        with self._lock:
            for key in [k for k in self._records if k[0] in participant_ids]:
                del self._records[key]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
