"""Fold a participant's repeated attempts into best and latest views."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from quizroom.core.errors import MaxAttemptsReached, ValidationError
from quizroom.core.models import ScoreRecord


def best_attempt(attempts: Sequence[ScoreRecord]) -> ScoreRecord:
    """Highest score wins; ties go to the earliest attempt."""
    if not attempts:
        raise ValueError("At least one attempt is required.")
    return min(attempts, key=lambda record: (-record.score, record.attempt_number))


def latest_attempt(attempts: Sequence[ScoreRecord]) -> ScoreRecord:
    if not attempts:
        raise ValueError("At least one attempt is required.")
    return max(attempts, key=lambda record: record.attempt_number)


def next_attempt_number(attempt_numbers: Iterable[int], max_attempts: int) -> int:
    """Number for a new attempt, refusing to go past ``max_attempts``."""
    numbers = list(attempt_numbers)
    candidate = max(numbers, default=0) + 1
    if len(numbers) >= max_attempts or candidate > max_attempts:
        raise MaxAttemptsReached(
            f"You have reached the maximum number of attempts ({max_attempts}) for this quiz"
        )
    return candidate


class AttemptSet:
    """Attempts of one participant identity, capped at ``max_attempts``."""

    def __init__(self, identity_key: str, max_attempts: int) -> None:
        if max_attempts < 1:
            raise ValidationError("max_attempts must be at least 1.")
        self._identity_key = identity_key
        self._max_attempts = max_attempts
        self._attempts: dict[int, ScoreRecord] = {}

    @classmethod
    def from_records(
        cls, identity_key: str, max_attempts: int, records: Iterable[ScoreRecord]
    ) -> "AttemptSet":
        attempt_set = cls(identity_key, max_attempts)
        for record in records:
            attempt_set.add(record)
        return attempt_set

    @property
    def identity_key(self) -> str:
        return self._identity_key

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def add(self, record: ScoreRecord) -> None:
        if record.attempt_number < 1:
            raise ValidationError("Attempt numbers start at 1.")
        if record.attempt_number > self._max_attempts:
            raise MaxAttemptsReached(
                f"Attempt {record.attempt_number} exceeds the maximum of {self._max_attempts}."
            )
        existing = self._attempts.get(record.attempt_number)
        if existing is not None and existing.participant_id != record.participant_id:
            raise ValidationError(
                f"Attempt {record.attempt_number} is already recorded for this participant."
            )
        self._attempts[record.attempt_number] = record

    def attempts(self) -> list[ScoreRecord]:
        return [self._attempts[number] for number in sorted(self._attempts)]

    def count(self) -> int:
        return len(self._attempts)

    def is_full(self) -> bool:
        return self.count() >= self._max_attempts

    def next_attempt_number(self) -> int:
        return next_attempt_number(self._attempts, self._max_attempts)

    def best(self) -> ScoreRecord:
        return best_attempt(self.attempts())

    def latest(self) -> ScoreRecord:
        return latest_attempt(self.attempts())
