"""Service storing participant attempts with single-writer updates."""

from __future__ import annotations

from collections.abc import Callable
import copy
from threading import Lock
from typing import TypeVar

from quizroom.core.errors import ParticipantNotFound, ValidationError
from quizroom.core.models import Participant

T = TypeVar("T")


class ParticipantRepository:
    """In-memory participant store with atomic per-participant updates.

    ``update`` serializes writers per participant id and applies the mutator
    to a private copy, so a mutator that raises leaves the stored record as it
    was. Updates to different participants never wait on each other.
    """

    def __init__(self) -> None:
        self._participants: dict[str, Participant] = {}
        self._record_locks: dict[str, Lock] = {}
        self._lock = Lock()

    def add(self, participant: Participant) -> Participant:
        with self._lock:
            if participant.id in self._participants:
                raise ValidationError(f"Participant '{participant.id}' already exists.")
            self._participants[participant.id] = copy.deepcopy(participant)
            self._record_locks[participant.id] = Lock()
        return copy.deepcopy(participant)

    def get(self, participant_id: str) -> Participant:
        with self._lock:
            participant = self._participants.get(participant_id)
            if participant is None:
                raise ParticipantNotFound("Participant not found")
            return copy.deepcopy(participant)

    def list_by_session(self, session_id: str) -> list[Participant]:
        return self.list_where(lambda p: p.session_id == session_id)

    def list_by_sessions(self, session_ids: set[str]) -> list[Participant]:
        return self.list_where(lambda p: p.session_id in session_ids)

    def list_by_identity(self, identity_key: str) -> list[Participant]:
        return self.list_where(lambda p: p.identity_key == identity_key)

    def list_where(self, predicate: Callable[[Participant], bool]) -> list[Participant]:
        with self._lock:
            matches = [copy.deepcopy(p) for p in self._participants.values() if predicate(p)]
        return sorted(matches, key=lambda p: (p.joined_at, p.id))

    def update(
        self,
        participant_id: str,
        mutator: Callable[[Participant], T],
    ) -> tuple[Participant, T]:
        """Run ``mutator`` on a copy of the participant and store the result.

        The copy already carries the next revision when the mutator sees it.
        Returns the stored copy together with whatever the mutator returned.
        """
        with self._lock:
            record_lock = self._record_locks.get(participant_id)
        if record_lock is None:
            raise ParticipantNotFound("Participant not found")

        with record_lock:
            with self._lock:
                current = self._participants.get(participant_id)
            if current is None:
                raise ParticipantNotFound("Participant not found")
            working = copy.deepcopy(current)
            working.revision = current.revision + 1
            result = mutator(working)
            if working.id != participant_id:
                raise ValidationError("Participant id cannot change during an update.")
            with self._lock:
                self._participants[participant_id] = working
            return copy.deepcopy(working), result

    def delete_where(self, predicate: Callable[[Participant], bool]) -> list[str]:
        with self._lock:
            doomed = [pid for pid, p in self._participants.items() if predicate(p)]
            for participant_id in doomed:
                del self._participants[participant_id]
                del self._record_locks[participant_id]
        return doomed

    def __len__(self) -> int:
        with self._lock:
            return len(self._participants)
