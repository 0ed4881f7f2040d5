"""Service for managing quiz sessions that students join."""

from __future__ import annotations

from datetime import datetime
from threading import Lock
from uuid import uuid4

from quizroom.core.errors import SessionNotFound
from quizroom.core.models import QuizSession, utc_now


class SessionRegistry:
    """Keeps one active session per quiz and remembers who joined it."""

    def __init__(self) -> None:
        self._sessions: dict[str, QuizSession] = {}
        self._lock = Lock()

    def open_session(self, quiz_id: str) -> QuizSession:
        """Return the quiz's active session, creating one if needed."""
        with self._lock:
            session = next(
                (s for s in self._sessions.values() if s.quiz_id == quiz_id and s.is_active),
                None,
            )
            if session is None:
                session = QuizSession(id=f"session_{uuid4().hex}", quiz_id=quiz_id)
                self._sessions[session.id] = session
            return session

    def get(self, session_id: str) -> QuizSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound("Quiz session not found")
        return session

    def add_participant(self, session_id: str, participant_id: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound("Quiz session not found")
            if participant_id not in session.participant_ids:
                session.participant_ids.append(participant_id)

    def mark_started(self, session_id: str, started_at: datetime | None = None) -> QuizSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound("Quiz session not found")
            session.started_at = started_at or utc_now()
            return session

    def close_sessions(self, quiz_id: str) -> None:
        with self._lock:
            for session in self._sessions.values():
                if session.quiz_id == quiz_id:
                    session.is_active = False

    def session_ids_for_quiz(self, quiz_id: str) -> set[str]:
        with self._lock:
            return {s.id for s in self._sessions.values() if s.quiz_id == quiz_id}

    def remove_quiz(self, quiz_id: str) -> set[str]:
        with self._lock:
            removed = {sid for sid, s in self._sessions.items() if s.quiz_id == quiz_id}
            for session_id in removed:
                del self._sessions[session_id]
        return removed
