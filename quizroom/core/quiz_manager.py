"""Business logic for quizzes, joins, answer submission and results."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from itertools import count
import logging
import random
from threading import Lock

from quizroom.constants.quiz_constants import ATTEMPT_IDENTITY_POLICY
from quizroom.core.attempt_reconciler import next_attempt_number
from quizroom.core.errors import ParticipantNotFound, QuizExpired, ValidationError
from quizroom.core.identity_resolver import participant_identity_key, resolve_participant
from quizroom.core.models import (
    Answer,
    AnswerValue,
    Participant,
    Question,
    Quiz,
    QuizSession,
    ResultsAggregate,
    ResultsMode,
    ResultsView,
    ScoreRecord,
    SubmissionContext,
    SubmissionReceipt,
    utc_now,
)
from quizroom.core.participant_scorer import auto_submission_time, score_participant
from quizroom.core.results_aggregator import aggregate
from quizroom.core.services.participant_repository import ParticipantRepository
from quizroom.core.services.quiz_repository import QuizDraft, QuizRepository
from quizroom.core.services.score_cache import ScoreCache
from quizroom.core.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class JoinResult:
    quiz: Quiz
    session: QuizSession
    participant: Participant
    rejoined: bool = False


@dataclass(slots=True, frozen=True)
class StartedQuiz:
    quiz: Quiz
    session: QuizSession
    questions: list[Question]
    time_remaining_seconds: int


class QuizManager:
    """Facade over the quiz, session, participant and score services.

    Quiz edits and joins are serialized by one lock. Answer submission and
    finalization go through the participant repository, which serializes
    writes per participant only.
    """

    def __init__(
        self,
        identity_policy: str = ATTEMPT_IDENTITY_POLICY,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._lock = Lock()
        self._clock = clock
        self._rng = rng or random.Random()
        self._identity_policy = identity_policy
        self._participant_counter = count(1)

        # Services
        self._quizzes = QuizRepository(rng=self._rng)
        self._sessions = SessionRegistry()
        self._participants = ParticipantRepository()
        self._scores = ScoreCache()

    @property
    def score_cache(self) -> ScoreCache:
        return self._scores

    # --- Quiz Repository Delegation ---

    def create_quiz(self, draft: QuizDraft) -> Quiz:
        quiz = self._quizzes.create(draft, now=self._clock())
        logger.info(
            "Created quiz %r with %d questions (room code %s)",
            quiz.title,
            len(quiz.questions),
            quiz.room_code,
        )
        return quiz

    def get_quiz(self, quiz_id: str) -> Quiz:
        return self._quizzes.get(quiz_id)

    def list_quizzes(self) -> list[Quiz]:
        return self._quizzes.list_all()

    def list_active_quizzes(self) -> list[Quiz]:
        active: list[Quiz] = []
        for quiz in self._quizzes.list_all():
            if quiz.is_active and quiz.is_expired(self._clock()):
                self._deactivate_expired(quiz)
                continue
            if quiz.is_active:
                active.append(quiz)
        return active

    def update_quiz(self, quiz_id: str, changes: dict[str, object]) -> Quiz:
        with self._lock:
            quiz = self._quizzes.update(quiz_id, changes, now=self._clock())
            if "questions" in changes:
                # Cached scores were computed against the old questions.
                self._scores.invalidate_participants(self._participant_ids_for_quiz(quiz_id))
        logger.info("Updated quiz %s (%s)", quiz.id, ", ".join(sorted(changes)) or "no fields")
        return quiz

    def set_quiz_status(self, quiz_id: str, is_active: bool) -> Quiz:
        with self._lock:
            quiz = self._quizzes.set_active(quiz_id, is_active, now=self._clock())
            if not is_active:
                self._sessions.close_sessions(quiz_id)
        logger.info("Quiz %s is now %s", quiz.id, "active" if is_active else "inactive")
        return quiz

    def delete_quiz(self, quiz_id: str) -> None:
        with self._lock:
            quiz = self._quizzes.delete(quiz_id)
            session_ids = self._sessions.remove_quiz(quiz_id)
            removed = self._participants.delete_where(lambda p: p.session_id in session_ids)
            self._scores.invalidate_participants(set(removed))
        logger.info("Deleted quiz %r and %d participant records", quiz.title, len(removed))

    def check_room_code(self, room_code: str) -> Quiz:
        quiz = self._quizzes.find_by_room_code(room_code)
        self._ensure_not_expired(quiz)
        return quiz

    # --- Join Workflow ---

    def join_quiz(
        self,
        room_code: str,
        participant_name: str,
        context: SubmissionContext | None = None,
    ) -> JoinResult:
        """Join a quiz by room code.

        A student who still has an unfinished attempt gets that attempt back.
        A new attempt is only created once the previous one was submitted and
        the quiz's attempt limit allows it.
        """
        if not room_code or not participant_name or not participant_name.strip():
            raise ValidationError("Room code and participant name are required")
        context = context or SubmissionContext()
        name = participant_name.strip()

        with self._lock:
            quiz = self._quizzes.find_by_room_code(room_code)
            self._ensure_not_expired(quiz)
            if not quiz.is_active:
                logger.info("%s joined inactive quiz %r and will wait for it to open", name, quiz.title)

            identity_key = participant_identity_key(
                quiz.id, name, context.ip_address, self._identity_policy
            )
            previous = self._participants.list_by_identity(identity_key)
            unfinished = [p for p in previous if not p.is_submitted]
            if unfinished:
                participant = max(unfinished, key=lambda p: p.attempt_number)
                logger.info(
                    "%s rejoined quiz %r on attempt %d",
                    name,
                    quiz.title,
                    participant.attempt_number,
                )
                session = self._sessions.get(participant.session_id)
                return JoinResult(quiz=quiz, session=session, participant=participant, rejoined=True)

            attempt_number = next_attempt_number(
                (p.attempt_number for p in previous), quiz.attempt_limit
            )
            session = self._sessions.open_session(quiz.id)
            participant = self._participants.add(
                Participant(
                    id=f"participant_{next(self._participant_counter)}",
                    name=name,
                    session_id=session.id,
                    quiz_id=quiz.id,
                    identity_key=identity_key,
                    attempt_number=attempt_number,
                    joined_at=self._clock(),
                    ip_address=context.ip_address,
                    device_fingerprint=context.device_fingerprint,
                )
            )
            self._sessions.add_participant(session.id, participant.id)

        logger.info("%s joined quiz %r (attempt %d)", name, quiz.title, attempt_number)
        return JoinResult(quiz=quiz, session=session, participant=participant)

    def start_quiz(self, session_id: str) -> StartedQuiz:
        session = self._sessions.get(session_id)
        quiz = self._quizzes.get(session.quiz_id)
        self._ensure_not_expired(quiz)
        session = self._sessions.mark_started(session_id, self._clock())
        questions = list(quiz.questions)
        if quiz.randomize_questions:
            self._rng.shuffle(questions)
        return StartedQuiz(
            quiz=quiz,
            session=session,
            questions=questions,
            time_remaining_seconds=quiz.time_limit_minutes * 60,
        )

    # --- Answers And Scoring ---

    def submit_answer(
        self,
        session_id: str,
        question_id: str,
        value: AnswerValue,
        context: SubmissionContext | None = None,
        participant_id: str | None = None,
    ) -> SubmissionReceipt:
        """Store one answer for the resolved participant without scoring it.

        Answers to a submitted attempt are not accepted. Answering the last
        open question auto-submits the attempt at that answer's timestamp.
        """
        if not session_id or not question_id:
            raise ValidationError("Session ID and question ID are required")

        target = self._resolve(session_id, context, participant_id)
        quiz = self._quizzes.get(target.quiz_id)
        self._ensure_not_expired(quiz)
        if question_id not in {question.id for question in quiz.questions}:
            logger.warning("Answer for unknown question %r in quiz %s", question_id, quiz.id)

        def apply(participant: Participant) -> tuple[bool, bool]:
            if participant.is_submitted:
                return False, False
            participant.upsert_answer(Answer(question_id=question_id, value=value, timestamp=self._clock()))
            self._scores.invalidate(participant.id, participant.attempt_number)
            completed_at = auto_submission_time(quiz, participant)
            if completed_at is not None:
                participant.submitted_at = completed_at
            return True, completed_at is not None

        stored, (accepted, auto_submitted) = self._participants.update(target.id, apply)
        if not accepted:
            logger.info("Ignored answer from %s: attempt already submitted", stored.name)
        elif auto_submitted:
            logger.info("%s answered every question; attempt auto-submitted", stored.name)
        return SubmissionReceipt(
            accepted=accepted,
            answers_count=len(stored.answers),
            participant_id=stored.id,
            auto_submitted=auto_submitted,
        )

    def finalize_submission(
        self,
        session_id: str,
        context: SubmissionContext | None = None,
        participant_id: str | None = None,
    ) -> ScoreRecord:
        """Score the resolved attempt, mark it submitted and cache the record."""
        if not session_id:
            raise ValidationError("Session ID is required")

        target = self._resolve(session_id, context, participant_id)
        quiz = self._quizzes.get(target.quiz_id)

        def apply(participant: Participant) -> ScoreRecord:
            if participant.submitted_at is None:
                participant.submitted_at = auto_submission_time(quiz, participant) or self._clock()
            return score_participant(quiz, participant)

        _, record = self._participants.update(target.id, apply)
        self._scores.put(record)
        logger.info(
            "%s submitted: %d/%d points (%.2f%%) - Grade: %s",
            record.participant_name,
            record.score,
            record.total_possible_points,
            record.percentage,
            record.grade,
        )
        return record

    def get_results(
        self,
        quiz_id: str,
        mode: ResultsMode = ResultsMode.RAW,
        view: ResultsView = ResultsView.ATTEMPTS,
    ) -> ResultsAggregate:
        quiz = self._quizzes.get(quiz_id)
        participants = self._participants.list_by_sessions(self._sessions.session_ids_for_quiz(quiz_id))
        return aggregate(quiz, participants, mode=mode, view=view, score_cache=self._scores)

    def get_participant(self, participant_id: str) -> Participant:
        return self._participants.get(participant_id)

    # --- Helpers ---

    def _resolve(
        self,
        session_id: str,
        context: SubmissionContext | None,
        participant_id: str | None,
    ) -> Participant:
        if participant_id:
            participant = self._participants.get(participant_id)
            if participant.session_id != session_id:
                raise ParticipantNotFound("Participant not found in this session")
            return participant
        return resolve_participant(session_id, self._participants.list_by_session(session_id), context)

    def _ensure_not_expired(self, quiz: Quiz) -> None:
        if quiz.is_expired(self._clock()):
            self._deactivate_expired(quiz)
            raise QuizExpired("This quiz has expired and is no longer available")

    def _deactivate_expired(self, quiz: Quiz) -> None:
        if quiz.is_active:
            self._quizzes.set_active(quiz.id, False, now=self._clock())
            self._sessions.close_sessions(quiz.id)
            logger.info("Quiz %r expired at %s and was deactivated", quiz.title, quiz.expires_at)

    def _participant_ids_for_quiz(self, quiz_id: str) -> set[str]:
        session_ids = self._sessions.session_ids_for_quiz(quiz_id)
        return {p.id for p in self._participants.list_by_sessions(session_ids)}
