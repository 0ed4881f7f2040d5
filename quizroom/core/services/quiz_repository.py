"""Service for managing quiz definitions."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
import random
from threading import Lock
from uuid import uuid4

from quizroom.constants.quiz_constants import (
    DEFAULT_DURATION_UNIT,
    DEFAULT_DURATION_VALUE,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TIME_LIMIT_MINUTES,
    DURATION_UNITS,
    ROOM_CODE_ALPHABET,
    ROOM_CODE_LENGTH,
    TRUE_FALSE_OPTIONS,
)
from quizroom.core.correctness import normalize_choice
from quizroom.core.errors import QuizNotFound, ValidationError
from quizroom.core.models import Question, QuestionType, Quiz, utc_now


@dataclass(slots=True)
class QuizDraft:
    """Instructor-supplied quiz fields before ids and timestamps exist."""

    title: str
    questions: list[Question]
    description: str = ""
    instructor_id: str = "instructor1"
    time_limit_minutes: int = DEFAULT_TIME_LIMIT_MINUTES
    allow_retries: bool = False
    randomize_questions: bool = False
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    duration_value: int = DEFAULT_DURATION_VALUE
    duration_unit: str = DEFAULT_DURATION_UNIT


class QuizRepository:
    """Stores quizzes and keeps their questions valid and uniquely identified."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._quizzes: dict[str, Quiz] = {}
        self._lock = Lock()
        self._rng = rng or random.Random()

    def create(self, draft: QuizDraft, now: datetime | None = None) -> Quiz:
        title = draft.title.strip() if draft.title else ""
        if not title or not draft.questions:
            raise ValidationError("Title and at least one question are required")
        max_attempts = self._validate_max_attempts(draft.max_attempts)
        duration_unit = self._validate_duration_unit(draft.duration_unit)
        duration_value = self._validate_positive(draft.duration_value, "Duration")
        time_limit = self._validate_positive(draft.time_limit_minutes, "Time limit")
        questions = self._prepare_questions(draft.questions, preserve_ids=False)

        now = now or utc_now()
        with self._lock:
            quiz = Quiz(
                id=uuid4().hex,
                title=title,
                description=draft.description or "",
                instructor_id=draft.instructor_id,
                time_limit_minutes=time_limit,
                questions=questions,
                room_code=self._unique_room_code(),
                is_active=True,
                allow_retries=draft.allow_retries,
                randomize_questions=draft.randomize_questions,
                max_attempts=max_attempts,
                duration_value=duration_value,
                duration_unit=duration_unit,
                expires_at=compute_expiry(now, duration_value, duration_unit),
                created_at=now,
                updated_at=now,
            )
            self._quizzes[quiz.id] = quiz
        return quiz

    def get(self, quiz_id: str) -> Quiz:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            raise QuizNotFound("Quiz not found")
        return quiz

    def find_by_room_code(self, room_code: str) -> Quiz:
        wanted = room_code.strip().upper()
        with self._lock:
            quiz = next((q for q in self._quizzes.values() if q.room_code.upper() == wanted), None)
        if quiz is None:
            raise QuizNotFound("Quiz not found")
        return quiz

    def list_all(self) -> list[Quiz]:
        with self._lock:
            return sorted(self._quizzes.values(), key=lambda q: q.created_at)

    def update(self, quiz_id: str, changes: dict[str, object], now: datetime | None = None) -> Quiz:
        """Apply instructor edits; questions keep their ids when they carry one.

        Returns the replaced quiz. Changing the duration restarts the expiry
        window from ``now``.
        """
        now = now or utc_now()
        with self._lock:
            current = self._quizzes.get(quiz_id)
            if current is None:
                raise QuizNotFound("Quiz not found")

            fields: dict[str, object] = {}
            if "title" in changes:
                title = str(changes["title"] or "").strip()
                if not title:
                    raise ValidationError("Title must not be empty.")
                fields["title"] = title
            for name in ("description", "allow_retries", "randomize_questions", "is_active"):
                if name in changes:
                    fields[name] = changes[name]
            if "time_limit_minutes" in changes:
                fields["time_limit_minutes"] = self._validate_positive(
                    changes["time_limit_minutes"], "Time limit"
                )
            if "max_attempts" in changes:
                fields["max_attempts"] = self._validate_max_attempts(changes["max_attempts"])
            if "questions" in changes:
                questions = list(changes["questions"])  # type: ignore[arg-type]
                if not questions:
                    raise ValidationError("A quiz needs at least one question.")
                fields["questions"] = self._prepare_questions(questions, preserve_ids=True)

            duration_value = current.duration_value
            duration_unit = current.duration_unit
            if "duration_value" in changes:
                duration_value = self._validate_positive(changes["duration_value"], "Duration")
            if "duration_unit" in changes:
                duration_unit = self._validate_duration_unit(changes["duration_unit"])
            if (duration_value, duration_unit) != (current.duration_value, current.duration_unit):
                fields["duration_value"] = duration_value
                fields["duration_unit"] = duration_unit
                fields["expires_at"] = compute_expiry(now, duration_value, duration_unit)

            updated = replace(current, updated_at=now, **fields)
            self._quizzes[quiz_id] = updated
            return updated

    def set_active(self, quiz_id: str, is_active: bool, now: datetime | None = None) -> Quiz:
        with self._lock:
            current = self._quizzes.get(quiz_id)
            if current is None:
                raise QuizNotFound("Quiz not found")
            updated = replace(current, is_active=is_active, updated_at=now or utc_now())
            self._quizzes[quiz_id] = updated
            return updated

    def delete(self, quiz_id: str) -> Quiz:
        with self._lock:
            quiz = self._quizzes.pop(quiz_id, None)
        if quiz is None:
            raise QuizNotFound("Quiz not found")
        return quiz

    def _unique_room_code(self) -> str:
        taken = {quiz.room_code for quiz in self._quizzes.values()}
        while True:
            code = "".join(self._rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))
            if code not in taken:
                return code

    def _prepare_questions(self, questions: list[Question], preserve_ids: bool) -> list[Question]:
        prepared: list[Question] = []
        seen_ids: set[str] = set()
        batch = uuid4().hex[:8]
        for index, question in enumerate(questions):
            question_id = question.id.strip() if preserve_ids and question.id else ""
            if not question_id:
                question_id = f"q{batch}_{index}"
            if question_id in seen_ids:
                raise ValidationError(f"Duplicate question id '{question_id}'.")
            seen_ids.add(question_id)
            prepared.append(self._prepare_question(question, question_id))
        return prepared

    @staticmethod
    def _prepare_question(question: Question, question_id: str) -> Question:
        """Validate and normalize a question before storage."""
        text = question.text.strip()
        if not text:
            raise ValidationError("Question text must not be empty.")
        if not isinstance(question.points, int) or isinstance(question.points, bool) or question.points <= 0:
            raise ValidationError("Question points must be a positive integer.")

        question_type = QuestionType(question.type)
        options = [option.strip() for option in question.options]
        correct_answer = question.correct_answer

        if question_type is QuestionType.TRUE_FALSE and not options:
            options = list(TRUE_FALSE_OPTIONS)
        if question_type.is_choice:
            if len(options) < 2 or any(not option for option in options):
                raise ValidationError("Choice questions need at least two non-empty options.")
            correct_answer = normalize_choice(correct_answer)
            if not isinstance(correct_answer, int) or isinstance(correct_answer, bool) or not 0 <= correct_answer < len(options):
                raise ValidationError(
                    f"Correct answer must be an option index between 0 and {len(options) - 1}."
                )
        else:
            options = []
            correct_answer = "" if correct_answer is None else str(correct_answer)

        return Question(
            id=question_id,
            text=text,
            type=question_type,
            options=options,
            correct_answer=correct_answer,
            points=question.points,
        )

    @staticmethod
    def _validate_max_attempts(value: object) -> int:
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ValidationError("Max attempts must be at least 1.")
        return value

    @staticmethod
    def _validate_duration_unit(value: object) -> str:
        if value not in DURATION_UNITS:
            raise ValidationError(f"Duration unit must be one of: {', '.join(DURATION_UNITS)}.")
        return str(value)

    @staticmethod
    def _validate_positive(value: object, label: str) -> int:
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ValidationError(f"{label} must be a positive integer.")
        return value


def compute_expiry(start: datetime, duration_value: int, duration_unit: str) -> datetime:
    if duration_unit == "minutes":
        return start + timedelta(minutes=duration_value)
    return start + timedelta(days=duration_value)
