"""Domain models for the quiz results service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

AnswerValue = str | int | float | None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    SHORT_ANSWER = "short-answer"

    @property
    def is_choice(self) -> bool:
        return self in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE)


class ResultsMode(str, Enum):
    """How the aggregator treats previously cached score records."""

    RAW = "raw"
    FORCE_RECALCULATE = "forceRecalculate"


class ResultsView(str, Enum):
    """Which participant records the aggregator reports."""

    ATTEMPTS = "attempts"
    BEST = "best"


class MatchStrategy(str, Enum):
    EXACT = "exact"
    POSITIONAL = "positional"
    SUFFIX = "suffix"
    SUBSTRING = "substring"


@dataclass(slots=True)
class Question:
    """A single quiz question.

    ``correct_answer`` holds the zero-based option index for choice questions
    (possibly as a numeric string) and an instructor reference text for
    short-answer questions.
    """

    id: str
    text: str
    type: QuestionType
    options: list[str] = field(default_factory=list)
    correct_answer: AnswerValue = None
    points: int = 1


@dataclass(slots=True)
class Quiz:
    id: str
    title: str
    questions: list[Question]
    description: str = ""
    instructor_id: str = "instructor1"
    time_limit_minutes: int = 30
    room_code: str = ""
    is_active: bool = True
    allow_retries: bool = False
    randomize_questions: bool = False
    max_attempts: int = 1
    duration_value: int = 30
    duration_unit: str = "days"
    expires_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def total_possible_points(self) -> int:
        return sum(question.points for question in self.questions)

    @property
    def attempt_limit(self) -> int:
        """Attempts a single identity may make; retries off means one."""
        return self.max_attempts if self.allow_retries else 1

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utc_now()) > self.expires_at


@dataclass(slots=True)
class Answer:
    """A submitted answer value, exactly as the client sent it."""

    question_id: str
    value: AnswerValue
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class Participant:
    """One attempt by one student. Scoring fields live in ``ScoreRecord``.

    ``revision`` goes up with every stored update.
    """

    id: str
    name: str
    session_id: str
    quiz_id: str = ""
    identity_key: str = ""
    answers: list[Answer] = field(default_factory=list)
    attempt_number: int = 1
    joined_at: datetime = field(default_factory=utc_now)
    submitted_at: datetime | None = None
    ip_address: str = ""
    device_fingerprint: str = ""
    revision: int = 0

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None

    def upsert_answer(self, answer: Answer) -> bool:
        """Store ``answer``, replacing any earlier one for the same question.

        Returns True when the question had no answer before.
        """
        for index, existing in enumerate(self.answers):
            if existing.question_id == answer.question_id:
                self.answers[index] = answer
                return False
        self.answers.append(answer)
        return True


@dataclass(slots=True)
class SubmissionContext:
    """Request metadata used to tell duplicate participant records apart."""

    ip_address: str = ""
    device_fingerprint: str = ""


@dataclass(slots=True)
class QuizSession:
    id: str
    quiz_id: str
    started_at: datetime = field(default_factory=utc_now)
    is_active: bool = True
    participant_ids: list[str] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class Evaluation:
    is_correct: bool
    points_earned: int


@dataclass(slots=True, frozen=True)
class QuestionDetail:
    """Per-question audit entry of a score record."""

    question_id: str
    student_answer: AnswerValue
    correct_answer: AnswerValue
    is_correct: bool
    points_earned: int
    max_points: int
    answered: bool
    matched_by: MatchStrategy | None = None


@dataclass(slots=True, frozen=True)
class ScoreRecord:
    """Computed result of scoring one attempt of one participant.

    ``revision`` is the participant revision the record was computed from.
    """

    participant_id: str
    participant_name: str
    identity_key: str
    attempt_number: int
    score: int
    total_possible_points: int
    percentage: float
    grade: str
    questions_answered: int
    questions_correct: int
    total_questions: int
    details: tuple[QuestionDetail, ...] = ()
    submitted_at: datetime | None = None
    auto_submitted: bool = False
    revision: int = 0
    calculated_at: datetime = field(default_factory=utc_now, compare=False)


@dataclass(slots=True, frozen=True)
class AttemptSummary:
    identity_key: str
    participant_name: str
    attempt_count: int
    best: ScoreRecord
    latest: ScoreRecord


@dataclass(slots=True)
class ResultsAggregate:
    """Per-quiz results view. Built on request and never stored."""

    quiz: Quiz
    participants: list[ScoreRecord]
    attempt_summaries: list[AttemptSummary]
    average_score: float
    average_percentage: float
    total_possible_points: int
    pass_count: int
    fail_count: int
    grade_distribution: dict[str, int]
    mode: ResultsMode = ResultsMode.RAW
    view: ResultsView = ResultsView.ATTEMPTS


@dataclass(slots=True, frozen=True)
class SubmissionReceipt:
    accepted: bool
    answers_count: int
    participant_id: str
    auto_submitted: bool = False
