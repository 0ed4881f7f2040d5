"""Score one participant attempt against a quiz."""

from __future__ import annotations

from datetime import datetime
import logging

from quizroom.constants.quiz_constants import (
    FAILING_GRADE,
    GRADE_THRESHOLDS,
    PERCENTAGE_DECIMALS,
)
from quizroom.core.answer_matcher import AnswerMatch, is_answered, match_all
from quizroom.core.correctness import evaluate
from quizroom.core.models import Participant, QuestionDetail, Quiz, ScoreRecord

logger = logging.getLogger(__name__)


def grade_for_percentage(percentage: float) -> str:
    for lower_bound, letter in GRADE_THRESHOLDS:
        if percentage >= lower_bound:
            return letter
    return FAILING_GRADE


def compute_percentage(score: int, total_possible_points: int) -> float:
    if total_possible_points <= 0:
        return 0.0
    return round(score / total_possible_points * 100, PERCENTAGE_DECIMALS)


def match_answers(quiz: Quiz, participant: Participant) -> list[AnswerMatch | None]:
    """Return the matched answer for every question, in declaration order."""
    return match_all(quiz.questions, participant.answers)


def auto_submission_time(quiz: Quiz, participant: Participant) -> datetime | None:
    """Completion time for an unsubmitted attempt whose questions are all answered.

    Returns the latest answer timestamp, or None when the attempt is already
    submitted, the quiz has no questions, or some question is still open.
    """
    if participant.is_submitted:
        return None
    return _latest_answer_time(match_answers(quiz, participant))


def _latest_answer_time(matches: list[AnswerMatch | None]) -> datetime | None:
    if not matches:
        return None
    if any(match is None or not is_answered(match.answer.value) for match in matches):
        return None
    return max(match.answer.timestamp for match in matches)


def score_participant(quiz: Quiz, participant: Participant) -> ScoreRecord:
    """Run every question of ``quiz`` against ``participant``'s answers.

    Questions are scored in declaration order, never in the randomized order a
    student may have seen. Neither argument is modified; an attempt that would
    be auto-submitted gets the latest answer time as ``submitted_at`` on the
    returned record only.
    """
    score = 0
    questions_answered = 0
    questions_correct = 0
    details: list[QuestionDetail] = []

    matches = match_answers(quiz, participant)
    for question, match in zip(quiz.questions, matches):
        answer = match.answer if match is not None else None
        answered = answer is not None and is_answered(answer.value)
        evaluation = evaluate(question, answer if answered else None)

        if answered:
            questions_answered += 1
        if evaluation.is_correct:
            questions_correct += 1
            score += evaluation.points_earned

        details.append(
            QuestionDetail(
                question_id=question.id,
                student_answer=answer.value if answered else None,
                correct_answer=question.correct_answer,
                is_correct=evaluation.is_correct,
                points_earned=evaluation.points_earned,
                max_points=question.points,
                answered=answered,
                matched_by=match.strategy if answered else None,
            )
        )

    total_possible_points = quiz.total_possible_points
    percentage = compute_percentage(score, total_possible_points)

    auto_time = None if participant.is_submitted else _latest_answer_time(matches)
    submitted_at = participant.submitted_at or auto_time

    record = ScoreRecord(
        participant_id=participant.id,
        participant_name=participant.name,
        identity_key=participant.identity_key,
        attempt_number=participant.attempt_number,
        score=score,
        total_possible_points=total_possible_points,
        percentage=percentage,
        grade=grade_for_percentage(percentage),
        questions_answered=questions_answered,
        questions_correct=questions_correct,
        total_questions=len(quiz.questions),
        details=tuple(details),
        submitted_at=submitted_at,
        auto_submitted=auto_time is not None,
        revision=participant.revision,
    )
    logger.debug(
        "Scored %s (attempt %d): %d/%d points, %.2f%%, grade %s",
        participant.name,
        participant.attempt_number,
        score,
        total_possible_points,
        percentage,
        record.grade,
    )
    return record
