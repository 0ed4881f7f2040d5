"""JSON views of domain objects for the HTTP layer."""

from __future__ import annotations

from datetime import datetime, timezone

from quizroom.core.markdown_renderer import renderer
from quizroom.core.models import (
    AttemptSummary,
    Participant,
    Question,
    Quiz,
    ResultsAggregate,
    ScoreRecord,
)


def iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc).isoformat()
    return value.astimezone(timezone.utc).isoformat()


def serialize_question(question: Question) -> dict[str, object]:
    return {
        "id": question.id,
        "text": question.text,
        "type": question.type.value,
        "options": list(question.options),
        "correct_answer": question.correct_answer,
        "points": question.points,
    }


def serialize_quiz(quiz: Quiz, include_questions: bool = True) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "instructor_id": quiz.instructor_id,
        "time_limit_minutes": quiz.time_limit_minutes,
        "room_code": quiz.room_code,
        "is_active": quiz.is_active,
        "allow_retries": quiz.allow_retries,
        "randomize_questions": quiz.randomize_questions,
        "max_attempts": quiz.max_attempts,
        "duration_value": quiz.duration_value,
        "duration_unit": quiz.duration_unit,
        "expires_at": iso(quiz.expires_at),
        "created_at": iso(quiz.created_at),
        "updated_at": iso(quiz.updated_at),
        "total_possible_points": quiz.total_possible_points,
        "question_count": len(quiz.questions),
    }
    if include_questions:
        payload["questions"] = [serialize_question(q) for q in quiz.questions]
    return payload


def serialize_student_questions(questions: list[Question]) -> list[dict[str, object]]:
    """Questions as shown while taking the quiz; correct answers stay hidden."""
    return [renderer.render_question(question) for question in questions]


def serialize_participant(participant: Participant) -> dict[str, object]:
    return {
        "id": participant.id,
        "name": participant.name,
        "session_id": participant.session_id,
        "quiz_id": participant.quiz_id,
        "attempt_number": participant.attempt_number,
        "joined_at": iso(participant.joined_at),
        "submitted_at": iso(participant.submitted_at),
        "answers": [
            {
                "question_id": answer.question_id,
                "value": answer.value,
                "timestamp": iso(answer.timestamp),
            }
            for answer in participant.answers
        ],
    }


def serialize_score_record(record: ScoreRecord) -> dict[str, object]:
    return {
        "participant_id": record.participant_id,
        "name": record.participant_name,
        "attempt_number": record.attempt_number,
        "score": record.score,
        "total_possible_points": record.total_possible_points,
        "percentage": record.percentage,
        "grade": record.grade,
        "questions_answered": record.questions_answered,
        "questions_correct": record.questions_correct,
        "total_questions": record.total_questions,
        "submitted_at": iso(record.submitted_at),
        "auto_submitted": record.auto_submitted,
        "calculated_at": iso(record.calculated_at),
        "score_details": [
            {
                "question_id": detail.question_id,
                "student_answer": detail.student_answer,
                "correct_answer": detail.correct_answer,
                "is_correct": detail.is_correct,
                "points_earned": detail.points_earned,
                "max_points": detail.max_points,
                "answered": detail.answered,
                "matched_by": detail.matched_by.value if detail.matched_by else None,
            }
            for detail in record.details
        ],
    }


def serialize_attempt_summary(summary: AttemptSummary) -> dict[str, object]:
    return {
        "name": summary.participant_name,
        "attempt_count": summary.attempt_count,
        "best": serialize_score_record(summary.best),
        "latest": serialize_score_record(summary.latest),
    }


def serialize_results(results: ResultsAggregate) -> dict[str, object]:
    return {
        "quiz": serialize_quiz(results.quiz),
        "mode": results.mode.value,
        "view": results.view.value,
        "participants": [serialize_score_record(r) for r in results.participants],
        "attempts": [serialize_attempt_summary(s) for s in results.attempt_summaries],
        "average_score": results.average_score,
        "average_percentage": results.average_percentage,
        "total_possible_points": results.total_possible_points,
        "pass_count": results.pass_count,
        "fail_count": results.fail_count,
        "grade_distribution": dict(results.grade_distribution),
    }
