"""Decide whether a single answer is correct and how many points it earns."""

from __future__ import annotations

import logging

from quizroom.core.answer_matcher import is_answered
from quizroom.core.models import Answer, AnswerValue, Evaluation, Question, QuestionType

logger = logging.getLogger(__name__)

_NO_POINTS = Evaluation(is_correct=False, points_earned=0)


def normalize_choice(value: AnswerValue) -> AnswerValue:
    """Turn numeric strings and integral floats into ints.

    Anything that is not numeric is returned unchanged so it simply never
    equals an option index.
    """
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else value
    if isinstance(value, str):
        stripped = value.strip()
        try:
            return int(stripped)
        except ValueError:
            pass
        try:
            number = float(stripped)
        except ValueError:
            return value
        if number.is_integer():
            return int(number)
        return number
    return value


def evaluate(question: Question, answer: Answer | None) -> Evaluation:
    """Evaluate ``answer`` against ``question``.

    Short-answer questions are auto-graded as attempted: any non-empty text is
    marked correct and awaits manual review. A missing answer earns nothing.
    """
    if answer is None or not is_answered(answer.value):
        return _NO_POINTS

    if question.type.is_choice:
        submitted = normalize_choice(answer.value)
        expected = normalize_choice(question.correct_answer)
        is_correct = type(submitted) is type(expected) and submitted == expected
        logger.debug(
            "Question %s: %r == %r -> %s", question.id, submitted, expected, is_correct
        )
    elif question.type is QuestionType.SHORT_ANSWER:
        is_correct = bool(str(answer.value).strip())
    else:  # pragma: no cover - enum is exhaustive
        is_correct = False

    return Evaluation(
        is_correct=is_correct,
        points_earned=question.points if is_correct else 0,
    )
