"""Locate a participant's answer for a question.

Answers are matched on ``question_id``. When a quiz was edited after answers
were stored (or an older client sent ids in another shape) the exact lookup can
miss; the fallbacks below only consider *orphan* answers, i.e. answers whose id
belongs to no question of the quiz, so they can never steal an answer that
already matches another question exactly. Every fallback hit is logged.

``match_all`` resolves a whole quiz at once and hands each orphan to at
most one question.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass
import logging

from quizroom.core.models import Answer, AnswerValue, MatchStrategy, Question

logger = logging.getLogger(__name__)

# Higher ranks win when two questions compete for the same orphan.
_ID_SPECIFICITY = {
    MatchStrategy.POSITIONAL: 0,
    MatchStrategy.SUBSTRING: 1,
    MatchStrategy.SUFFIX: 2,
}


@dataclass(slots=True, frozen=True)
class AnswerMatch:
    answer: Answer
    strategy: MatchStrategy


def is_answered(value: AnswerValue) -> bool:
    """Return True when ``value`` counts as an actual response."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def find_answer(
    question: Question,
    answers: Sequence[Answer],
    question_index: int | None = None,
    known_question_ids: Collection[str] | None = None,
) -> AnswerMatch | None:
    """Find the answer for ``question`` in ``answers``.

    ``question_index`` and ``known_question_ids`` enable the fallback
    strategies; without them only exact matching is attempted. Use
    ``match_all`` when scoring several questions of one quiz.
    """
    match = _exact_match(question, answers)
    if match is not None or known_question_ids is None:
        return match

    pool = [i for i, a in enumerate(answers) if a.question_id not in known_question_ids]
    found = _fallback_match(question, question_index, answers, pool, rivals=())
    if found is None:
        return None
    return found[1]


def match_all(questions: Sequence[Question], answers: Sequence[Answer]) -> list[AnswerMatch | None]:
    """Match every question to at most one answer, in declaration order.

    Exact matches are settled first. Orphans are then handed out one question
    at a time and leave the pool once claimed, so one answer never counts for
    two questions.
    """
    matches = [_exact_match(question, answers) for question in questions]
    known_ids = {question.id for question in questions}
    pool = [i for i, a in enumerate(answers) if a.question_id not in known_ids]

    for index, question in enumerate(questions):
        if matches[index] is not None or not pool:
            continue
        rivals = [q for i, q in enumerate(questions) if i != index and matches[i] is None]
        found = _fallback_match(question, index, answers, pool, rivals)
        if found is not None:
            position, matches[index] = found
            pool.remove(position)
    return matches


def _exact_match(question: Question, answers: Sequence[Answer]) -> AnswerMatch | None:
    for answer in answers:
        if answer.question_id == question.id:
            return AnswerMatch(answer=answer, strategy=MatchStrategy.EXACT)
    return None


def _id_strategy(question_id: str, answer_id: str) -> MatchStrategy | None:
    if not answer_id:
        return None
    if answer_id.endswith(question_id) or question_id.endswith(answer_id):
        return MatchStrategy.SUFFIX
    if question_id in answer_id or answer_id in question_id:
        return MatchStrategy.SUBSTRING
    return None


def _claimed_more_specifically(
    answer: Answer, strategy: MatchStrategy, rivals: Sequence[Question]
) -> bool:
    rank = _ID_SPECIFICITY[strategy]
    for rival in rivals:
        rival_strategy = _id_strategy(rival.id, answer.question_id)
        if rival_strategy is not None and _ID_SPECIFICITY[rival_strategy] > rank:
            return True
    return False


def _fallback_match(
    question: Question,
    question_index: int | None,
    answers: Sequence[Answer],
    pool: Sequence[int],
    rivals: Sequence[Question],
) -> tuple[int, AnswerMatch] | None:
    """Pick an orphan from ``pool`` (indexes into ``answers``) for ``question``.

    An orphan that an unmatched rival question matches by a more specific
    strategy is left for that rival.
    """
    candidates: list[tuple[int, MatchStrategy]] = []
    if question_index is not None and question_index in pool:
        candidates.append((question_index, MatchStrategy.POSITIONAL))
    for strategy in (MatchStrategy.SUFFIX, MatchStrategy.SUBSTRING):
        candidates.extend(
            (position, strategy)
            for position in pool
            if _id_strategy(question.id, answers[position].question_id) is strategy
        )

    for position, strategy in candidates:
        answer = answers[position]
        if _claimed_more_specifically(answer, strategy, rivals):
            continue
        _log_fallback(question, answer, strategy)
        return position, AnswerMatch(answer=answer, strategy=strategy)
    return None


def _log_fallback(question: Question, answer: Answer, strategy: MatchStrategy) -> None:
    logger.warning(
        "Matched answer %r to question %r using %s fallback",
        answer.question_id,
        question.id,
        strategy.value,
    )
