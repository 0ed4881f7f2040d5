"""Assemble the per-quiz results view from participant attempts."""

from __future__ import annotations

from collections.abc import Sequence
import logging

from quizroom.constants.quiz_constants import FAILING_GRADE, GRADE_LETTERS
from quizroom.core.attempt_reconciler import AttemptSet
from quizroom.core.models import (
    AttemptSummary,
    Participant,
    Quiz,
    ResultsAggregate,
    ResultsMode,
    ResultsView,
    ScoreRecord,
)
from quizroom.core.participant_scorer import score_participant
from quizroom.core.services.score_cache import ScoreCache

logger = logging.getLogger(__name__)


def aggregate(
    quiz: Quiz,
    participants: Sequence[Participant],
    mode: ResultsMode = ResultsMode.RAW,
    view: ResultsView = ResultsView.ATTEMPTS,
    score_cache: ScoreCache | None = None,
) -> ResultsAggregate:
    """Score ``participants`` and summarize them.

    In ``RAW`` mode cached records are reused and only cache misses are scored.
    ``FORCE_RECALCULATE`` scores every participant from its answers and
    replaces whatever the cache held.
    """
    records = [_score(quiz, participant, mode, score_cache) for participant in participants]
    summaries = summarize_attempts(quiz, records)

    if view is ResultsView.BEST:
        reported = [summary.best for summary in summaries]
    else:
        reported = records

    grade_distribution = {letter: 0 for letter in GRADE_LETTERS}
    for record in reported:
        grade_distribution[record.grade] = grade_distribution.get(record.grade, 0) + 1
    fail_count = grade_distribution.get(FAILING_GRADE, 0)

    logger.info(
        "%s results for %d participants in quiz %s",
        "Recalculated" if mode is ResultsMode.FORCE_RECALCULATE else "Collected",
        len(participants),
        quiz.title,
    )

    return ResultsAggregate(
        quiz=quiz,
        participants=reported,
        attempt_summaries=summaries,
        average_score=_mean([record.score for record in reported]),
        average_percentage=_mean([record.percentage for record in reported]),
        total_possible_points=quiz.total_possible_points,
        pass_count=len(reported) - fail_count,
        fail_count=fail_count,
        grade_distribution=grade_distribution,
        mode=mode,
        view=view,
    )


def summarize_attempts(quiz: Quiz, records: Sequence[ScoreRecord]) -> list[AttemptSummary]:
    """Group records by identity and pick the best and latest attempt of each."""
    grouped: dict[str, list[ScoreRecord]] = {}
    for record in records:
        grouped.setdefault(record.identity_key or record.participant_id, []).append(record)

    summaries: list[AttemptSummary] = []
    for identity_key, group in grouped.items():
        attempts = _one_record_per_attempt(group)
        limit = max(quiz.attempt_limit, max(r.attempt_number for r in attempts))
        attempt_set = AttemptSet.from_records(identity_key, limit, attempts)
        latest = attempt_set.latest()
        summaries.append(
            AttemptSummary(
                identity_key=identity_key,
                participant_name=latest.participant_name,
                attempt_count=attempt_set.count(),
                best=attempt_set.best(),
                latest=latest,
            )
        )
    return summaries


def _one_record_per_attempt(records: list[ScoreRecord]) -> list[ScoreRecord]:
    by_number: dict[int, ScoreRecord] = {}
    for record in records:
        existing = by_number.get(record.attempt_number)
        if existing is None:
            by_number[record.attempt_number] = record
            continue
        logger.warning(
            "Duplicate records for attempt %d of %s (%s, %s); keeping the higher score",
            record.attempt_number,
            record.participant_name,
            existing.participant_id,
            record.participant_id,
        )
        if record.score > existing.score:
            by_number[record.attempt_number] = record
    return list(by_number.values())


def _score(
    quiz: Quiz,
    participant: Participant,
    mode: ResultsMode,
    score_cache: ScoreCache | None,
) -> ScoreRecord:
    if mode is ResultsMode.RAW and score_cache is not None:
        cached = score_cache.get(participant.id, participant.attempt_number, participant.revision)
        if cached is not None:
            return cached

    record = score_participant(quiz, participant)
    if score_cache is not None:
        score_cache.put(record)
    return record


def _mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)
