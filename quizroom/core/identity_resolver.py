"""Work out which participant record a submission belongs to.

Joins assign a deterministic identity key, and clients that send their
``participant_id`` never reach the heuristics here. The heuristics remain for
submissions that only carry a session id while several participant records
share that session.
"""

from __future__ import annotations

from collections.abc import Sequence
import hashlib
import logging
import re

from quizroom.constants.quiz_constants import ATTEMPT_IDENTITY_POLICY
from quizroom.core.errors import ParticipantNotFound, ValidationError
from quizroom.core.models import Participant, SubmissionContext

logger = logging.getLogger(__name__)

_TRAILING_NUMBER = re.compile(r"(\d+)$")


def normalize_name(name: str) -> str:
    return " ".join(name.split()).casefold()


def participant_identity_key(
    quiz_id: str,
    name: str,
    ip_address: str = "",
    policy: str = ATTEMPT_IDENTITY_POLICY,
) -> str:
    """Stable key grouping every attempt of one student at one quiz."""
    if policy == "name":
        parts = [quiz_id, normalize_name(name)]
    elif policy == "ip":
        parts = [quiz_id, normalize_name(name), ip_address.strip()]
    else:
        raise ValueError(f"Unknown attempt identity policy: {policy!r}")
    return hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()


def id_suffix(participant_id: str) -> int:
    """Numeric suffix of a participant id, -1 when there is none."""
    match = _TRAILING_NUMBER.search(participant_id)
    return int(match.group(1)) if match else -1


def resolve_participant(
    session_id: str,
    participants: Sequence[Participant],
    context: SubmissionContext | None = None,
) -> Participant:
    """Pick the participant in ``session_id`` that a submission belongs to.

    With several candidates the order of preference is: same IP and device
    fingerprint, same IP, then the most recently created record (highest id
    suffix). A chosen record that already holds answers yields to an empty
    same-IP record so a second tab cannot overwrite work in progress.
    """
    if not session_id:
        raise ValidationError("Session ID is required.")

    candidates = [p for p in participants if p.session_id == session_id]
    if not candidates:
        raise ParticipantNotFound("Participant not found")
    if len(candidates) == 1:
        return candidates[0]

    context = context or SubmissionContext()
    logger.warning(
        "Session %s has %d participant records; resolving by request context",
        session_id,
        len(candidates),
    )

    selected = _select_candidate(candidates, context)

    if selected.answers:
        empty_same_ip = [
            p
            for p in candidates
            if p is not selected and not p.answers and p.ip_address == selected.ip_address
        ]
        if empty_same_ip:
            fallback = max(empty_same_ip, key=lambda p: id_suffix(p.id))
            logger.warning(
                "Participant %s already has answers; using empty record %s instead",
                selected.id,
                fallback.id,
            )
            return fallback

    return selected


def _select_candidate(
    candidates: list[Participant], context: SubmissionContext
) -> Participant:
    if context.device_fingerprint:
        exact = [
            p
            for p in candidates
            if p.ip_address == context.ip_address
            and p.device_fingerprint == context.device_fingerprint
        ]
        if exact:
            return _most_recent(exact)
    if context.ip_address:
        same_ip = [p for p in candidates if p.ip_address == context.ip_address]
        if same_ip:
            return _most_recent(same_ip)
    return _most_recent(candidates)


def _most_recent(candidates: list[Participant]) -> Participant:
    return max(candidates, key=lambda p: id_suffix(p.id))
