import pytest

from factories import answer, make_participant
from quizroom.core.errors import ParticipantNotFound, ValidationError
from quizroom.core.identity_resolver import (
    id_suffix,
    participant_identity_key,
    resolve_participant,
)
from quizroom.core.models import SubmissionContext


def candidate(participant_id, ip, device, *answers, session_id="session_1"):
    return make_participant(
        *answers,
        participant_id=participant_id,
        session_id=session_id,
        ip_address=ip,
        device_fingerprint=device,
    )


class TestIdentityKey:
    def test_name_policy_ignores_case_spacing_and_ip(self):
        first = participant_identity_key("quiz-1", "Alex  Johnson", "10.0.0.1", policy="name")
        second = participant_identity_key("quiz-1", " alex johnson ", "10.0.0.2", policy="name")
        assert first == second

    def test_ip_policy_separates_devices(self):
        first = participant_identity_key("quiz-1", "Alex", "10.0.0.1", policy="ip")
        second = participant_identity_key("quiz-1", "Alex", "10.0.0.2", policy="ip")
        assert first != second

    def test_quiz_is_part_of_the_key(self):
        assert participant_identity_key("quiz-1", "Alex") != participant_identity_key("quiz-2", "Alex")

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            participant_identity_key("quiz-1", "Alex", policy="email")


class TestIdSuffix:
    @pytest.mark.parametrize(
        ("participant_id", "expected"),
        [("participant_17", 17), ("participant_1700000000123", 1700000000123), ("abc", -1)],
    )
    def test_suffix(self, participant_id, expected):
        assert id_suffix(participant_id) == expected


class TestResolveParticipant:
    def test_single_match(self):
        only = candidate("participant_1", "10.0.0.1", "ua-1")
        other = candidate("participant_2", "10.0.0.2", "ua-2", session_id="session_2")
        assert resolve_participant("session_1", [only, other]) is only

    def test_missing_session_id(self):
        with pytest.raises(ValidationError):
            resolve_participant("", [])

    def test_no_match(self):
        with pytest.raises(ParticipantNotFound):
            resolve_participant("session_9", [candidate("participant_1", "10.0.0.1", "ua")])

    def test_prefers_ip_and_device(self):
        same_ip_other_device = candidate("participant_3", "10.0.0.1", "ua-phone")
        exact = candidate("participant_2", "10.0.0.1", "ua-laptop")
        other = candidate("participant_4", "10.0.0.9", "ua-laptop")
        context = SubmissionContext(ip_address="10.0.0.1", device_fingerprint="ua-laptop")

        assert resolve_participant("session_1", [same_ip_other_device, exact, other], context) is exact

    def test_falls_back_to_ip(self):
        by_ip = candidate("participant_2", "10.0.0.1", "ua-old")
        other = candidate("participant_5", "10.0.0.9", "ua-new")
        context = SubmissionContext(ip_address="10.0.0.1", device_fingerprint="ua-new-browser")

        assert resolve_participant("session_1", [by_ip, other], context) is by_ip

    def test_falls_back_to_most_recent_id(self):
        older = candidate("participant_2", "10.0.0.1", "ua")
        newer = candidate("participant_10", "10.0.0.2", "ua")
        context = SubmissionContext(ip_address="192.168.0.1")

        assert resolve_participant("session_1", [newer, older], context) is newer

    def test_empty_same_ip_record_wins_over_one_in_progress(self):
        in_progress = candidate("participant_2", "10.0.0.1", "ua-laptop", answer("q1", 0))
        fresh = candidate("participant_3", "10.0.0.1", "ua-tablet")
        context = SubmissionContext(ip_address="10.0.0.1", device_fingerprint="ua-laptop")

        assert resolve_participant("session_1", [in_progress, fresh], context) is fresh

    def test_in_progress_record_kept_without_empty_alternative(self):
        in_progress = candidate("participant_2", "10.0.0.1", "ua-laptop", answer("q1", 0))
        elsewhere = candidate("participant_3", "10.0.0.7", "ua-tablet")
        context = SubmissionContext(ip_address="10.0.0.1", device_fingerprint="ua-laptop")

        assert resolve_participant("session_1", [in_progress, elsewhere], context) is in_progress

    def test_device_match_without_ip(self):
        tablet = candidate("participant_2", "", "ua-tablet")
        laptop = candidate("participant_3", "", "ua-laptop")
        context = SubmissionContext(device_fingerprint="ua-tablet")

        assert resolve_participant("session_1", [tablet, laptop], context) is tablet
