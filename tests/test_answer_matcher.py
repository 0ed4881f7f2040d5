import logging

import pytest

from factories import answer, mc_question
from quizroom.core.answer_matcher import find_answer, is_answered, match_all
from quizroom.core.models import MatchStrategy


class TestIsAnswered:
    @pytest.mark.parametrize("value", [0, "0", "B", 1.5, " x "])
    def test_present_values(self, value):
        assert is_answered(value)

    @pytest.mark.parametrize("value", [None, "", "   ", "\n\t"])
    def test_missing_values(self, value):
        assert not is_answered(value)


class TestFindAnswer:
    def test_exact_match(self):
        question = mc_question("q2")
        answers = [answer("q1", 0), answer("q2", 3)]

        match = find_answer(question, answers)

        assert match is not None
        assert match.answer.value == 3
        assert match.strategy is MatchStrategy.EXACT

    def test_no_fallback_without_known_ids(self):
        assert find_answer(mc_question("q1"), [answer("legacy-q1", 0)]) is None

    def test_positional_fallback_uses_orphan_at_question_index(self, caplog):
        question = mc_question("q2")
        answers = [answer("q1", 0), answer("old_7", 2)]

        with caplog.at_level(logging.WARNING):
            match = find_answer(question, answers, question_index=1, known_question_ids={"q1", "q2"})

        assert match.strategy is MatchStrategy.POSITIONAL
        assert match.answer.value == 2
        assert "positional" in caplog.text

    def test_positional_fallback_never_takes_answer_of_another_question(self):
        question = mc_question("q2")
        answers = [answer("q2x", 1), answer("q1", 0)]

        match = find_answer(question, answers, question_index=1, known_question_ids={"q1", "q2"})

        # Index 1 belongs to q1, so the orphan is found by id shape instead.
        assert match.strategy is MatchStrategy.SUBSTRING
        assert match.answer.question_id == "q2x"

    def test_suffix_fallback(self):
        question = mc_question("q1700000000_0")
        answers = [answer("quiz9_q1700000000_0", 1)]

        match = find_answer(question, answers, question_index=5, known_question_ids={"q1700000000_0"})

        assert match.strategy is MatchStrategy.SUFFIX
        assert match.answer.value == 1

    def test_returns_none_when_nothing_matches(self):
        match = find_answer(mc_question("q1"), [answer("zzz", 0)], question_index=3, known_question_ids={"q1"})
        assert match is None


class TestMatchAll:
    def test_orphan_is_claimed_by_one_question_only(self):
        questions = [mc_question("q1"), mc_question("q2")]

        matches = match_all(questions, [answer("old_q2", 1)])

        assert matches[0] is None
        assert matches[1].strategy is MatchStrategy.SUFFIX

    def test_positional_leaves_orphan_to_question_matching_its_id(self):
        questions = [mc_question("q1"), mc_question("q2"), mc_question("q3")]
        answers = [answer("x", 0), answer("q3_legacy", 2)]

        matches = match_all(questions, answers)

        assert matches[0].strategy is MatchStrategy.POSITIONAL
        assert matches[1] is None
        assert matches[2].strategy is MatchStrategy.SUBSTRING
        assert matches[2].answer.question_id == "q3_legacy"

    def test_orphans_are_handed_out_by_position(self):
        questions = [mc_question("q1"), mc_question("q2"), mc_question("q3")]
        answers = [answer("legacy_a", 0), answer("legacy_b", 1)]

        matches = match_all(questions, answers)

        assert [m.answer.question_id for m in matches[:2]] == ["legacy_a", "legacy_b"]
        assert matches[2] is None

    def test_exact_answers_are_never_reassigned(self):
        questions = [mc_question("q1"), mc_question("q2")]

        matches = match_all(questions, [answer("q2", 1), answer("zz", 0)])

        assert matches[0] is None
        assert matches[1].strategy is MatchStrategy.EXACT
