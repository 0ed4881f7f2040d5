from __future__ import annotations

import pytest

from factories import make_quiz, mc_question
from quizroom.core.models import Quiz


@pytest.fixture
def one_question_quiz() -> Quiz:
    return make_quiz(mc_question("q1", correct_answer=0, points=1))


@pytest.fixture
def two_question_quiz() -> Quiz:
    return make_quiz(mc_question("q1", correct_answer=0), mc_question("q2", correct_answer=1))
