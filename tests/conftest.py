import random

import pytest

from bossquiz.models import Difficulty, QuestionTemplate
from bossquiz.scheduler import ManualScheduler
from bossquiz.session import QuizSession


def _template(label: str) -> QuestionTemplate:
    return QuestionTemplate(
        prompt=f"{label} question?",
        options=(f"{label} right", f"{label} wrong 1", f"{label} wrong 2", f"{label} wrong 3"),
        correct_option_index=0,
        explanation=f"{label} explanation",
    )


@pytest.fixture
def rng():
    """Seeded random source so shuffles and picks are reproducible."""
    return random.Random(1234)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def bank():
    """Small catalog with one question per difficulty tier."""
    return {
        Difficulty.BEGINNER: (_template("Beginner"),),
        Difficulty.INTERMEDIATE: (_template("Intermediate"),),
        Difficulty.ADVANCED: (_template("Advanced"),),
    }


@pytest.fixture
def make_session(bank, scheduler, rng):
    def _make():
        return QuizSession(bank=bank, scheduler=scheduler, rng=rng)
    return _make


def correct_index(session) -> int:
    """Shuffled position of the right option for the session's open question.

    Snapshots hide the answer until the turn resolves, so look it up in the bank.
    """
    view = session.snapshot().question
    for template in session.bank[view.difficulty]:
        if template.prompt == view.prompt:
            return view.options.index(template.options[template.correct_option_index])
    raise LookupError(f"Question not in bank: {view.prompt}")


@pytest.fixture
def answer_key():
    return correct_index
