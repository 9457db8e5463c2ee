"""Adaptive question selection by topic weakness."""
import random
from typing import Optional

from bossquiz.bank import BankError, default_bank
from bossquiz.mastery import difficulty_for_rating
from bossquiz.models import ActiveQuestion, GameMode, Topic
from bossquiz.randomizer import pick_random, shuffle_options


def select_topic(mastery: dict[Topic, int], mode: GameMode, focus_topic: Optional[Topic] = None) -> Topic:
    """Focus topic when drilling, otherwise the weakest topic.

    Ties go to the topic declared first.
    """
    if mode is GameMode.FOCUS_TOPIC and focus_topic is not None:
        return focus_topic
    weakest = None
    for topic in Topic:
        if weakest is None or mastery[topic] < mastery[weakest]:
            weakest = topic
    return weakest


def next_question(
    mastery: dict[Topic, int],
    mode: GameMode,
    focus_topic: Optional[Topic] = None,
    bank: Optional[dict] = None,
    rng: Optional[random.Random] = None,
) -> ActiveQuestion:
    bank = bank if bank is not None else default_bank()
    topic = select_topic(mastery, mode, focus_topic)
    rating = mastery[topic]
    difficulty = difficulty_for_rating(rating)
    pool = bank.get(difficulty)
    if not pool:
        raise BankError(f"No {difficulty.value} questions in the bank")
    template = shuffle_options(pick_random(pool, rng), rng)
    return ActiveQuestion(
        prompt=template.prompt,
        options=template.options,
        correct_option_index=template.correct_option_index,
        explanation=template.explanation,
        topic=topic,
        difficulty=difficulty,
        rating=rating,
    )
