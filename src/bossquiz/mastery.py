"""Elo-like per-topic mastery ratings."""
from bossquiz.models import Difficulty, Topic

INITIAL_RATING = 1000
MIN_RATING = 900
MAX_RATING = 1400
CORRECT_DELTA = 25
INCORRECT_DELTA = -15
INTERMEDIATE_THRESHOLD = 1100
ADVANCED_THRESHOLD = 1300


def initial_mastery() -> dict[Topic, int]:
    return {topic: INITIAL_RATING for topic in Topic}


def difficulty_for_rating(rating: int) -> Difficulty:
    if rating < INTERMEDIATE_THRESHOLD:
        return Difficulty.BEGINNER
    elif rating < ADVANCED_THRESHOLD:
        return Difficulty.INTERMEDIATE
    return Difficulty.ADVANCED


def update_mastery(state: dict[Topic, int], topic: Topic, correct: bool) -> dict[Topic, int]:
    """Apply one answer to a topic's rating.

    Args:
        state: Current ratings (left untouched)
        topic: Topic of the answered question
        correct: Whether the answer was correct

    Returns:
        New mapping with only ``topic`` changed, clamped to [900, 1400].
    """
    delta = CORRECT_DELTA if correct else INCORRECT_DELTA
    new_rating = max(MIN_RATING, min(MAX_RATING, state[topic] + delta))
    return {**state, topic: new_rating}
