"""Answer scoring, boss damage and streak levelling."""
from dataclasses import dataclass
from typing import Optional

from bossquiz.models import ActiveQuestion, Confidence, Difficulty, GameMode

BASE_POINTS = 100

DIFFICULTY_MULTIPLIERS = {
    Difficulty.BEGINNER: 1.0,
    Difficulty.INTERMEDIATE: 1.5,
    Difficulty.ADVANCED: 2.0,
}

CONFIDENCE_MULTIPLIERS = {
    Confidence.LOW: 1.0,
    Confidence.MEDIUM: 1.2,
    Confidence.HIGH: 1.4,
}

# Wrong answers given with more confidence cost more
OVERCONFIDENCE_PENALTIES = {
    Confidence.LOW: 5,
    Confidence.MEDIUM: 15,
    Confidence.HIGH: 25,
}

FAST_ANSWER_SECONDS = 6
QUICK_ANSWER_SECONDS = 10
FAST_ANSWER_BONUS = 60
QUICK_ANSWER_BONUS = 30

BOSS_MAX_HEALTH = 100
BOSS_BASE_DAMAGE = 15
BOSS_DAMAGE_PER_PHASE = 3
LEVEL_UP_STREAK = 3


@dataclass(frozen=True)
class ScoreResult:
    delta: int
    correct: bool
    speed_bonus: int = 0


def speed_bonus(elapsed_seconds: Optional[float]) -> int:
    if elapsed_seconds is None:
        return 0
    if elapsed_seconds <= FAST_ANSWER_SECONDS:
        return FAST_ANSWER_BONUS
    elif elapsed_seconds <= QUICK_ANSWER_SECONDS:
        return QUICK_ANSWER_BONUS
    return 0


def score_answer(
    question: ActiveQuestion,
    chosen_index: int,
    confidence: Confidence,
    elapsed_seconds: Optional[float],
    current_score: int,
    mode: GameMode,
    boss_phase: int = 1,
) -> ScoreResult:
    """Score one answer.

    A chosen_index of -1 is a timeout and never correct. Correct answers earn
    base points scaled by boss phase, difficulty and confidence plus a speed
    bonus. Wrong answers lose an overconfidence penalty, never taking the
    score below zero.
    """
    confidence = Confidence(confidence)
    correct = chosen_index >= 0 and chosen_index == question.correct_option_index
    if correct:
        phase_multiplier = boss_phase if mode is GameMode.BOSS else 1
        raw = (
            BASE_POINTS
            * phase_multiplier
            * DIFFICULTY_MULTIPLIERS[question.difficulty]
            * CONFIDENCE_MULTIPLIERS[confidence]
        )
        bonus = speed_bonus(elapsed_seconds)
        return ScoreResult(delta=round(raw) + bonus, correct=True, speed_bonus=bonus)

    penalty = min(max(current_score, 0), OVERCONFIDENCE_PENALTIES[confidence])
    return ScoreResult(delta=-penalty, correct=False)


def boss_damage(phase: int) -> int:
    return BOSS_BASE_DAMAGE + BOSS_DAMAGE_PER_PHASE * phase


def phase_for_health(health: int) -> int:
    if health <= 30:
        return 3
    elif health <= 70:
        return 2
    return 1


def apply_boss_hit(health: int, phase: int) -> tuple[int, int]:
    """Damage the boss for a correct answer. Returns (health, phase)."""
    new_health = max(0, health - boss_damage(phase))
    return new_health, phase_for_health(new_health)


def advance_streak(streak: int, level: int, correct: bool) -> tuple[int, int]:
    """Returns (streak, level). Every third answer in a row earns a level."""
    if not correct:
        return 0, level
    streak += 1
    if streak % LEVEL_UP_STREAK == 0:
        level += 1
    return streak, level
