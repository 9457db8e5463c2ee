"""Derived read-only views: calibration, mastery bars, labels and coach text."""
import random
from typing import Optional

from bossquiz.models import GamePhase, Topic
from bossquiz.randomizer import pick_random

BOSS_REACTIONS_CORRECT = (
    "Not bad, human. Let's see if you can keep that up.",
    "You got lucky. Next one will be harder.",
    "Impressive. I might need to power up...",
)

BOSS_REACTIONS_INCORRECT = (
    "You hesitated. Confidence matters as much as knowledge.",
    "Interesting mistake. Pay attention to the details.",
    "You rushed that one. Slow is smooth, smooth is fast.",
)

CALIBRATION_BAND = 10  # percentage points


def correct_count(history) -> int:
    return sum(1 for entry in history if entry.correct)


def calibration_by_topic(history) -> list[dict]:
    """Average stated confidence vs. realized accuracy for each topic."""
    results = []
    for topic in Topic:
        entries = [e for e in history if e.question.topic is topic]
        if not entries:
            results.append({"topic": topic, "attempts": 0, "avg_confidence": 0.0, "accuracy": 0.0})
            continue
        results.append({
            "topic": topic,
            "attempts": len(entries),
            "avg_confidence": sum(int(e.confidence) for e in entries) / len(entries),
            "accuracy": correct_count(entries) / len(entries),
        })
    return results


def calibration_label(avg_confidence: float, accuracy: float) -> str:
    accuracy_pct = round(accuracy * 100)
    confidence_pct = round(avg_confidence / 3 * 100)
    if accuracy_pct + CALIBRATION_BAND < confidence_pct:
        return "Overconfident"
    elif accuracy_pct - CALIBRATION_BAND > confidence_pct:
        return "Underconfident"
    return "Well calibrated"


def mastery_bar_widths(mastery: dict[Topic, int]) -> dict[Topic, float]:
    """Ratings as a percentage of the session's current best rating."""
    top = max(mastery.values(), default=0)
    return {topic: (value / top * 100 if top > 0 else 0.0) for topic, value in mastery.items()}


def boss_phase_label(phase: int) -> str:
    if phase == 1:
        return "Warming Up"
    elif phase == 2:
        return "Powered Up"
    return "Final Phase"


def feedback_message(
    correct: bool,
    delta: int,
    speed_bonus: int = 0,
    timed_out: bool = False,
    explanation: str = "",
    rng: Optional[random.Random] = None,
) -> str:
    if correct:
        bonus_text = f" (Speed bonus +{speed_bonus})" if speed_bonus > 0 else ""
        return f"Excellent! +{delta} points{bonus_text}. {pick_random(BOSS_REACTIONS_CORRECT, rng)}"
    reason = "Time's up on this one." if timed_out else explanation
    return (
        f"{reason}  -  {pick_random(BOSS_REACTIONS_INCORRECT, rng)} "
        f"(-{abs(delta)} points for overconfidence)"
    )


def coach_line(snapshot, question_time: int) -> str:
    if snapshot.phase is GamePhase.MENU:
        return "Pick a mode and I'll push your weak spots."
    if not snapshot.history:
        return "Let's see what you already know."
    if not snapshot.history[-1].correct:
        return "Nice try. I'll stay on this topic a bit longer."
    if snapshot.streak >= 3:
        return "You're on a streak. I'm ramping difficulty up."
    if snapshot.mode.timed and snapshot.time_remaining < question_time / 2:
        return "Don't rush, but don't fall asleep either."
    return "Steady progress. Keep going."
