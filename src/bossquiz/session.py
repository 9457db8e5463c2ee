"""Session state machine: mode rules, turn flow, countdown and completion."""
import logging
import random
from dataclasses import replace
from functools import partial
from typing import Callable, Optional

from bossquiz.bank import default_bank
from bossquiz.insights import feedback_message
from bossquiz.mastery import initial_mastery, update_mastery
from bossquiz.models import (
    AwaitingAnswer, AwaitingConfidence, Confidence, GameMode, GamePhase,
    HistoryEntry, QuestionView, Resolved, SessionSnapshot, SessionState, Topic,
)
from bossquiz.scheduler import ManualScheduler, ScheduledCall
from bossquiz.scoring import BOSS_MAX_HEALTH, advance_streak, apply_boss_hit, score_answer
from bossquiz.selector import next_question

logger = logging.getLogger(__name__)

QUESTION_TIME = 20  # seconds
TICK_SECONDS = 1
ADVANCE_DELAY = 1.2  # seconds between an answer and the next question
SPEED_MODE_QUESTIONS = 10
PROGRESS_STEP = 20
MAX_PROGRESS = 100


class SessionError(RuntimeError):
    """An intent was sent in a state that does not allow it."""


def is_complete(state: SessionState) -> bool:
    """Mode completion rule, evaluated after each answered turn."""
    if state.mode is GameMode.BOSS:
        return state.boss_health <= 0 or state.progress >= MAX_PROGRESS
    elif state.mode is GameMode.SPEED:
        return len(state.history) >= SPEED_MODE_QUESTIONS
    elif state.mode is GameMode.SUDDEN_DEATH:
        return bool(state.history) and not state.history[-1].correct
    elif state.mode is GameMode.FOCUS_TOPIC:
        return state.progress >= MAX_PROGRESS
    # Endless only ends through end_endless_session()
    return False


class QuizSession:
    """Owns one SessionState and replaces it wholesale on every transition.

    Deferred work (the per-second countdown and the post-answer advance) runs
    on the scheduler; at most one such call is live at a time.
    """

    def __init__(
        self,
        bank: Optional[dict] = None,
        scheduler: Optional[ManualScheduler] = None,
        rng: Optional[random.Random] = None,
    ):
        self.bank = bank if bank is not None else default_bank()
        self.scheduler = scheduler or ManualScheduler()
        self.rng = rng
        self._state = SessionState()
        self._pending_call: Optional[ScheduledCall] = None
        self._listeners: list[Callable[[SessionSnapshot], None]] = []

    def subscribe(self, callback: Callable[[SessionSnapshot], None]) -> Callable[[], None]:
        """Register a callback for every new snapshot. Returns an unsubscribe function."""
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    # --- intents ---

    def start_session(self, mode, focus_topic=None) -> None:
        mode = GameMode(mode)
        focus_topic = Topic(focus_topic) if focus_topic is not None else None
        if self._state.phase is not GamePhase.MENU:
            raise SessionError(f"Cannot start a session from {self._state.phase.value}")
        if mode is GameMode.FOCUS_TOPIC and focus_topic is None:
            raise SessionError("Focus topic mode needs a topic")

        self._cancel_pending()
        self._state = SessionState(
            mode=mode,
            focus_topic=focus_topic,
            phase=GamePhase.PLAYING,
            boss_health=BOSS_MAX_HEALTH,
            time_remaining=QUESTION_TIME,
            mastery=initial_mastery(),
        )
        logger.info("Session started: mode=%s focus=%s", mode.value, focus_topic and focus_topic.value)
        self._load_next_question()

    def select_pending_answer(self, index: int) -> None:
        """Stage an answer before confidence is chosen. Nothing is scored yet."""
        state = self._state
        if not self._accepting_answers():
            logger.debug("Ignoring pending answer %s: no open question", index)
            return
        if not 0 <= index < len(state.question.options):
            logger.debug("Ignoring pending answer %s: out of range", index)
            return
        self._set_state(replace(state, turn=AwaitingConfidence(pending_index=index)))

    def submit_answer(self, index: int, confidence) -> Optional[HistoryEntry]:
        """Score the outstanding question.

        A second submit for the same question, or one with no question open,
        is ignored and returns None.
        """
        state = self._state
        if not self._accepting_answers():
            logger.debug("Ignoring answer %s: no open question", index)
            return None
        confidence = Confidence(confidence)
        question = state.question
        if index != -1 and not 0 <= index < len(question.options):
            raise ValueError(f"Answer index {index} out of range")

        self._cancel_pending()
        elapsed = None
        if state.question_started_at is not None:
            elapsed = self.scheduler.now() - state.question_started_at
        result = score_answer(
            question, index, confidence, elapsed, state.score, state.mode, state.boss_phase,
        )

        streak, level = advance_streak(state.streak, state.level, result.correct)
        boss_health, boss_phase = state.boss_health, state.boss_phase
        if result.correct and state.mode is GameMode.BOSS:
            boss_health, boss_phase = apply_boss_hit(boss_health, boss_phase)

        entry = HistoryEntry(
            question=question,
            chosen_index=index,
            correct=result.correct,
            confidence=confidence,
            delta=result.delta,
        )
        feedback = feedback_message(
            result.correct,
            result.delta,
            speed_bonus=result.speed_bonus,
            timed_out=entry.timed_out,
            explanation=question.explanation,
            rng=self.rng,
        )
        new_state = replace(
            state,
            score=max(0, state.score + result.delta),
            streak=streak,
            level=level,
            boss_health=boss_health,
            boss_phase=boss_phase,
            progress=min(MAX_PROGRESS, state.progress + PROGRESS_STEP),
            mastery=update_mastery(state.mastery, question.topic, result.correct),
            history=state.history + (entry,),
            turn=Resolved(
                chosen_index=index, correct=result.correct, delta=result.delta, feedback=feedback,
            ),
        )
        logger.debug(
            "Turn %d: topic=%s difficulty=%s correct=%s delta=%d",
            len(new_state.history), question.topic.value, question.difficulty.value,
            result.correct, result.delta,
        )
        self._state = new_state
        self._schedule(ADVANCE_DELAY, partial(self._advance, is_complete(new_state)))
        self._notify()
        return entry

    def end_endless_session(self) -> None:
        state = self._state
        if state.mode is not GameMode.ENDLESS or state.phase is not GamePhase.PLAYING:
            raise SessionError("Only a running endless session can be ended early")
        self._cancel_pending()
        self._finish()

    def return_to_menu(self) -> None:
        if self._state.phase is not GamePhase.COMPLETE:
            raise SessionError(f"Cannot return to menu from {self._state.phase.value}")
        self._cancel_pending()
        self._set_state(replace(self._state, phase=GamePhase.MENU))

    # --- views ---

    def snapshot(self) -> SessionSnapshot:
        """Read-only view; the correct answer stays hidden until the turn resolves."""
        state = self._state
        view = None
        if state.question is not None:
            q = state.question
            revealed = isinstance(state.turn, Resolved)
            view = QuestionView(
                prompt=q.prompt,
                options=q.options,
                topic=q.topic,
                difficulty=q.difficulty,
                rating=q.rating,
                correct_option_index=q.correct_option_index if revealed else None,
                explanation=q.explanation if revealed else None,
            )
        return SessionSnapshot(
            mode=state.mode,
            focus_topic=state.focus_topic,
            phase=state.phase,
            score=state.score,
            streak=state.streak,
            level=state.level,
            boss_health=state.boss_health,
            boss_phase=state.boss_phase,
            progress=state.progress,
            time_remaining=state.time_remaining,
            mastery=dict(state.mastery),
            history=state.history,
            question=view,
            turn=state.turn,
        )

    # --- internals ---

    def _accepting_answers(self) -> bool:
        state = self._state
        return (
            state.phase is GamePhase.PLAYING
            and state.question is not None
            and not isinstance(state.turn, Resolved)
        )

    def _set_state(self, state: SessionState) -> None:
        self._state = state
        self._notify()

    def _notify(self) -> None:
        """Push a snapshot to every listener. Deferred work must already be scheduled."""
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Session listener %r failed", listener)

    def _schedule(self, delay: float, callback: Callable[[], None]) -> None:
        self._cancel_pending()
        self._pending_call = self.scheduler.call_later(delay, callback)

    def _cancel_pending(self) -> None:
        if self._pending_call is not None:
            self._pending_call.cancel()
            self._pending_call = None

    def _load_next_question(self) -> None:
        state = self._state
        question = next_question(state.mastery, state.mode, state.focus_topic, self.bank, self.rng)
        self._state = replace(
            state,
            question=question,
            turn=AwaitingAnswer(),
            time_remaining=QUESTION_TIME,
            question_started_at=self.scheduler.now(),
        )
        if state.mode.timed:
            self._schedule(TICK_SECONDS, self._tick)
        self._notify()

    def _tick(self) -> None:
        self._pending_call = None
        if not self._accepting_answers():
            return
        remaining = max(0, self._state.time_remaining - 1)
        self._state = replace(self._state, time_remaining=remaining)
        if remaining > 0:
            self._schedule(TICK_SECONDS, self._tick)
            self._notify()
        else:
            logger.debug("Question timed out: %s", self._state.question.prompt)
            self.submit_answer(-1, Confidence.LOW)

    def _advance(self, finished: bool) -> None:
        self._pending_call = None
        if self._state.phase is not GamePhase.PLAYING:
            return
        if finished:
            self._finish()
        else:
            self._load_next_question()

    def _finish(self) -> None:
        state = self._state
        self._set_state(replace(state, phase=GamePhase.COMPLETE))
        logger.info(
            "Session complete: mode=%s score=%d turns=%d",
            state.mode.value, state.score, len(state.history),
        )
