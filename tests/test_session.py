# tests/test_session.py
import pytest

from bossquiz.models import (
    AwaitingAnswer, AwaitingConfidence, Confidence, GameMode, GamePhase, Resolved, SessionState, Topic,
)
from bossquiz.session import ADVANCE_DELAY, QUESTION_TIME, SessionError, is_complete


def _right(session):
    # snapshots redact the answer key until the turn resolves
    view = session.snapshot().question
    template = next(t for t in session.bank[view.difficulty] if t.prompt == view.prompt)
    return view.options.index(template.options[template.correct_option_index])


def _wrong(session):
    return (_right(session) + 1) % len(session.snapshot().question.options)


def _answer(session, correct=True, confidence=Confidence.HIGH):
    index = _right(session) if correct else _wrong(session)
    entry = session.submit_answer(index, confidence)
    session.scheduler.advance(ADVANCE_DELAY)
    return entry


def test_start_session_enters_playing(make_session):
    session = make_session()
    assert session.snapshot().phase is GamePhase.MENU
    session.start_session(GameMode.BOSS)
    state = session.snapshot()
    assert state.phase is GamePhase.PLAYING
    assert state.question is not None
    assert state.turn == AwaitingAnswer()
    assert state.time_remaining == QUESTION_TIME
    assert all(v == 1000 for v in state.mastery.values())
    assert state.question.topic is Topic.JAVASCRIPT


def test_start_session_accepts_string_mode(make_session):
    session = make_session()
    session.start_session("focusTopic", "React")
    assert session.snapshot().mode is GameMode.FOCUS_TOPIC
    assert session.snapshot().focus_topic is Topic.REACT


def test_focus_mode_requires_topic(make_session):
    session = make_session()
    with pytest.raises(SessionError):
        session.start_session(GameMode.FOCUS_TOPIC)
    assert session.snapshot().phase is GamePhase.MENU


def test_cannot_start_while_playing(make_session):
    session = make_session()
    session.start_session(GameMode.SPEED)
    with pytest.raises(SessionError):
        session.start_session(GameMode.BOSS)


def test_correct_answer_updates_everything(make_session):
    session = make_session()
    session.start_session(GameMode.BOSS)
    entry = session.submit_answer(_right(session), Confidence.HIGH)
    state = session.snapshot()
    # beginner, phase 1, high confidence: 140 plus 60 fast-answer bonus
    assert entry.delta == 200
    assert state.score == 200
    assert state.streak == 1
    assert state.boss_health == 82
    assert state.boss_phase == 1
    assert state.progress == 20
    assert state.mastery[Topic.JAVASCRIPT] == 1025
    assert len(state.history) == 1
    assert isinstance(state.turn, Resolved)
    assert state.turn.correct
    assert state.turn.feedback.startswith("Excellent! +200 points (Speed bonus +60).")


def test_slower_answer_earns_smaller_bonus(make_session):
    session = make_session()
    session.start_session(GameMode.SPEED)
    session.scheduler.advance(8)
    entry = session.submit_answer(_right(session), Confidence.LOW)
    assert entry.delta == 130


def test_wrong_answer_cannot_make_score_negative(make_session):
    session = make_session()
    session.start_session(GameMode.BOSS)
    session.submit_answer(_wrong(session), Confidence.HIGH)
    state = session.snapshot()
    assert state.score == 0
    assert state.streak == 0
    assert state.boss_health == 100
    assert state.mastery[Topic.JAVASCRIPT] == 985
    assert not state.history[0].correct


def test_double_submit_is_ignored(make_session):
    session = make_session()
    session.start_session(GameMode.BOSS)
    index = _right(session)
    assert session.submit_answer(index, Confidence.HIGH) is not None
    assert session.submit_answer(index, Confidence.HIGH) is None
    assert len(session.snapshot().history) == 1
    assert session.snapshot().score == 200


def test_submit_without_session_is_ignored(make_session):
    session = make_session()
    assert session.submit_answer(0, Confidence.LOW) is None
    assert session.snapshot().history == ()


def test_submit_out_of_range_raises(make_session):
    session = make_session()
    session.start_session(GameMode.ENDLESS)
    with pytest.raises(ValueError):
        session.submit_answer(9, Confidence.LOW)


def test_next_question_targets_weakest_topic(make_session):
    session = make_session()
    session.start_session(GameMode.ENDLESS)
    _answer(session, correct=True)
    assert session.snapshot().question.topic is Topic.REACT
    assert session.snapshot().turn == AwaitingAnswer()


def test_advance_waits_for_presentation_delay(make_session):
    session = make_session()
    session.start_session(GameMode.ENDLESS)
    first = session.snapshot().question.topic
    session.submit_answer(_right(session), Confidence.LOW)
    session.scheduler.advance(ADVANCE_DELAY - 0.1)
    assert session.snapshot().question.topic is first
    assert isinstance(session.snapshot().turn, Resolved)
    session.scheduler.advance(0.1)
    assert session.snapshot().question.topic is not first


def test_snapshot_hides_answer_until_resolved(make_session):
    session = make_session()
    session.start_session(GameMode.BOSS)
    view = session.snapshot().question
    assert view.correct_option_index is None
    assert view.explanation is None
    session.submit_answer(_right(session), Confidence.LOW)
    view = session.snapshot().question
    assert view.options[view.correct_option_index] == "Beginner right"
    assert view.explanation == "Beginner explanation"


def test_snapshot_mastery_is_a_copy(make_session):
    session = make_session()
    session.start_session(GameMode.BOSS)
    snapshot = session.snapshot()
    snapshot.mastery[Topic.REACT] = 1
    assert session.snapshot().mastery[Topic.REACT] == 1000


def test_speed_mode_completes_on_tenth_answer(make_session):
    session = make_session()
    session.start_session(GameMode.SPEED)
    for turn in range(1, 11):
        _answer(session, correct=turn % 2 == 0)
        assert len(session.snapshot().history) == turn
        expected = GamePhase.COMPLETE if turn == 10 else GamePhase.PLAYING
        assert session.snapshot().phase is expected


def test_sudden_death_ends_on_first_miss(make_session):
    session = make_session()
    session.start_session(GameMode.SUDDEN_DEATH)
    for _ in range(7):
        _answer(session, correct=True)
    assert session.snapshot().phase is GamePhase.PLAYING
    _answer(session, correct=False)
    assert session.snapshot().phase is GamePhase.COMPLETE
    assert len(session.snapshot().history) == 8


def test_sudden_death_first_turn_miss(make_session):
    session = make_session()
    session.start_session(GameMode.SUDDEN_DEATH)
    _answer(session, correct=False)
    assert session.snapshot().phase is GamePhase.COMPLETE


def test_boss_fight_runs_five_turns(make_session):
    session = make_session()
    session.start_session(GameMode.BOSS)
    healths = []
    for _ in range(5):
        assert session.snapshot().phase is GamePhase.PLAYING
        _answer(session, correct=True)
        healths.append(session.snapshot().boss_health)
    assert healths == [82, 64, 43, 22, 0]
    assert session.snapshot().boss_phase == 3
    assert session.snapshot().progress == 100
    assert session.snapshot().phase is GamePhase.COMPLETE


def test_boss_damage_uses_escalated_phase_in_score(make_session):
    session = make_session()
    session.start_session(GameMode.BOSS)
    _answer(session, correct=True, confidence=Confidence.LOW)
    _answer(session, correct=True, confidence=Confidence.LOW)
    assert session.snapshot().boss_phase == 2
    entry = _answer(session, correct=True, confidence=Confidence.LOW)
    assert entry.delta == 200 + 60


def test_focus_topic_drills_one_topic(make_session):
    session = make_session()
    session.start_session(GameMode.FOCUS_TOPIC, Topic.TYPESCRIPT)
    for i in range(5):
        assert session.snapshot().question.topic is Topic.TYPESCRIPT
        _answer(session, correct=i % 2 == 0)
    assert session.snapshot().phase is GamePhase.COMPLETE
    assert all(e.question.topic is Topic.TYPESCRIPT for e in session.snapshot().history)


def test_endless_never_completes_on_its_own(make_session):
    session = make_session()
    session.start_session(GameMode.ENDLESS)
    for i in range(12):
        _answer(session, correct=i % 3 != 0)
    assert session.snapshot().phase is GamePhase.PLAYING
    assert session.snapshot().progress == 100
    session.end_endless_session()
    assert session.snapshot().phase is GamePhase.COMPLETE
    assert len(session.snapshot().history) == 12


def test_end_endless_cancels_pending_advance(make_session):
    session = make_session()
    session.start_session(GameMode.ENDLESS)
    session.submit_answer(_right(session), Confidence.LOW)
    session.end_endless_session()
    session.scheduler.advance(10)
    assert session.snapshot().phase is GamePhase.COMPLETE
    assert session.scheduler.pending() == []


def test_end_endless_only_in_endless_mode(make_session):
    session = make_session()
    session.start_session(GameMode.BOSS)
    with pytest.raises(SessionError):
        session.end_endless_session()


def test_countdown_ticks_each_second(make_session):
    session = make_session()
    session.start_session(GameMode.SPEED)
    session.scheduler.advance(3)
    assert session.snapshot().time_remaining == QUESTION_TIME - 3


def test_timeout_auto_submits(make_session):
    session = make_session()
    session.start_session(GameMode.BOSS)
    session.scheduler.advance(QUESTION_TIME - 1)
    assert session.snapshot().time_remaining == 1
    assert session.snapshot().history == ()
    session.scheduler.advance(1)
    state = session.snapshot()
    assert state.time_remaining == 0
    assert len(state.history) == 1
    entry = state.history[0]
    assert entry.chosen_index == -1
    assert entry.timed_out
    assert not entry.correct
    assert entry.confidence is Confidence.LOW
    assert state.turn.feedback.startswith("Time's up on this one.")
    # a late tap after the timeout is ignored
    assert session.submit_answer(_right(session), Confidence.HIGH) is None
    assert len(session.snapshot().history) == 1


def test_timeout_while_choosing_confidence(make_session):
    session = make_session()
    session.start_session(GameMode.SUDDEN_DEATH)
    session.select_pending_answer(_right(session))
    session.scheduler.advance(QUESTION_TIME)
    assert session.snapshot().history[0].timed_out
    session.scheduler.advance(ADVANCE_DELAY)
    assert session.snapshot().phase is GamePhase.COMPLETE


def test_answer_stops_countdown(make_session):
    session = make_session()
    session.start_session(GameMode.BOSS)
    session.scheduler.advance(5)
    session.submit_answer(_right(session), Confidence.LOW)
    session.scheduler.advance(1)
    assert session.snapshot().time_remaining == QUESTION_TIME - 5
    assert len(session.scheduler.pending()) == 1


def test_new_question_restarts_countdown(make_session):
    session = make_session()
    session.start_session(GameMode.BOSS)
    session.scheduler.advance(5)
    _answer(session)
    assert session.snapshot().time_remaining == QUESTION_TIME
    session.scheduler.advance(2)
    assert session.snapshot().time_remaining == QUESTION_TIME - 2


def test_untimed_modes_have_no_countdown(make_session):
    session = make_session()
    session.start_session(GameMode.FOCUS_TOPIC, Topic.REACT)
    session.scheduler.advance(120)
    assert session.snapshot().time_remaining == QUESTION_TIME
    assert session.snapshot().history == ()
    assert session.scheduler.pending() == []


def test_select_pending_answer(make_session):
    session = make_session()
    session.start_session(GameMode.ENDLESS)
    session.select_pending_answer(2)
    assert session.snapshot().turn == AwaitingConfidence(pending_index=2)
    session.select_pending_answer(3)
    assert session.snapshot().turn == AwaitingConfidence(pending_index=3)
    session.select_pending_answer(99)
    assert session.snapshot().turn == AwaitingConfidence(pending_index=3)
    assert session.snapshot().history == ()


def test_select_pending_answer_after_resolution_ignored(make_session):
    session = make_session()
    session.start_session(GameMode.ENDLESS)
    session.submit_answer(0, Confidence.LOW)
    turn = session.snapshot().turn
    session.select_pending_answer(1)
    assert session.snapshot().turn is turn


def test_level_up_every_three_in_a_row(make_session):
    session = make_session()
    session.start_session(GameMode.ENDLESS)
    for _ in range(3):
        _answer(session, correct=True)
    assert session.snapshot().level == 2
    _answer(session, correct=False)
    assert session.snapshot().streak == 0
    for _ in range(3):
        _answer(session, correct=True)
    assert session.snapshot().level == 3


def test_progress_and_mastery_invariants(make_session):
    session = make_session()
    session.start_session(GameMode.ENDLESS)
    last_progress = 0
    for i in range(40):
        _answer(session, correct=i % 4 == 0, confidence=Confidence(i % 3 + 1))
        state = session.snapshot()
        assert state.progress >= last_progress
        assert state.progress <= 100
        assert state.score >= 0
        assert all(900 <= v <= 1400 for v in state.mastery.values())
        last_progress = state.progress
    assert len(session.snapshot().history) == 40


def test_return_to_menu_then_restart_resets(make_session):
    session = make_session()
    session.start_session(GameMode.SUDDEN_DEATH)
    _answer(session, correct=True)
    _answer(session, correct=False)
    with pytest.raises(SessionError):
        session.start_session(GameMode.BOSS)
    session.return_to_menu()
    assert session.snapshot().phase is GamePhase.MENU
    assert len(session.snapshot().history) == 2
    session.start_session(GameMode.BOSS)
    state = session.snapshot()
    assert state.history == ()
    assert state.score == 0
    assert state.streak == 0
    assert state.level == 1
    assert state.boss_health == 100
    assert all(v == 1000 for v in state.mastery.values())


def test_return_to_menu_only_when_complete(make_session):
    session = make_session()
    with pytest.raises(SessionError):
        session.return_to_menu()
    session.start_session(GameMode.BOSS)
    with pytest.raises(SessionError):
        session.return_to_menu()


def test_subscribers_receive_snapshots(make_session):
    session = make_session()
    seen = []
    unsubscribe = session.subscribe(seen.append)
    session.start_session(GameMode.ENDLESS)
    assert seen[-1].phase is GamePhase.PLAYING
    assert seen[-1].question.correct_option_index is None
    count = len(seen)
    unsubscribe()
    session.submit_answer(0, Confidence.LOW)
    assert len(seen) == count


def test_is_complete_endless_is_false():
    assert not is_complete(SessionState(mode=GameMode.ENDLESS, phase=GamePhase.PLAYING, progress=100))


def test_snapshot_is_the_only_public_view(make_session):
    session = make_session()
    session.start_session(GameMode.BOSS)
    assert not hasattr(session, "state")
    assert session.snapshot().question.correct_option_index is None


def _broken_listener(snapshot):
    raise RuntimeError("render failed")


def test_failing_listener_does_not_stall_the_session(make_session, caplog):
    session = make_session()
    session.subscribe(_broken_listener)
    session.start_session(GameMode.ENDLESS)
    session.submit_answer(_right(session), Confidence.LOW)
    session.scheduler.advance(ADVANCE_DELAY)
    snapshot = session.snapshot()
    assert len(snapshot.history) == 1
    assert snapshot.turn == AwaitingAnswer()
    assert snapshot.question.topic is Topic.REACT
    assert "Session listener" in caplog.text


def test_failing_listener_does_not_stop_the_countdown(make_session):
    session = make_session()
    session.subscribe(_broken_listener)
    session.start_session(GameMode.SUDDEN_DEATH)
    session.scheduler.advance(3)
    assert session.snapshot().time_remaining == QUESTION_TIME - 3
    session.scheduler.advance(QUESTION_TIME - 3)
    assert session.snapshot().history[0].timed_out
    session.scheduler.advance(ADVANCE_DELAY)
    assert session.snapshot().phase is GamePhase.COMPLETE


def test_other_listeners_still_notified_after_a_failure(make_session):
    session = make_session()
    seen = []
    session.subscribe(_broken_listener)
    session.subscribe(seen.append)
    session.start_session(GameMode.BOSS)
    assert seen and seen[-1].phase is GamePhase.PLAYING


def test_listener_may_answer_from_inside_a_notification(make_session):
    """Follow-up work is scheduled before listeners run, so re-entrant intents are safe."""
    session = make_session()
    answered = []

    def auto_answer(snapshot):
        if snapshot.turn == AwaitingAnswer() and len(snapshot.history) == len(answered) and len(answered) < 3:
            answered.append(True)
            session.submit_answer(_right(session), Confidence.LOW)

    session.subscribe(auto_answer)
    session.start_session(GameMode.SPEED)
    for _ in range(3):
        session.scheduler.advance(ADVANCE_DELAY)
    snapshot = session.snapshot()
    assert len(snapshot.history) == 3
    assert snapshot.turn == AwaitingAnswer()
    assert snapshot.time_remaining == QUESTION_TIME
    session.scheduler.advance(2)
    assert session.snapshot().time_remaining == QUESTION_TIME - 2
