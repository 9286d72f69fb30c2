import json
import random
from collections import Counter

import pytest

from quiz_runner.models.candidate_model import Candidate
from quiz_runner.models.session_state import SessionState, SessionStatus
from quiz_runner.models.settings_model import ExamSettings, NavigationPolicy
from quiz_runner.services.errors import (
    ContentError, InvalidAnswerError, NavigationError, SessionStateError,
)
from quiz_runner.services.exam_catalog import ExamDocument

from conftest import make_raw_questions


def _correct_option(state, idx):
    return state.questions[idx].correct_index


def _join_delivery(engine):
    engine.delivery.join(timeout=5)
    assert not engine.delivery.is_alive()


# ── 시작 ─────────────────────────────────────────────────────────────────────

def test_start_session_initializes_running_state(make_engine, candidate, store):
    engine = make_engine()
    state = engine.start_session(make_raw_questions(4), 120, candidate, "exam1")

    assert engine.status == SessionStatus.RUNNING
    assert state.answers == [None] * 4
    assert state.current == 0
    assert state.max_reached == 0
    assert state.time_left == state.total_time == 120
    assert store.load_state(engine.slot) == state


def test_option_shuffle_preserves_correctness(make_engine, candidate):
    engine = make_engine(seed=3)
    state = engine.start_session(make_raw_questions(10), 600, candidate, "exam1")

    for q in state.questions:
        correct = [o.text for o in q.options if o.is_correct]
        assert correct == [f"Q{q.id}-right"]
        assert sorted(o.text for o in q.options) == sorted(
            [f"Q{q.id}-wrong-a", f"Q{q.id}-right", f"Q{q.id}-wrong-b", f"Q{q.id}-wrong-c"]
        )


def test_question_order_is_uniform_across_sessions(make_engine, candidate):
    engine = make_engine(seed=99)
    runs = 1200
    counts = Counter()
    for _ in range(runs):
        state = engine.start_session(make_raw_questions(3), 60, candidate, "exam1")
        counts[tuple(q.id for q in state.questions)] += 1

    assert len(counts) == 6
    expected = runs / 6
    chi2 = sum((c - expected) ** 2 / expected for c in counts.values())
    assert chi2 < 25.7  # df=5, p=0.0001


def test_start_session_drops_optionless_questions(make_engine, candidate):
    raws = make_raw_questions(2) + [{"q": "broken"}]
    state = make_engine().start_session(raws, 60, candidate, "exam1")
    assert len(state.questions) == 2


def test_unloadable_question_set_creates_no_session(make_engine, candidate, store):
    engine = make_engine()
    with pytest.raises(ContentError):
        engine.start_session([{"q": "no options"}, {}], 60, candidate, "exam1")
    assert engine.state is None
    assert engine.status == SessionStatus.NOT_STARTED
    assert store.load_state(engine.slot) is None


@pytest.mark.parametrize("bad", [0, -10, 1.5, "60", True])
def test_start_session_rejects_bad_total_time(make_engine, candidate, bad):
    with pytest.raises(ValueError):
        make_engine().start_session(make_raw_questions(2), bad, candidate, "exam1")


def test_default_time_for_fifteen_questions(make_engine, candidate):
    # Scenario A
    doc = ExamDocument(exam_id="exam5", title="Short", questions=make_raw_questions(15))
    state = make_engine().start_exam(doc, candidate)
    assert state.total_time == 300


def test_explicit_total_time_wins(make_engine, candidate):
    doc = ExamDocument(exam_id="exam5", title="Short", total_time=90, questions=make_raw_questions(15))
    assert make_engine().start_exam(doc, candidate).total_time == 90


# ── 답안 / 채점 ───────────────────────────────────────────────────────────────

def test_score_with_skipped_question(make_engine, candidate):
    # Scenario B
    engine = make_engine()
    state = engine.start_session(make_raw_questions(3), 60, candidate, "exam1")
    c0, c2 = _correct_option(state, 0), _correct_option(state, 2)

    engine.select_answer(c0)
    engine.go_to(2)
    engine.select_answer(c2)

    assert state.answers == [c0, None, c2]
    assert engine.compute_score() == 2
    assert engine.compute_score() == 2


def test_changing_answer_overwrites_previous(make_engine, candidate):
    engine = make_engine()
    state = engine.start_session(make_raw_questions(2), 60, candidate, "exam1")
    correct = _correct_option(state, 0)
    wrong = (correct + 1) % 4

    engine.select_answer(wrong)
    assert engine.compute_score() == 0
    engine.select_answer(correct)
    assert state.answers[0] == correct
    assert engine.compute_score() == 1

    engine.clear_answer()
    assert state.answers[0] is None


@pytest.mark.parametrize("bad", [-1, 4, 99, True])
def test_out_of_range_answer_is_rejected(make_engine, candidate, store, bad):
    engine = make_engine()
    engine.start_session(make_raw_questions(2), 60, candidate, "exam1")
    before = store.load_state(engine.slot)

    with pytest.raises(InvalidAnswerError):
        engine.select_answer(bad)
    assert engine.state.answers == [None, None]
    assert store.load_state(engine.slot) == before


def test_degraded_question_scores_zero(make_engine, candidate):
    raws = [{"q": "?", "options": ["a", "b"], "correct": "a"}]
    engine = make_engine()
    engine.start_session(raws, 60, candidate, "exam1")
    engine.select_answer(0)
    assert engine.compute_score() == 0


# ── 이동 ──────────────────────────────────────────────────────────────────────

def test_free_navigation(make_engine, candidate):
    engine = make_engine()
    engine.start_session(make_raw_questions(5), 60, candidate, "exam1")

    assert engine.go_to(4) == 4
    assert engine.retreat() == 3
    assert engine.go_to(0) == 0
    with pytest.raises(NavigationError):
        engine.retreat()
    with pytest.raises(NavigationError):
        engine.go_to(5)
    engine.go_to(4)
    with pytest.raises(NavigationError):
        engine.advance()
    assert engine.state.max_reached == 4


def test_forward_only_rejects_unreached_and_going_back(make_engine, candidate):
    engine = make_engine(settings=ExamSettings(navigation=NavigationPolicy.FORWARD_ONLY))
    engine.start_session(make_raw_questions(4), 60, candidate, "exam1")

    with pytest.raises(NavigationError):
        engine.go_to(1)
    assert engine.state.current == 0

    engine.advance()
    engine.advance()
    assert engine.state.max_reached == 2
    assert engine.go_to(1) == 1
    with pytest.raises(NavigationError):
        engine.go_to(3)
    with pytest.raises(NavigationError):
        engine.retreat()


def test_forward_only_invariant_holds_under_random_walk(make_engine, candidate):
    engine = make_engine(settings=ExamSettings(navigation=NavigationPolicy.FORWARD_ONLY))
    engine.start_session(make_raw_questions(6), 60, candidate, "exam1")
    rng = random.Random(5)

    for _ in range(500):
        state = engine.state
        before_max = state.max_reached
        action = rng.choice(["go_to", "advance", "retreat"])
        try:
            if action == "go_to":
                target = rng.randint(-1, 6)
                engine.go_to(target)
                assert target <= before_max
            elif action == "advance":
                engine.advance()
            else:
                engine.retreat()
        except NavigationError:
            pass
        assert 0 <= state.current <= state.max_reached < 6


# ── 타이머 / 제출 ──────────────────────────────────────────────────────────────

def test_time_expiry_auto_submits(make_engine, candidate, sink):
    # Scenario C
    engine = make_engine()
    state = engine.start_session(make_raw_questions(3), 5, candidate, "exam1")
    engine.select_answer(_correct_option(state, 0))
    engine.advance()
    engine.select_answer(_correct_option(state, 1))

    seen = [state.time_left]
    for _ in range(5):
        engine.tick()
        seen.append(state.time_left)

    assert seen == [5, 4, 3, 2, 1, 0]
    assert engine.status == SessionStatus.FINISHED
    result = state.result
    assert result.time_expired is True
    assert result.time_taken == 5
    assert result.score == 2
    assert result.total == 3

    # 종료 후 tick은 무시
    assert engine.tick() is None
    assert state.time_left == 0
    _join_delivery(engine)
    assert sink.results == [result]


def test_manual_finish_with_time_remaining(make_engine, candidate, store):
    # Scenario D
    engine = make_engine()
    engine.start_session(make_raw_questions(3), 100, candidate, "exam1")
    for _ in range(12):
        engine.tick()

    result = engine.finish()
    assert result.time_expired is False
    assert result.time_taken == 100 - 88
    assert store.load_state(engine.slot) is None
    assert store.load_result(engine.slot) == result
    _join_delivery(engine)


def test_finish_is_idempotent(make_engine, candidate, sink):
    engine = make_engine()
    engine.start_session(make_raw_questions(3), 100, candidate, "exam1")
    first = engine.finish()
    _join_delivery(engine)
    delivery = engine.delivery

    second = engine.finish(time_expired=True)
    assert second is first
    assert engine.delivery is delivery
    assert sink.results == [first]


def test_calls_after_finish_are_noops(make_engine, candidate):
    engine = make_engine()
    state = engine.start_session(make_raw_questions(3), 100, candidate, "exam1")
    engine.finish()
    _join_delivery(engine)

    assert engine.go_to(2) is None
    assert engine.advance() is None
    assert engine.retreat() is None
    assert engine.select_answer(0) is None
    assert engine.tick() is None
    assert state.current == 0
    assert state.answers == [None, None, None]
    assert state.time_left == 100


def test_actions_before_start_are_rejected(make_engine):
    engine = make_engine()
    with pytest.raises(SessionStateError):
        engine.go_to(0)
    with pytest.raises(SessionStateError):
        engine.finish()
    assert engine.tick() is None


def test_sink_failure_does_not_affect_result(make_engine, candidate):
    class BrokenSink:
        async def submit(self, result):
            raise RuntimeError("collector down")

    engine = make_engine(sink=BrokenSink())
    engine.start_session(make_raw_questions(2), 60, candidate, "exam1")
    result = engine.finish()
    _join_delivery(engine)
    assert engine.status == SessionStatus.FINISHED
    assert engine.last_result() is result


# ── 저장 / 재개 ───────────────────────────────────────────────────────────────

def test_serialized_state_round_trips(make_engine, candidate):
    # Scenario E
    engine = make_engine()
    state = engine.start_session(make_raw_questions(5), 100, candidate, "exam1")
    engine.select_answer(2)
    engine.go_to(3)
    engine.select_answer(1)

    restored = SessionState.model_validate_json(state.model_dump_json())
    assert [q.id for q in restored.questions] == [q.id for q in state.questions]
    assert restored.questions == state.questions
    assert restored.answers == state.answers
    assert restored.current == 3


def test_resume_restores_without_reshuffling(make_engine, candidate):
    first = make_engine(seed=1)
    state = first.start_session(make_raw_questions(6), 100, candidate, "exam1")
    first.select_answer(0)
    first.advance()
    first.tick()

    reloaded = make_engine(seed=2)
    doc = ExamDocument(exam_id="exam1", title="t", questions=make_raw_questions(6))
    resumed = reloaded.start_exam(doc, Candidate(name="Alice"))

    assert resumed.questions == state.questions
    assert resumed.answers == state.answers
    assert resumed.current == 1
    assert resumed.time_left == 99


def test_resume_ignores_other_exam_or_candidate(make_engine, candidate):
    make_engine().start_session(make_raw_questions(3), 100, candidate, "exam1")

    assert make_engine().resume(Candidate(name="Bob"), "exam1") is None
    assert make_engine().resume(candidate, "exam2") is None


def test_corrupted_persisted_state_starts_fresh(make_engine, candidate, store):
    store._write("default.session.json", '{"questions": "garbage"')
    engine = make_engine()

    assert engine.resume(candidate, "exam1") is None
    assert store._read("default.session.json") is None

    doc = ExamDocument(exam_id="exam1", title="t", questions=make_raw_questions(3))
    state = engine.start_exam(doc, candidate)
    assert state.status == SessionStatus.RUNNING


def test_inconsistent_persisted_state_is_discarded(make_engine, candidate, store):
    engine = make_engine()
    state = engine.start_session(make_raw_questions(3), 100, candidate, "exam1")
    data = json.loads(state.model_dump_json())
    data["current"] = 7
    store._write("default.session.json", json.dumps(data))

    assert make_engine().resume(candidate, "exam1") is None


def test_wall_clock_resume_never_adds_time(make_engine, candidate):
    now = [1000.0]
    settings = ExamSettings(wall_clock_timing=True)
    engine = make_engine(settings=settings, clock=lambda: now[0])
    engine.start_session(make_raw_questions(3), 100, candidate, "exam1")
    for _ in range(5):
        engine.tick()

    now[0] += 30
    resumed = make_engine(settings=settings, clock=lambda: now[0]).resume(candidate, "exam1")
    assert resumed.time_left == 70

    now[0] += 500
    again = make_engine(settings=settings, clock=lambda: now[0])
    state = again.resume(candidate, "exam1")
    assert state.status == SessionStatus.FINISHED
    assert state.result.time_expired is True
    _join_delivery(again)


def test_new_exam_clears_previous_result(make_engine, candidate, store):
    engine = make_engine()
    engine.start_session(make_raw_questions(2), 60, candidate, "exam1")
    engine.finish()
    _join_delivery(engine)
    assert store.load_result(engine.slot) is not None

    engine.start_session(make_raw_questions(2), 60, candidate, "exam2")
    assert store.load_result(engine.slot) is None
    assert engine.last_result() is None
