"""
Tests for the card scheduling transitions.
"""
from dataclasses import replace
from datetime import timedelta

import pytest

from core.fsrs.constants import CardPhase, Grade
from core.fsrs.memory_state import CardSchedulingState, initial_state
from core.fsrs.scheduler import (
    interval_days,
    next_state,
    process_review,
    update_difficulty,
    update_stability,
)
from core.schemas import CardSchedulingStateRecord


ALL_GRADES = list(Grade)


def _states(now):
    base = initial_state(now)
    return [
        base,
        replace(base, stability=0.5, difficulty=0.0, phase=CardPhase.RELEARNING, lapses=3),
        replace(base, stability=12.4, difficulty=9.9, repetitions=4, phase=CardPhase.REVIEW),
        replace(base, stability=40.0, difficulty=10.0, repetitions=9, phase=CardPhase.REVIEW),
        replace(base, stability=3.0, difficulty=2.2, repetitions=1, phase=CardPhase.LEARNING),
    ]


class TestScenarios:

    def test_new_card_graded_good(self, now):
        state = next_state(initial_state(now), Grade.GOOD, now)

        assert state.stability == 1.75
        assert state.difficulty == 4.7
        assert state.repetitions == 1
        assert state.lapses == 0
        assert state.phase == CardPhase.REVIEW
        assert state.due_at == now + timedelta(days=2)
        assert state.last_review_at == now

    def test_new_card_graded_again(self, now):
        state = next_state(initial_state(now), Grade.AGAIN, now)

        assert state.stability == 0.5
        assert state.difficulty == 5.5
        assert state.repetitions == 0
        assert state.lapses == 1
        assert state.phase == CardPhase.RELEARNING
        assert state.due_at == now + timedelta(days=1)

    def test_new_card_graded_hard(self, now):
        state = next_state(initial_state(now), Grade.HARD, now)

        assert state.stability == 1.2
        assert state.difficulty == 4.7
        assert state.due_at == now + timedelta(days=1)

    def test_new_card_graded_easy(self, now):
        state = next_state(initial_state(now), Grade.EASY, now)

        # 1.75 * 1.3 = 2.275
        assert state.stability == pytest.approx(2.28, abs=0.01)
        assert state.due_at == now + timedelta(days=2)


class TestProperties:

    @pytest.mark.parametrize("grade", ALL_GRADES)
    def test_due_strictly_after_now(self, now, grade):
        for state in _states(now):
            assert next_state(state, grade, now).due_at > now

    @pytest.mark.parametrize("grade", ALL_GRADES)
    def test_difficulty_stays_in_range(self, now, grade):
        for state in _states(now):
            assert 0.0 <= next_state(state, grade, now).difficulty <= 10.0

    @pytest.mark.parametrize("grade", ALL_GRADES)
    def test_stability_never_below_floor(self, now, grade):
        for state in _states(now):
            assert next_state(state, grade, now).stability >= 0.5

    @pytest.mark.parametrize("grade", [Grade.HARD, Grade.GOOD, Grade.EASY])
    def test_success_increments_repetitions(self, now, grade):
        for state in _states(now):
            result = next_state(state, grade, now)
            assert result.repetitions == state.repetitions + 1
            assert result.lapses == state.lapses
            assert result.phase == CardPhase.REVIEW

    def test_again_resets_repetitions_and_counts_lapse(self, now):
        for state in _states(now):
            result = next_state(state, Grade.AGAIN, now)
            assert result.repetitions == 0
            assert result.lapses == state.lapses + 1
            assert result.phase == CardPhase.RELEARNING

    def test_deterministic(self, now):
        state = _states(now)[2]
        assert next_state(state, Grade.GOOD, now) == next_state(state, Grade.GOOD, now)

    def test_input_state_unchanged(self, now):
        state = initial_state(now)
        next_state(state, Grade.EASY, now)
        assert state == initial_state(now)

    def test_good_at_max_difficulty_still_grows(self, now):
        state = CardSchedulingState(stability=10.0, difficulty=10.0, due_at=now)
        result = next_state(state, Grade.GOOD, now)
        assert result.stability == 10.0
        assert result.difficulty == 9.7

    @pytest.mark.parametrize("grade", [Grade.HARD, Grade.GOOD, Grade.EASY])
    def test_tiny_stability_stays_positive(self, now, grade):
        state = CardSchedulingState(stability=0.001, difficulty=5.0, due_at=now)
        result = next_state(state, grade, now)

        assert result.stability == 0.01
        assert result.due_at == now + timedelta(days=1)
        # Still a valid stored record
        assert CardSchedulingStateRecord.from_domain(result).to_domain() == result


class TestComponents:

    def test_difficulty_clamped_high(self):
        assert update_difficulty(9.8, Grade.AGAIN) == 10.0

    def test_difficulty_clamped_low(self):
        assert update_difficulty(0.1, Grade.EASY) == 0.0

    def test_stability_lapse_floor(self):
        assert update_stability(0.6, 5.0, Grade.AGAIN) == 0.5
        assert update_stability(8.0, 5.0, Grade.AGAIN) == 4.0

    @pytest.mark.parametrize("stability,expected", [
        (0.5, 1),
        (1.2, 1),
        (1.5, 2),
        (2.49, 2),
        (2.5, 3),
        (30.0, 30),
    ])
    def test_interval_rounds_half_up(self, stability, expected):
        assert interval_days(stability) == expected


class TestGradeParsing:

    @pytest.mark.parametrize("raw,expected", [
        (1, Grade.AGAIN),
        (4, Grade.EASY),
        ("good", Grade.GOOD),
        (" Hard ", Grade.HARD),
        ("3", Grade.GOOD),
        (Grade.EASY, Grade.EASY),
    ])
    def test_parse_accepts(self, raw, expected):
        assert Grade.parse(raw) is expected

    @pytest.mark.parametrize("raw", [0, 5, -1, "great", None, "6"])
    def test_parse_rejects(self, raw):
        with pytest.raises(ValueError):
            Grade.parse(raw)

    def test_next_state_rejects_out_of_range_grade(self, now):
        with pytest.raises(ValueError):
            next_state(initial_state(now), 5, now)

    def test_is_correct(self):
        assert [g.is_correct for g in Grade] == [False, True, True, True]


def test_process_review_outcome(now):
    state = initial_state(now)
    updated, outcome = process_review(state, Grade.GOOD, now)

    assert outcome.grade == Grade.GOOD
    assert outcome.phase_before == CardPhase.NEW
    assert outcome.phase_after == CardPhase.REVIEW
    assert outcome.stability_before == 1.0
    assert outcome.stability_after == updated.stability == 1.75
    assert outcome.difficulty_after == 4.7
    assert outcome.interval_days == 2
    assert outcome.retrievability_before == 0.0
