"""Tests for the decision engine and the decision workflow."""

from collections import Counter
from datetime import datetime, timezone

import pytest

from chaispas.errors import InvalidInput, ValidationError
from chaispas.models import Choice
from chaispas.randomizer import (
    DecisionOutcome,
    RandomIndexSource,
    SequenceIndexSource,
    build_record,
    decide,
    run_decision,
)


@pytest.fixture
def choices():
    return [
        Choice(id="a", text="Pizza", number=12),
        Choice(id="b", text="Tacos", number=7),
        Choice(id="c", text="Sushi", number=99),
        Choice(id="d", text="Pizza", number=450),
    ]


class TestDecide:
    def test_returns_a_member(self, choices):
        for _ in range(50):
            assert decide(choices).id in {c.id for c in choices}

    def test_single_choice_is_returned(self):
        only = Choice(id="x", text="Only", number=1)
        assert decide([only]) == only

    def test_empty_raises_invalid_input(self):
        with pytest.raises(InvalidInput):
            decide([])

    def test_index_source_maps_to_position(self, choices):
        source = SequenceIndexSource([2, 0, 3, 1])
        picked = [decide(choices, source).id for _ in range(4)]
        assert picked == ["c", "a", "d", "b"]

    def test_duplicate_texts_are_selected_independently(self, choices):
        assert decide(choices, SequenceIndexSource([0])).id == "a"
        assert decide(choices, SequenceIndexSource([3])).id == "d"

    def test_out_of_range_index_is_rejected(self, choices):
        with pytest.raises(InvalidInput):
            decide(choices, SequenceIndexSource([4]))

    def test_uniform_over_many_draws(self, choices):
        source = RandomIndexSource(seed=1234)
        counts = Counter(decide(choices, source).id for _ in range(10_000))
        for choice in choices:
            assert 0.22 < counts[choice.id] / 10_000 < 0.28


class TestRunDecision:
    def test_requires_two_choices(self, choices):
        with pytest.raises(ValidationError):
            run_decision(choices[:1])

    def test_measures_elapsed_milliseconds(self, choices):
        ticks = iter([10.0, 10.25])
        outcome = run_decision(choices, SequenceIndexSource([1]), clock=lambda: next(ticks))
        assert outcome.choice.id == "b"
        assert outcome.decision_time == 250

    def test_decision_time_never_negative(self, choices):
        ticks = iter([5.0, 4.0])
        outcome = run_decision(choices, clock=lambda: next(ticks))
        assert outcome.decision_time == 0

    def test_real_clock(self, choices):
        outcome = run_decision(choices)
        assert outcome.decision_time >= 0
        assert outcome.choice in choices


def test_build_record(choices):
    now = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
    record = build_record(choices, DecisionOutcome(choice=choices[2], decision_time=42), now=now)
    assert record.timestamp == now
    assert record.choices == choices
    assert record.selected_choice.id == "c"
    assert record.decision_time == 42
    assert record.is_consistent()


def test_choice_create_strips_text():
    choice = Choice.create("  Ramen  ")
    assert choice.text == "Ramen"
    assert 1 <= choice.number <= 1000
    assert choice.id


def test_choice_create_rejects_blank():
    with pytest.raises(ValidationError):
        Choice.create("   ")
