"""Tests for dice notation, rolls and the scripted roller."""

import random

import pytest

from core.dice import CheckResult, DiceBounds, SequenceRoller, parse_dice, roll


class TestParseDice:
    """Test static dice bounds."""

    @pytest.mark.parametrize("expr,bounds", [
        ("1d20", DiceBounds(1, 20)),
        ("2d6+1", DiceBounds(3, 13)),
        ("1d20 - 3", DiceBounds(-2, 17)),
        (" 3D4 ", DiceBounds(3, 12)),
    ])
    def test_valid_notation(self, expr, bounds):
        assert parse_dice(expr) == bounds

    @pytest.mark.parametrize("expr", ["roll('1d20')", "d20", "1d", "", None, 20])
    def test_not_dice_notation(self, expr):
        assert parse_dice(expr) is None

    def test_bounds_values(self):
        assert list(DiceBounds(1, 4).values()) == [1, 2, 3, 4]


class TestRoll:
    """Test runtime rolls."""

    @pytest.mark.parametrize("expr", ["1d20", "2d6+1", "3d4-2", "1d1"])
    def test_rolls_stay_in_bounds(self, expr):
        """Every roll lands inside the static bounds."""
        rng = random.Random(42)
        bounds = parse_dice(expr)
        results = {roll(expr, rng=rng) for _ in range(500)}
        assert min(results) >= bounds.min
        assert max(results) <= bounds.max

    def test_fair_die_reaches_both_ends(self):
        rng = random.Random(1)
        results = {roll("1d6", rng=rng) for _ in range(500)}
        assert results == {1, 2, 3, 4, 5, 6}

    def test_unparseable_rolls_zero(self):
        assert roll("fireball") == 0
        assert roll(None) == 0


class TestSequenceRoller:
    """Test the deterministic roller."""

    def test_replays_then_falls_back(self):
        roller = SequenceRoller([15, 3], fallback=10)
        assert [roller("1d20") for _ in range(4)] == [15, 3, 10, 10]
        assert roller.calls == ["1d20"] * 4

    def test_rolls_for_real_without_fallback(self):
        roller = SequenceRoller([], rng=random.Random(3))
        assert 1 <= roller("1d8") <= 8


class TestCheckResult:
    """Test result labels."""

    def test_labels(self):
        assert CheckResult.CRIT_SUCCESS.label == "CRIT SUCCESS"
        assert CheckResult.FAIL.label == "FAIL"
