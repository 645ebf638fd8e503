"""Tests for buff instances, aggregation and the two-pass stat sync."""

import copy
import random

import pytest

from core import buffs
from core.buffs import BuffInstance


def assert_stats_valid(stats):
    for stat in stats.values():
        assert stat["max"] >= 0
        assert 0 <= stat["cur"] <= stat["max"]


class TestBuffInstances:
    """Test instance collection and aggregation."""

    def test_hold_buff_scales_with_stack(self, engine):
        """Two breads give one well_fed instance worth 4."""
        assert engine.state.buff_instances == [BuffInstance("well_fed", 4, "hold:bread")]
        assert engine.state.buff_values == {"well_fed": 4}

    def test_hold_buff_vanishes_at_zero(self, engine):
        engine.apply_effect({"type": "item_remove", "item": "bread", "count": 2})
        engine.sync_derived()
        assert engine.state.buff_instances == []
        assert engine.state.buff_values == {}

    def test_active_buffs_come_first(self, engine):
        engine.add_buff("brave", "1")
        engine.sync_derived()
        assert [b.id for b in engine.state.buff_instances] == ["brave", "well_fed"]

    def test_aggregate_sums_per_id(self):
        instances = [
            BuffInstance("regen", 2, "active"),
            BuffInstance("regen", 3, "hold:herb"),
            BuffInstance("vigor", 1, "active"),
        ]
        assert buffs.aggregate(instances) == {"regen": 5, "vigor": 1}

    def test_non_finite_active_values_dropped(self, arena):
        arena.add_buff("blessed", "1 / 0")
        arena.sync_derived()
        assert arena.state.buff_values == {}


class TestDerive:
    """Test derived stats."""

    def test_held_max_bonus(self, engine):
        """Base HP 20/20 plus a +4 max bonus: derived max 24, cur stays 20."""
        assert engine.state.stats["hp"] == {"cur": 20, "max": 24}
        assert engine.state.base_stats["hp"] == {"cur": 20, "max": 20}

    def test_removing_bonus_restores_max(self, engine):
        engine.apply_effect({"type": "item_remove", "item": "bread", "count": 2})
        engine.sync_derived()
        assert engine.state.stats["hp"] == {"cur": 20, "max": 20}

    def test_stat_add_modifier(self, engine):
        engine.add_buff("brave")
        engine.sync_derived()
        assert engine.state.stats["stamina"] == {"cur": 7, "max": 7}
        assert engine.state.base_stats["stamina"] == {"cur": 6, "max": 6}

    def test_derive_does_not_touch_base(self, arena):
        base = copy.deepcopy(arena.state.base_stats)
        instances = [BuffInstance("vigor", 10, "active")]
        derived = buffs.derive(arena.state.base_stats, instances, arena.buffs, arena.evaluate)
        assert derived["hp"]["max"] == 30
        assert arena.state.base_stats == base

    def test_derived_max_never_negative(self, arena):
        arena.apply_effect({"type": "stat_add_max", "stat": "hp", "value": -100})
        arena.sync_derived()
        assert arena.state.stats["hp"] == {"cur": 0, "max": 0}

    def test_unknown_modifier_type_is_ignored(self, arena, caplog):
        arena.buffs["odd"] = {"modifiers": [{"type": "stat_mul", "stat": "hp", "value_expr": "2"}]}
        arena.add_buff("odd")
        arena.sync_derived()
        assert arena.state.stats["hp"] == {"cur": 20, "max": 20}
        assert "Unknown modifier type" in caplog.text


class TestSelfReferentialModifiers:
    """Modifiers reading the stat they change see the base value."""

    @pytest.mark.parametrize("order", [("berserk", "shield_wall"), ("shield_wall", "berserk")])
    def test_result_independent_of_order(self, arena, order):
        for buff_id in order:
            arena.add_buff(buff_id)
        arena.sync_derived()
        # 5 + 5*2 - floor(5/2)
        assert arena.state.stats["armor"]["cur"] == 13

    def test_instances_keep_insertion_order(self, arena):
        arena.add_buff("shield_wall")
        arena.add_buff("berserk")
        arena.sync_derived()
        assert [b.id for b in arena.state.buff_instances] == ["shield_wall", "berserk"]


class TestSync:
    """Test the two-pass derive / clamp / derive cycle."""

    def test_losing_max_clamps_base_cur(self, arena):
        """Healing above base max is kept only while the bonus lasts."""
        arena.apply_effect({"type": "item_add", "item": "amulet", "count": 1})
        arena.sync_derived()
        arena.apply_effect({"type": "stat_add", "stat": "hp", "value": 4})
        arena.sync_derived()
        assert arena.state.stats["hp"] == {"cur": 24, "max": 24}
        assert arena.state.base_stats["hp"]["cur"] == 24

        arena.apply_effect({"type": "item_remove", "item": "amulet", "count": 1})
        arena.sync_derived()
        assert arena.state.base_stats["hp"]["cur"] == 20
        assert arena.state.stats["hp"] == {"cur": 20, "max": 20}

    def test_negative_base_cur_clamped(self, arena):
        arena.apply_effect({"type": "stat_add", "stat": "skill", "value": -50})
        arena.sync_derived()
        assert arena.state.base_stats["skill"]["cur"] == 0

    def test_sync_is_idempotent(self, engine):
        engine.add_buff("brave")
        engine.sync_derived()
        first = (copy.deepcopy(engine.state.stats), list(engine.state.buff_instances), dict(engine.state.buff_values))
        engine.sync_derived()
        second = (engine.state.stats, engine.state.buff_instances, engine.state.buff_values)
        assert first == second

    def test_invariants_hold_over_random_play(self, make_engine, demo_data):
        """Derived stats stay within [0, max] whatever the player does."""
        rng = random.Random(7)
        game = make_engine(demo_data)
        for _ in range(300):
            action = rng.choice(["choose", "buy", "use", "rest"])
            if action == "choose":
                game.choose_index(rng.randrange(-1, 5))
            elif action == "buy":
                game.buy("market", rng.choice(["bread", "key", "sword"]))
            elif action == "use":
                game.use_item(rng.choice(["bread", "key"]))
            else:
                game.advance_day(rng.choice([1, 2]))
            assert_stats_valid(game.state.stats)
