"""
Pytest fixtures for the rules engine tests.

Provides the bundled demo game, small purpose-built game documents and
engines wired to deterministic dice.
"""

import copy
import random

import pytest

from content.loader import load_default_game
from core.dice import SequenceRoller
from core.engine import GameEngine

_DEMO = load_default_game()


@pytest.fixture
def demo_data():
    """Fresh deep copy of the Dusty Gate demo game."""
    return copy.deepcopy(_DEMO)


@pytest.fixture
def make_engine():
    """Factory: engine over the given data with scripted rolls (fallback 10)."""
    def _make(data, rolls=(), **kwargs):
        roller = SequenceRoller(rolls, fallback=10)
        return GameEngine(copy.deepcopy(data), roller=roller, rng=random.Random(0), **kwargs)
    return _make


@pytest.fixture
def engine(make_engine, demo_data):
    """Demo game engine with deterministic dice."""
    return make_engine(demo_data)


@pytest.fixture
def arena_data():
    """Small game built around checks, buffs and endings."""
    return {
        "meta": {"title": "Arena"},
        "resources": {"capacity": 10},
        "stats": {
            "hp": {"cur": 20, "max": 20},
            "skill": {"cur": 2, "max": 10},
            "armor": {"cur": 5, "max": 100},
        },
        "items": {
            "amulet": {
                "name": "Amulet",
                "start_count": 0,
                "hold_buffs": [{"buff": "vigor", "value_expr": "4"}],
            },
            "herb": {
                "name": "Herb",
                "start_count": 1,
                "use_effects": [{"type": "stat_add", "stat": "hp", "value_expr": "5"}],
            },
        },
        "buffs": {
            "vigor": {
                "desc": "Tougher than usual.",
                "modifiers": [{"type": "stat_add_max", "stat": "hp", "value_expr": "$value"}],
            },
            "blessed": {"desc": "Luck is on your side.", "value_expr": "3"},
            "regen": {
                "desc": "Wounds close over time.",
                "periodic": {
                    "every": "day",
                    "effects": [{"type": "stat_add", "stat": "hp", "value_expr": "$value"}],
                },
            },
            "berserk": {
                "modifiers": [{"type": "stat_add", "stat": "armor", "value_expr": "$stat.armor.cur * 2"}],
            },
            "shield_wall": {
                "modifiers": [{"type": "stat_add", "stat": "armor", "value_expr": "-floor($stat.armor.cur / 2)"}],
            },
        },
        "events": [
            {
                "trigger": "on_enter_node",
                "conditions": ["$node == 'won'"],
                "effects": [{"type": "log", "text": "The crowd roars."}],
            },
        ],
        "story": {
            "start": "pit",
            "nodes": {
                "pit": {
                    "title": "The Pit",
                    "text": "A gate rattles open.",
                    "choices": [
                        {
                            "text": "Fight",
                            "check": {
                                "name": "Fight",
                                "roll_expr": "roll('1d20')",
                                "base_expr": "$stat.skill.cur",
                                "dc": 12,
                                "success": {"goto": "won"},
                                "fail": {"effects": [{"type": "stat_add", "stat": "hp", "value_expr": "-1"}]},
                            },
                        },
                        {
                            "text": "Bow out",
                            "conditions": ["$stat.hp.cur < 5"],
                            "goto": "lost",
                        },
                    ],
                },
                "won": {
                    "title": "Victory",
                    "on_enter": [{"type": "flag_set", "flag": "champion"}],
                    "choices": [{"text": "Again", "goto": "pit"}],
                },
                "lost": {
                    "type": "ending",
                    "title": "Defeat",
                    "choices": [{"text": "Again", "goto": "pit"}],
                },
            },
        },
        "endings": [
            {"id": "fallen", "conditions": ["$stat.hp.cur <= 0"], "node": "lost"},
            {"id": "legend", "conditions": ["flag('champion') && $day >= 3"], "node": "won"},
        ],
    }


@pytest.fixture
def arena(make_engine, arena_data):
    """Arena engine with deterministic dice."""
    return make_engine(arena_data)
