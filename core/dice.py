"""
Dice Rolling Module
Dice-notation parsing, static bounds and runtime rolls for check resolution.
"""

import random
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class CheckResult(Enum):
    """Enumeration of possible check result types"""
    SUCCESS = "success"
    FAIL = "fail"
    CRIT_SUCCESS = "crit_success"
    CRIT_FAIL = "crit_fail"

    @property
    def label(self) -> str:
        """Upper-case label used in check log lines (e.g. "CRIT SUCCESS")."""
        return self.value.replace("_", " ").upper()


# count 'd' sides, optional signed modifier: "2d6+1", "1d20 - 3"
_DICE_RE = re.compile(r"^(\d+)\s*d\s*(\d+)\s*([+-]\s*\d+)?$", re.IGNORECASE)


@dataclass(frozen=True)
class DiceBounds:
    """Achievable numeric range of a dice expression (inclusive)."""
    min: int
    max: int

    def values(self) -> range:
        return range(self.min, self.max + 1)


def _match_dice(expr: Any) -> Optional[tuple]:
    if not isinstance(expr, str):
        return None
    match = _DICE_RE.match(expr.strip())
    if not match:
        return None
    count = int(match.group(1))
    sides = int(match.group(2))
    mod = int(match.group(3).replace(" ", "")) if match.group(3) else 0
    return count, sides, mod


def parse_dice(expr: Any) -> Optional[DiceBounds]:
    """
    Compute the static bounds of a dice expression.

    Args:
        expr: Dice notation such as "1d20", "2d6+1" or "1d20-3"

    Returns:
        Optional[DiceBounds]: [count + mod, count * sides + mod], or None for
        anything that is not plain dice notation (including "roll('1d20')",
        which is only resolved at runtime)
    """
    parsed = _match_dice(expr)
    if parsed is None:
        return None
    count, sides, mod = parsed
    return DiceBounds(min=count * 1 + mod, max=count * sides + mod)


def roll(expr: Any, rng: Optional[random.Random] = None) -> int:
    """
    Roll a dice expression.

    Rules:
    - Sum of `count` independent uniform draws in [1, sides], plus modifier
    - Unparseable input rolls 0

    Args:
        expr: Dice notation (same grammar as parse_dice)
        rng: Random source; defaults to the module-level generator

    Returns:
        int: The rolled total
    """
    parsed = _match_dice(expr)
    if parsed is None:
        return 0
    count, sides, mod = parsed
    if sides < 1:
        return mod
    source = rng or random
    return mod + sum(source.randint(1, sides) for _ in range(count))


class SequenceRoller:
    """
    Deterministic roll source that replays a fixed sequence.

    Once the sequence is exhausted it returns `fallback` (or rolls for real
    when `fallback` is None). Pass an instance as the engine's roller.
    """

    def __init__(self, values, fallback: Optional[int] = None, rng: Optional[random.Random] = None):
        self.values = list(values)
        self.fallback = fallback
        self.rng = rng
        self.calls = []

    def __call__(self, expr: Any) -> int:
        self.calls.append(expr)
        if self.values:
            return self.values.pop(0)
        if self.fallback is not None:
            return self.fallback
        return roll(expr, rng=self.rng)
