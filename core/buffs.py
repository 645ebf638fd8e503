"""
Buff / Modifier Derivation Module
Turns active buffs and held items into buff instances, then derives the
displayed stats from base stats plus buff modifiers.

Instance order is insertion order: active buffs in the order they were added,
then hold buffs in item-declaration order. Modifier formulas read `$stat`
from the base stats handed to derive(), so one instance's modifier never sees
another instance's contribution and the derived result does not depend on
that order (before the final clamp).
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from core.expression import coalesce, is_finite_number, to_number

logger = logging.getLogger(__name__)

# evaluate(expr, extra_bindings) -> value; errors are handled by the caller
Evaluate = Callable[..., Any]


@dataclass(frozen=True)
class BuffInstance:
    """One contribution to a buff id's aggregate value."""
    id: str
    value: Any
    source: str  # "active" or "hold:<item_id>"


def compute_buff_instances(state: Any, item_defs: Dict[str, Dict[str, Any]], evaluate: Evaluate) -> List[BuffInstance]:
    """
    Evaluate every active buff and every hold buff of a held item.

    Args:
        state: GameState (reads `buffs` and `inventory`)
        item_defs: Item definitions from the game data, in declaration order
        evaluate: Formula evaluator bound to the current state

    Returns:
        List[BuffInstance]: Non-finite values are dropped; hold buffs that
        evaluate to 0 are dropped too
    """
    instances: List[BuffInstance] = []

    for buff in state.buffs:
        value = to_number(evaluate(coalesce(buff.get("value_expr"), "1")))
        if not is_finite_number(value):
            continue
        instances.append(BuffInstance(id=buff.get("id"), value=value, source="active"))

    for item_id, item_def in item_defs.items():
        count = state.inventory.get_quantity(item_id)
        holds = (item_def or {}).get("hold_buffs")
        if not holds or not is_finite_number(count) or count <= 0:
            continue
        for hold in holds:
            value = to_number(evaluate(coalesce(hold.get("value_expr"), "1"), {"$count": count}))
            if not is_finite_number(value) or value == 0:
                continue
            instances.append(BuffInstance(id=hold.get("buff"), value=value, source=f"hold:{item_id}"))

    return instances


def aggregate(instances: List[BuffInstance]) -> Dict[str, Any]:
    """Sum instance values per buff id (exposed to formulas as `$buff.<id>`)."""
    totals: Dict[str, Any] = {}
    for instance in instances:
        if not is_finite_number(instance.value):
            continue
        totals[instance.id] = totals.get(instance.id, 0) + instance.value
    return totals


def derive(
    base_stats: Dict[str, Dict[str, Any]],
    instances: List[BuffInstance],
    buff_defs: Dict[str, Dict[str, Any]],
    evaluate: Evaluate,
) -> Dict[str, Dict[str, Any]]:
    """
    Apply every instance's modifiers to a copy of the base stats.

    - stat_add_max adds to the target stat's max
    - stat_add adds to the target stat's cur
    Afterwards max is clamped to >= 0 and cur to [0, max].

    Args:
        base_stats: Persistent stats (not modified)
        instances: Buff instances from compute_buff_instances()
        buff_defs: Buff definitions from the game data
        evaluate: Formula evaluator; modifiers get `$value` (the instance
            value) and `$stat` (the base stats)

    Returns:
        dict: Derived stats, stat_id -> {"cur", "max"}
    """
    derived = copy.deepcopy(base_stats)
    for instance in instances:
        buff_def = buff_defs.get(instance.id) or {}
        for modifier in buff_def.get("modifiers") or []:
            stat = derived.get(modifier.get("stat"))
            if stat is None:
                continue
            value = to_number(evaluate(
                coalesce(modifier.get("value_expr"), "$value"),
                {"$value": instance.value, "$stat": base_stats},
            ))
            if not is_finite_number(value):
                continue
            kind = modifier.get("type")
            if kind == "stat_add_max":
                stat["max"] += value
            elif kind == "stat_add":
                stat["cur"] += value
            else:
                logger.warning("Unknown modifier type %r on buff %r", kind, instance.id)

    for stat in derived.values():
        stat["max"] = max(0, stat["max"])
        stat["cur"] = min(max(0, stat["cur"]), stat["max"])
    return derived


def clamp_base_stats(base_stats: Dict[str, Dict[str, Any]], derived: Dict[str, Dict[str, Any]]) -> None:
    """Permanently pull each base cur into [0, derived max]."""
    for stat_id, stat in base_stats.items():
        limit = derived.get(stat_id)
        if limit is not None and stat["cur"] > limit["max"]:
            stat["cur"] = limit["max"]
        if stat["cur"] < 0:
            stat["cur"] = 0


def sync(
    state: Any,
    buff_defs: Dict[str, Dict[str, Any]],
    item_defs: Dict[str, Dict[str, Any]],
    evaluate: Evaluate,
) -> None:
    """
    Recompute the transient view of a state (two passes).

    1. derive once to learn each stat's current max
    2. clamp base cur into [0, that max] (persistent mutation)
    3. derive again from the corrected base stats

    Buff instance formulas see `$stat` as a plain copy of the base stats and
    `$buff` / hasBuff() as of the previous sync.
    """
    state.stats = copy.deepcopy(state.base_stats)
    instances = compute_buff_instances(state, item_defs, evaluate)
    values = aggregate(instances)

    derived = derive(state.base_stats, instances, buff_defs, evaluate)
    clamp_base_stats(state.base_stats, derived)
    state.stats = derive(state.base_stats, instances, buff_defs, evaluate)

    state.buff_instances = instances
    state.buff_values = values
