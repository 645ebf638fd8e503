"""
Game Engine Module (Effect / Story State Machine)
Owns the game state and runs every player action to completion:
conditions -> effects or check -> re-sync derived stats -> endings.

All randomness goes through the injected roller (formula `roll()`) and the
injected random source (formula `random()`), so a caller can make a whole
session deterministic without touching anything else.
"""

import copy
import logging
import math
import random
from typing import Any, Callable, Dict, List, Optional

from config import settings
from core import buffs, dice, expression
from core.checks import CheckOutcome, resolve_check, select_branch
from core.endings import EndingManager
from core.expression import EvalContext, ExpressionError, coalesce, format_value, is_finite_number, to_number
from core.inventory import Inventory
from core.journal import ActionLog
from core.state import GameState

logger = logging.getLogger(__name__)


class GameEngine:
    """
    Data-driven rules engine for one loaded game document.

    The state record (self.state) is owned by the engine; callers read it
    between actions and mutate it only through the action methods.
    """

    def __init__(
        self,
        data: Dict[str, Any],
        roller: Optional[Callable[[Any], Any]] = None,
        rng: Optional[random.Random] = None,
        log_limit: int = settings.LOG_LIMIT,
        default_dice: str = settings.DEFAULT_DICE,
        default_dc: Any = settings.DEFAULT_DC,
    ):
        """
        Args:
            data: Game document (meta, resources, stats, items, buffs, shops,
                events, story, endings)
            roller: Dice roller used by formula `roll()`; defaults to fair dice
            rng: Random source for fair dice and formula `random()`
            log_limit: Action log capacity
            default_dice: Die used for band bounds when a roll formula is not dice notation
            default_dc: DC used when a check declares none
        """
        self.rng = rng or random.Random()
        self.roller = roller or (lambda expr: dice.roll(expr, rng=self.rng))
        self.log_limit = log_limit
        self.default_dice = default_dice
        self.default_dc = default_dc
        self._functions = self._build_functions()
        self.load(data)

    # =========================================================================
    # Loading
    # =========================================================================

    def load(self, data: Dict[str, Any]) -> None:
        """Replace the game document and start a fresh state."""
        self.data = data or {}
        self._compile()
        self.state = self._initial_state()
        self.sync_derived()

    def reset(self) -> None:
        """Restart the current game document from scratch."""
        self.load(self.data)

    def _compile(self) -> None:
        data = self.data
        story = data.get("story") or {}
        self.meta: Dict[str, Any] = data.get("meta") or {}
        self.items: Dict[str, Dict[str, Any]] = data.get("items") or {}
        self.buffs: Dict[str, Dict[str, Any]] = data.get("buffs") or {}
        self.shops: Dict[str, Dict[str, Any]] = data.get("shops") or {}
        self.nodes: Dict[str, Dict[str, Any]] = story.get("nodes") or {}
        self.start_node: Optional[str] = story.get("start")
        self.events: List[Dict[str, Any]] = data.get("events") or []
        self.endings: List[Dict[str, Any]] = data.get("endings") or []

    def _initial_state(self) -> GameState:
        return GameState(
            base_stats=_normalize_stats(self.data.get("stats")),
            resources=copy.deepcopy(self.data.get("resources") or {}),
            inventory=Inventory({
                item_id: (item_def or {}).get("start_count") or 0
                for item_id, item_def in self.items.items()
            }),
            node=self.start_node,
            log=ActionLog(limit=self.log_limit),
        )

    def export_state(self) -> Dict[str, Any]:
        """The persistent state as a plain dict (for the persistence layer)."""
        return self.state.to_dict()

    def restore(self, data: Dict[str, Any]) -> None:
        """Replace the state with a previously exported one and re-sync."""
        state = GameState.from_dict(data or {}, log_limit=self.log_limit)
        state.base_stats = _normalize_stats(state.base_stats)
        self.state = state
        self.sync_derived()

    # =========================================================================
    # Formulas
    # =========================================================================

    def _build_functions(self) -> Dict[str, Callable[..., Any]]:
        functions: Dict[str, Callable[..., Any]] = dict(expression.MATH_FUNCTIONS)
        functions.update({
            "random": lambda: self.rng.random(),
            "roll": lambda expr: self.roller(expr),
            "hasItem": lambda item_id, count=1: self.get_item_count(item_id) >= to_number(count),
            "itemCount": lambda item_id: self.get_item_count(item_id),
            "hasBuff": lambda buff_id: any(b.id == buff_id for b in self.state.buff_instances),
            "flag": lambda flag_id: expression.is_truthy(self.state.flags.get(flag_id)),
        })
        return functions

    def build_context(self, extra: Optional[Dict[str, Any]] = None) -> EvalContext:
        """
        Formula scope for the current state. `extra` bindings ($roll, $count,
        $value, $check...) are layered over the state names.
        """
        names: Dict[str, Any] = {
            "$capacity": self.state.capacity,
            "$day": self.state.day,
            "$stat": self.state.stats,
            "$item": self.state.inventory.items,
            "$flag": self.state.flags,
            "$buff": self.state.buff_values,
            "$check": None,
            "$node": self.state.node,
        }
        if extra:
            names.update(extra)
        return EvalContext(names, self._functions)

    def evaluate(self, expr: Any, extra: Optional[Dict[str, Any]] = None, quiet: bool = False) -> Any:
        """
        Evaluate a formula against the current state.

        Syntax and evaluation errors never propagate: they are logged as
        "Expr error: <formula>" and the formula evaluates to 0. With
        `quiet`, the error only goes to the module logger and the action
        log is left untouched.
        """
        try:
            return expression.evaluate(expr, self.build_context(extra))
        except ExpressionError as e:
            source = expr.strip() if isinstance(expr, str) else expr
            if not quiet:
                self.add_log(f"Expr error: {source}")
            logger.warning("Expression error in %r: %s", source, e)
            return 0

    def check_conditions(self, conditions: Any, extra: Optional[Dict[str, Any]] = None, quiet: bool = False) -> bool:
        """True when every condition formula is truthy (no conditions -> True)."""
        if not conditions:
            return True
        if not isinstance(conditions, list):
            conditions = [conditions]
        return all(expression.is_truthy(self.evaluate(cond, extra, quiet)) for cond in conditions)

    # =========================================================================
    # Derived state
    # =========================================================================

    def sync_derived(self) -> None:
        """Recompute buff instances and derived stats (two-pass clamp)."""
        buffs.sync(self.state, self.buffs, self.items, self.evaluate)

    def add_log(self, text: Any) -> None:
        self.state.log.add_entry(text)

    def get_item_count(self, item_id: str) -> Any:
        return self.state.inventory.get_quantity(item_id)

    def inventory_count(self) -> Any:
        return self.state.inventory.count_total_items()

    # =========================================================================
    # Effects
    # =========================================================================

    def apply_effects(self, effects: Optional[List[Dict[str, Any]]], extra: Optional[Dict[str, Any]] = None) -> None:
        for effect in effects or []:
            self.apply_effect(effect, extra)

    def apply_effect(self, effect: Dict[str, Any], extra: Optional[Dict[str, Any]] = None) -> None:
        """
        Apply one effect. Unknown types and unknown ids are no-ops; a
        non-finite amount skips the effect.
        """
        if not isinstance(effect, dict) or not effect.get("type"):
            return
        kind = effect["type"]

        if kind == "stat_add":
            value = self._amount(effect, extra, 0)
            self._log_change(self._update_stat(effect.get("stat"), value, lambda cur: cur + value))
        elif kind == "stat_set":
            value = self._amount(effect, extra, 0)
            self._log_change(self._update_stat(effect.get("stat"), value, lambda cur: value))
        elif kind == "stat_add_max":
            self._add_stat_max(effect.get("stat"), self._amount(effect, extra, 0))
        elif kind == "money_add":
            value = self._amount(effect, extra, 0)
            self._update_stat("money", value, lambda cur: cur + value)
        elif kind == "capacity_add":
            value = self._amount(effect, extra, 0)
            if is_finite_number(value):
                self.state.resources["capacity"] = (self.state.capacity or 0) + value
        elif kind == "item_add":
            self.add_item(effect.get("item"), self._count(effect, extra))
        elif kind == "item_remove":
            self.remove_item(effect.get("item"), self._count(effect, extra))
        elif kind == "buff_add":
            self.add_buff(effect.get("buff"), coalesce(effect.get("value_expr"), effect.get("value")), effect.get("duration_days"))
        elif kind == "buff_remove":
            self.remove_buff(effect.get("buff"))
        elif kind == "flag_set":
            flag_id = effect.get("flag")
            if flag_id:
                self.state.flags[flag_id] = self.evaluate(coalesce(effect.get("value_expr"), effect.get("value"), True), extra)
        elif kind == "advance_day":
            self._run_days(self._amount(effect, extra, 1))
        elif kind == "goto":
            self.goto_node(effect.get("node"))
        elif kind == "log":
            if effect.get("text_expr"):
                self.add_log(format_value(self.evaluate(effect["text_expr"], extra)))
            else:
                self.add_log(effect.get("text"))
        else:
            logger.warning("Unknown effect: %s", kind)

    def _amount(self, effect: Dict[str, Any], extra: Optional[Dict[str, Any]], default: Any) -> Any:
        raw = coalesce(effect.get("value_expr"), effect.get("value"), default)
        return to_number(self.evaluate(raw, extra))

    def _count(self, effect: Dict[str, Any], extra: Optional[Dict[str, Any]]) -> Any:
        raw = coalesce(effect.get("count_expr"), effect.get("value_expr"), effect.get("count"), 1)
        return to_number(self.evaluate(raw, extra))

    def _update_stat(self, stat_id: Optional[str], value: Any, updater: Callable[[Any], Any]) -> Optional[Dict[str, Any]]:
        stat = self.state.base_stats.get(stat_id) if stat_id else None
        if stat is None or not is_finite_number(value):
            return None
        before = stat["cur"]
        stat["cur"] = updater(before)
        after = stat["cur"]
        return {"stat": stat_id, "before": before, "after": after, "delta": after - before}

    def _log_change(self, change: Optional[Dict[str, Any]]) -> None:
        if not change or change["delta"] == 0:
            return
        sign = "+" if change["delta"] > 0 else ""
        self.add_log(
            f"{change['stat']}: {format_value(change['before'])} -> {format_value(change['after'])}"
            f" ({sign}{format_value(change['delta'])})"
        )

    def _add_stat_max(self, stat_id: Optional[str], value: Any) -> None:
        stat = self.state.base_stats.get(stat_id) if stat_id else None
        if stat is None or not is_finite_number(value):
            return
        before = stat["max"]
        stat["max"] += value
        after = stat["max"]
        if before != after:
            sign = "+" if value > 0 else ""
            self.add_log(f"{stat_id}.max: {format_value(before)} -> {format_value(after)} ({sign}{format_value(value)})")

    def add_item(self, item_id: Optional[str], count: Any) -> bool:
        """
        Add `count` of a declared item. An add that would push the total over
        capacity is rejected whole and logged. Returns False when rejected.
        """
        if not item_id or item_id not in self.items or not is_finite_number(count):
            return True
        if not self.state.inventory.add(item_id, count, capacity=self.state.capacity):
            self.add_log("Inventory is full.")
            return False
        return True

    def remove_item(self, item_id: Optional[str], count: Any) -> None:
        if not item_id or item_id not in self.items or not is_finite_number(count):
            return
        self.state.inventory.remove(item_id, count)

    def add_buff(self, buff_id: Optional[str], value_expr: Any = None, duration_days: Any = None) -> None:
        """Push an active buff; its value formula is re-evaluated on every sync."""
        if not buff_id or buff_id not in self.buffs:
            return
        buff_def = self.buffs[buff_id] or {}
        self.state.buffs.append({
            "id": buff_id,
            "value_expr": coalesce(value_expr, buff_def.get("value_expr"), "1"),
            "duration_days": duration_days,
        })

    def remove_buff(self, buff_id: Optional[str]) -> None:
        self.state.buffs = [buff for buff in self.state.buffs if buff.get("id") != buff_id]

    # =========================================================================
    # Time
    # =========================================================================

    def _run_days(self, days: Any) -> None:
        """
        Advance at least one day. Each day: sync, bump the counter, run
        on_day_start events, run daily buff effects, tick buff durations.
        """
        days = to_number(days)
        total = math.ceil(max(1, days)) if is_finite_number(days) else 1
        for _ in range(total):
            self.sync_derived()
            self.state.day += 1
            self.run_events("on_day_start")
            self.run_buff_periodic("day")
            self.tick_buff_durations()

    def run_buff_periodic(self, every: str) -> None:
        """Fire the periodic effects of every current buff instance with a matching period."""
        for instance in buffs.compute_buff_instances(self.state, self.items, self.evaluate):
            periodic = (self.buffs.get(instance.id) or {}).get("periodic")
            if not periodic or periodic.get("every") != every:
                continue
            extra = {"$value": instance.value}
            if not self.check_conditions(periodic.get("conditions"), extra):
                continue
            self.apply_effects(periodic.get("effects"), extra)

    def tick_buff_durations(self) -> None:
        """Count timed buffs down by one day and drop the expired ones."""
        remaining = []
        for buff in self.state.buffs:
            duration = buff.get("duration_days")
            if duration is None:
                remaining.append(buff)
                continue
            duration -= 1
            if duration > 0:
                remaining.append(dict(buff, duration_days=duration))
        self.state.buffs = remaining

    # =========================================================================
    # Story
    # =========================================================================

    def current_node(self) -> Dict[str, Any]:
        return self.nodes.get(self.state.node) or {}

    def goto_node(self, node_id: Optional[str]) -> None:
        """Move to a node, then run its on_enter effects and on_enter_node events."""
        if not node_id or node_id not in self.nodes:
            return
        self.state.node = node_id
        node = self.nodes[node_id] or {}
        if node.get("on_enter"):
            self.apply_effects(node["on_enter"])
        self.run_events("on_enter_node", {"$node": node_id})

    def run_events(self, trigger: str, extra: Optional[Dict[str, Any]] = None) -> None:
        for event in self.events:
            if event.get("trigger") != trigger:
                continue
            if not self.check_conditions(event.get("conditions"), extra):
                continue
            self.apply_effects(event.get("effects"), extra)

    def run_check(self, check: Dict[str, Any]) -> CheckOutcome:
        """
        Resolve a check, log its line, then apply the selected branch's
        effects (with `$check` bound) and its goto.
        """
        outcome = resolve_check(
            check,
            self.evaluate,
            self.state.buff_values,
            default_dice=self.default_dice,
            default_dc=self.default_dc,
        )
        self.add_log(outcome.log_line)

        branch = select_branch(check, outcome.result)
        if branch:
            self.apply_effects(branch.get("effects"), {"$check": outcome.as_context()})
            if branch.get("goto"):
                self.goto_node(branch["goto"])
        return outcome

    def check_endings(self) -> None:
        """Enter the first ending whose conditions hold; an ending is reached once."""
        ending = EndingManager.find_ending(self.endings, self.check_conditions, self.state.ending)
        if ending is None:
            return
        self.state.ending = ending.get("id") or ending.get("node") or "ending"
        if ending.get("node"):
            self.goto_node(ending["node"])
            self.sync_derived()

    # =========================================================================
    # Player actions
    # =========================================================================

    def choose(self, choice: Optional[Dict[str, Any]]) -> bool:
        """
        Take a choice: its check if it has one, otherwise its effects and goto.

        Returns:
            bool: False when the choice is missing or its conditions fail
        """
        if not choice or not self.check_conditions(choice.get("conditions")):
            return False

        if choice.get("check"):
            self.run_check(choice["check"])
        else:
            self.apply_effects(choice.get("effects"))
            if choice.get("goto"):
                self.goto_node(choice["goto"])
        self._after_action()
        return True

    def choose_index(self, index: int) -> bool:
        """Take the index-th choice of the current node if it is enabled."""
        choices = self.current_choices()
        if not 0 <= index < len(choices) or not choices[index]["enabled"]:
            return False
        return self.choose(self.current_node().get("choices")[index])

    def buy(self, shop_id: str, item_id: str) -> bool:
        """Buy an entry from a shop: check its conditions, apply its effects."""
        shop = self.shops.get(shop_id)
        if not shop:
            return False
        entry = next((e for e in shop.get("items") or [] if e.get("id") == item_id), None)
        if entry is None or not self.check_conditions(entry.get("conditions")):
            return False
        self.apply_effects(entry.get("effects"))
        self._after_action()
        return True

    def use_item(self, item_id: str) -> bool:
        """Apply an item's use effects and consume one unit."""
        if item_id not in self.items or self.get_item_count(item_id) <= 0:
            return False
        self.apply_effects((self.items[item_id] or {}).get("use_effects"))
        self.remove_item(item_id, 1)
        self._after_action()
        return True

    def advance_day(self, days: Any = 1) -> None:
        """Let time pass as a player action."""
        self._run_days(days)
        self._after_action()

    def _after_action(self) -> None:
        self.sync_derived()
        self.check_endings()

    # =========================================================================
    # Presentation snapshot
    # =========================================================================

    def current_choices(self) -> List[Dict[str, Any]]:
        node = self.current_node()
        is_ending = node.get("type") == "ending"
        return [
            {
                "text": choice.get("text") or "Choice",
                "enabled": not is_ending and self.check_conditions(choice.get("conditions"), quiet=True),
            }
            for choice in node.get("choices") or []
        ]

    def snapshot(self) -> Dict[str, Any]:
        """Read-only view of everything a presentation layer displays."""
        node = self.current_node()
        shops = []
        for shop_id in node.get("shops") or []:
            shop = self.shops.get(shop_id)
            if not shop:
                continue
            shops.append({
                "id": shop_id,
                "name": shop.get("name") or shop_id,
                "entries": [
                    {
                        "id": entry.get("id"),
                        "name": (self.items.get(entry.get("id")) or {}).get("name") or entry.get("id"),
                        "price": entry.get("price"),
                        "enabled": self.check_conditions(entry.get("conditions"), quiet=True),
                    }
                    for entry in shop.get("items") or []
                ],
            })
        return {
            "title": self.meta.get("title") or "Untitled",
            "day": self.state.day,
            "node": {
                "id": self.state.node,
                "title": node.get("title") or "Story",
                "text": node.get("text") or "",
                "is_ending": node.get("type") == "ending",
                "choices": self.current_choices(),
            },
            "stats": copy.deepcopy(self.state.stats),
            "inventory": self.state.inventory.list_items(self.items),
            "capacity": self.state.capacity,
            "inventory_count": self.inventory_count(),
            "buffs": [
                {
                    "id": instance.id,
                    "desc": (self.buffs.get(instance.id) or {}).get("desc") or instance.id,
                    "value": instance.value,
                    "source": instance.source,
                }
                for instance in self.state.buff_instances
            ],
            "buff_values": dict(self.state.buff_values),
            "shops": shops,
            "ending": self.state.ending,
            "log": self.state.log.texts(),
        }


def _normalize_stats(stats: Optional[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Deep-copy stat definitions, filling a missing cur/max from the other (or 0)."""
    result: Dict[str, Dict[str, Any]] = {}
    for stat_id, stat in (stats or {}).items():
        if not isinstance(stat, dict):
            logger.warning("Ignoring malformed stat %r", stat_id)
            continue
        cur = coalesce(stat.get("cur"), stat.get("max"), 0)
        result[stat_id] = dict(copy.deepcopy(stat), cur=cur, max=coalesce(stat.get("max"), cur))
    return result
