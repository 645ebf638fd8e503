"""
Check Resolution Module
Evaluates a check's roll/base/buff/total/dc formulas and classifies the
outcome against the check's bands (if any) or its DC.

Classification order:
1. crit bands on round(roll): crit fail / crit success win outright
2. declared success/fail bands on round(roll) win next
3. otherwise total >= dc succeeds
Neither 1 nor 2 looks at the total or the DC.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from config import settings
from core.bands import BandSets, compute_band_sets
from core.dice import CheckResult, DiceBounds, parse_dice
from core.expression import coalesce, format_value, is_finite_number, js_round, to_number

DEFAULT_TOTAL_EXPR = "$roll + $base + $buff_sum"


@dataclass
class CheckOutcome:
    """Full record of one resolved check (bound to `$check` in branch effects)."""
    name: str
    roll: Any
    base: Any
    buff: Any
    total: Any
    dc: Any
    result: CheckResult

    @property
    def log_line(self) -> str:
        return (
            f"{self.name} | roll {format_value(self.roll)} + base {format_value(self.base)}"
            f" + buff {format_value(self.buff)} = {format_value(self.total)}"
            f" vs DC {format_value(self.dc)} -> {self.result.label}"
        )

    def as_context(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "roll": self.roll,
            "base": self.base,
            "buff": self.buff,
            "total": self.total,
            "dc": self.dc,
            "result": self.result.value,
        }


def roll_expression(check: Dict[str, Any], default_dice: str = settings.DEFAULT_DICE) -> str:
    """The check's roll formula (`roll_expr`, legacy `expr`, or a default die roll)."""
    return check.get("roll_expr") or check.get("expr") or f"roll('{default_dice}')"


def band_sets_for(check: Dict[str, Any], default_dice: str = settings.DEFAULT_DICE) -> Optional[BandSets]:
    """
    Band sets for a check, or None when it declares neither bands nor crit
    branches. Bounds come from the roll formula when it is plain dice
    notation, otherwise from the default die (a d20 when that is not dice
    notation either).
    """
    bands = check.get("bands")
    has_crit_fail = bool(check.get("crit_fail"))
    has_crit_success = bool(check.get("crit_success"))
    if not bands and not has_crit_fail and not has_crit_success:
        return None
    bounds = parse_dice(roll_expression(check, default_dice)) or parse_dice(default_dice) or DiceBounds(1, 20)
    return compute_band_sets(bands, bounds, has_crit_fail, has_crit_success)


def classify(roll_value: Any, total: Any, dc: Any, band_sets: Optional[BandSets] = None) -> CheckResult:
    """
    Classify a check outcome.

    Args:
        roll_value: Raw roll (rounded half up before band lookup)
        total: Check total
        dc: Difficulty class
        band_sets: Outcome sets from band_sets_for(), or None

    Returns:
        CheckResult: The outcome
    """
    if band_sets is not None:
        rolled = js_round(roll_value) if is_finite_number(to_number(roll_value)) else None
        if band_sets.has_crit_bands:
            if rolled in band_sets.crit_fail:
                return CheckResult.CRIT_FAIL
            if rolled in band_sets.crit_success:
                return CheckResult.CRIT_SUCCESS
        if band_sets.has_explicit_success_fail:
            if rolled in band_sets.success:
                return CheckResult.SUCCESS
            if rolled in band_sets.fail:
                return CheckResult.FAIL
    return CheckResult.SUCCESS if total >= dc else CheckResult.FAIL


def select_branch(check: Dict[str, Any], result: CheckResult) -> Optional[Dict[str, Any]]:
    """Crit results fall back to the plain branch of the same polarity."""
    if result is CheckResult.CRIT_FAIL:
        return check.get("crit_fail") or check.get("fail")
    if result is CheckResult.CRIT_SUCCESS:
        return check.get("crit_success") or check.get("success")
    return check.get(result.value)


def resolve_check(
    check: Dict[str, Any],
    evaluate: Callable[..., Any],
    buff_values: Dict[str, Any],
    default_dice: str = settings.DEFAULT_DICE,
    default_dc: Any = settings.DEFAULT_DC,
) -> CheckOutcome:
    """
    Evaluate a check's formulas in order and classify the result.

    Each step sees the values computed before it:
    roll -> base ($roll) -> buff ($roll, $base, $buff) ->
    total ($roll, $base, $buff_sum, $buff) -> dc (all of the above plus $total)

    Args:
        check: Check definition from the game data
        evaluate: Formula evaluator bound to the current state
        buff_values: Aggregated buff values from the last sync
        default_dice: Die used for band bounds when the roll formula is not dice notation
        default_dc: DC used when the check declares none

    Returns:
        CheckOutcome: Values, result and name
    """
    roll_value = to_number(evaluate(roll_expression(check, default_dice)))
    base_value = to_number(evaluate(check.get("base_expr") or "0", {"$roll": roll_value}))
    buff_sum = to_number(evaluate(
        check.get("buff_expr") or "0",
        {"$roll": roll_value, "$base": base_value, "$buff": buff_values},
    ))
    total = to_number(evaluate(
        check.get("total_expr") or DEFAULT_TOTAL_EXPR,
        {"$roll": roll_value, "$base": base_value, "$buff_sum": buff_sum, "$buff": buff_values},
    ))
    dc = to_number(evaluate(
        coalesce(check.get("dc"), default_dc),
        {"$roll": roll_value, "$base": base_value, "$buff_sum": buff_sum, "$total": total, "$buff": buff_values},
    ))

    result = classify(roll_value, total, dc, band_sets_for(check, default_dice))
    return CheckOutcome(
        name=check.get("name") or "Check",
        roll=roll_value,
        base=base_value,
        buff=buff_sum,
        total=total,
        dc=dc,
        result=result,
    )
