"""
Band Resolution Module
Maps raw die values to check outcomes when a check declares its own bands.

A check's bands partition the die's value range into four disjoint sets:
crit-fail, crit-success, success and fail. Crit ranges are claimed first;
explicit success/fail ranges next; any values still unclaimed are handed out
by allocate_remainder().
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Set

from core.dice import DiceBounds

_RANGE_RE = re.compile(r"^(-?\d+)\s*(?:-\s*(-?\d+))?$")


@dataclass
class BandSets:
    """Outcome sets over a die's value range."""
    crit_fail: Set[int] = field(default_factory=set)
    crit_success: Set[int] = field(default_factory=set)
    success: Set[int] = field(default_factory=set)
    fail: Set[int] = field(default_factory=set)
    has_explicit_success_fail: bool = False

    @property
    def has_crit_bands(self) -> bool:
        return bool(self.crit_fail or self.crit_success)


def parse_range(range_str: Any, bounds: Optional[DiceBounds]) -> Set[int]:
    """
    Parse a band range into the explicit set of die values it covers.

    Args:
        range_str: "n" or "n-m" (ends may be given in either order)
        bounds: Die bounds; both ends are clamped into them

    Returns:
        Set[int]: Covered values, empty for missing or invalid input
    """
    if range_str is None or range_str == "" or bounds is None:
        return set()
    match = _RANGE_RE.match(str(range_str).strip())
    if not match:
        return set()
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) is not None else start
    low = max(min(start, end), bounds.min)
    high = min(max(start, end), bounds.max)
    return set(range(low, high + 1))


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def allocate_remainder(success_set: Iterable[int], fail_set: Iterable[int], remaining: Iterable[int]) -> Dict[str, Set[int]]:
    """
    Decide ownership of die values not claimed by crit or explicit bands.

    Rules:
    - Neither set defined: split the sorted remainder at floor(n/2); the lower
      half fails, the upper half succeeds (odd counts favour success)
    - Only one set defined: everything remaining goes to the other one
    - Both defined: split by the sets' existing sizes; the success share is
      rounded to the nearest integer and takes the lowest remaining values,
      the balance goes to fail

    Args:
        success_set: Values already declared as success
        fail_set: Values already declared as fail
        remaining: Unclaimed values

    Returns:
        dict: {"success": set, "fail": set}, each including its input values
    """
    success = set(success_set)
    fail = set(fail_set)
    pool = sorted(remaining)
    if not pool:
        return {"success": success, "fail": fail}

    if not success and not fail:
        half = len(pool) // 2
        fail.update(pool[:half])
        success.update(pool[half:])
    elif not success:
        success.update(pool)
    elif not fail:
        fail.update(pool)
    else:
        share = _round_half_up(len(pool) * len(success) / (len(success) + len(fail)))
        success.update(pool[:share])
        fail.update(pool[share:])

    return {"success": success, "fail": fail}


def compute_band_sets(
    bands: Optional[Dict[str, Any]],
    bounds: DiceBounds,
    has_crit_fail_branch: bool = False,
    has_crit_success_branch: bool = False,
) -> BandSets:
    """
    Build the four outcome sets for a check.

    A declared crit branch without a matching crit band claims the die's
    natural extreme (bounds.min for crit fail, bounds.max for crit success).
    Success/fail sets stay empty unless at least one of them is declared.
    """
    bands = bands or {}
    all_values = set(bounds.values())

    if bands.get("crit_fail"):
        crit_fail = parse_range(bands["crit_fail"].get("range"), bounds)
    else:
        crit_fail = {bounds.min} if has_crit_fail_branch else set()
    if bands.get("crit_success"):
        crit_success = parse_range(bands["crit_success"].get("range"), bounds)
    else:
        crit_success = {bounds.max} if has_crit_success_branch else set()

    result = BandSets(crit_fail=crit_fail, crit_success=crit_success)

    if not (bands.get("success") or bands.get("fail")):
        return result

    result.has_explicit_success_fail = True
    success = parse_range(bands["success"].get("range"), bounds) if bands.get("success") else set()
    fail = parse_range(bands["fail"].get("range"), bounds) if bands.get("fail") else set()
    remaining = all_values - crit_fail - crit_success - success - fail
    filled = allocate_remainder(success, fail, remaining)
    result.success = filled["success"]
    result.fail = filled["fail"]
    return result
