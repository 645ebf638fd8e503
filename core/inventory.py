"""
Inventory Management Module
Stack counts per item id, with a global capacity on the total count.
"""

import math
from typing import Any, Dict, List, Optional


class Inventory:
    """
    Instance-based inventory system with quantity tracking.
    Item definitions (names, hold buffs, use effects) live in the game data;
    this class only owns the counts.
    """

    def __init__(self, items: Optional[Dict[str, Any]] = None):
        """Initialize from an optional {item_id: quantity} mapping."""
        self.items: Dict[str, Any] = dict(items) if items else {}

    def add(self, item_id: str, qty: Any = 1, capacity: Any = None) -> bool:
        """
        Add item(s) to the inventory.

        Args:
            item_id: The unique identifier for the item
            qty: Quantity to add
            capacity: Maximum total item count; None (or a negative / non-finite
                value) means unlimited

        Returns:
            bool: False if the whole add was rejected for capacity, True otherwise
        """
        if not item_id or not _is_finite(qty):
            return True
        if qty > 0 and _is_finite(capacity) and capacity >= 0:
            if self.count_total_items() + qty > capacity:
                return False
        current = self.items.get(item_id, 0)
        self.items[item_id] = max(0, current + qty)
        return True

    def remove(self, item_id: str, qty: Any = 1) -> None:
        """Remove item(s); the count never drops below zero."""
        if not item_id or not _is_finite(qty):
            return
        current = self.items.get(item_id, 0)
        self.items[item_id] = max(0, current - qty)

    def get_quantity(self, item_id: str) -> Any:
        """Quantity of an item (0 if not present)."""
        return self.items.get(item_id, 0) or 0

    def list_items(self, definitions: Optional[Dict[str, Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
        """
        Held items (count > 0) in insertion order.

        Returns:
            List of dicts with item_id, name, count and usable
        """
        definitions = definitions or {}
        result: List[Dict[str, Any]] = []
        for item_id, qty in self.items.items():
            if not qty:
                continue
            item_def = definitions.get(item_id) or {}
            result.append({
                "item_id": item_id,
                "name": item_def.get("name", item_id),
                "count": qty,
                "usable": bool(item_def.get("use_effects")),
            })
        return result

    def count_total_items(self) -> Any:
        """Get the total quantity of all items."""
        return sum(self.items.values())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize inventory to dictionary for saving."""
        return self.items.copy()


def _is_finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
