"""
Game state record owned by the engine.

Field categories:
-----------------
[PERSISTENT] Created at load, mutated only by effects, saved/restored by the
             persistence layer.
[TRANSIENT]  Caches recomputed by every sync; never mutated by effects and
             never saved.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from config import settings
from core.buffs import BuffInstance
from core.inventory import Inventory
from core.journal import ActionLog


@dataclass
class GameState:
    # -------------------------------------------------------------------------
    # Character [PERSISTENT]
    # stat_id -> {"cur": n, "max": n}
    # -------------------------------------------------------------------------
    base_stats: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    resources: Dict[str, Any] = field(default_factory=dict)
    inventory: Inventory = field(default_factory=Inventory)

    # Active buffs: {"id", "value_expr", "duration_days" (None = permanent)}
    buffs: List[Dict[str, Any]] = field(default_factory=list)

    # -------------------------------------------------------------------------
    # World [PERSISTENT]
    # -------------------------------------------------------------------------
    flags: Dict[str, Any] = field(default_factory=dict)
    day: int = 1
    node: Optional[str] = None
    ending: Optional[str] = None
    log: ActionLog = field(default_factory=ActionLog)

    # -------------------------------------------------------------------------
    # Derived view [TRANSIENT]
    # -------------------------------------------------------------------------
    stats: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    buff_instances: List[BuffInstance] = field(default_factory=list)
    buff_values: Dict[str, Any] = field(default_factory=dict)

    @property
    def capacity(self) -> Any:
        return self.resources.get("capacity")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the persistent fields (deep copies) for saving."""
        return {
            "base_stats": copy.deepcopy(self.base_stats),
            "resources": copy.deepcopy(self.resources),
            "items": self.inventory.to_dict(),
            "buffs": copy.deepcopy(self.buffs),
            "flags": copy.deepcopy(self.flags),
            "day": self.day,
            "node": self.node,
            "ending": self.ending,
            "log": self.log.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], log_limit: int = settings.LOG_LIMIT) -> "GameState":
        """
        Rebuild a state from a saved dict. Missing keys fall back to defaults;
        transient fields are left empty until the next sync.
        """
        base_stats = copy.deepcopy(data.get("base_stats") or {})
        return cls(
            base_stats=base_stats,
            resources=copy.deepcopy(data.get("resources") or {}),
            inventory=Inventory(data.get("items") or {}),
            buffs=copy.deepcopy(data.get("buffs") or []),
            flags=copy.deepcopy(data.get("flags") or {}),
            day=data.get("day", 1),
            node=data.get("node"),
            ending=data.get("ending"),
            log=ActionLog.from_dict(data.get("log"), limit=log_limit),
            stats=copy.deepcopy(base_stats),
        )
