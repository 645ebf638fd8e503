"""
Ending Management Module
Finds the first ending whose conditions hold, in declaration order.
"""

from typing import Any, Callable, Dict, List, Optional


class EndingManager:
    """
    Evaluates ending conditions against the current state.
    """

    @staticmethod
    def find_ending(
        endings_config: List[Dict[str, Any]],
        check_conditions: Callable[[Any], bool],
        current_ending: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Pick the ending to trigger, if any.

        Args:
            endings_config: `endings` list from the game data
            check_conditions: Condition checker bound to the engine state
            current_ending: Ending id already reached (endings are never replaced)

        Returns:
            The first ending whose conditions all hold, or None when an ending
            was already reached or none matches
        """
        if current_ending or not endings_config:
            return None

        for ending in endings_config:
            if check_conditions(ending.get("conditions")):
                return ending

        return None
