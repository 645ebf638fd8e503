import os
import json
from typing import Dict, Any, Optional
from config import settings


class MemoryManager:
    """
    Manages the persistence of game state (save/load).
    Stores the engine's exported state record as a single JSON document.
    """

    def __init__(self, save_dir: str = settings.SAVE_DIR, filename: str = settings.SAVE_FILENAME):
        self.filepath = os.path.join(save_dir, filename)
        # Ensure the directory exists
        os.makedirs(save_dir, exist_ok=True)

    def exists(self) -> bool:
        return os.path.exists(self.filepath)

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Load a saved state record from disk.

        Returns:
            The saved state dict, or None when there is no usable save.
        """
        if not self.exists():
            return None

        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                content = f.read().strip()
                if not content:
                    return None

                data = json.loads(content)
        except (OSError, ValueError) as e:
            print(f"[Memory Error] Failed to load {self.filepath}: {e}")
            return None

        if not isinstance(data, dict):
            print(f"[Memory Error] Unexpected save format in {self.filepath}")
            return None
        return data

    def save(self, data: Dict[str, Any]) -> bool:
        """
        Persist a state record to disk.

        Args:
            data: State dict from GameEngine.export_state().

        Returns:
            True if save succeeded, False otherwise.
        """
        try:
            with open(self.filepath, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            return True
        except (OSError, TypeError, ValueError) as e:
            print(f"[Memory Error] Failed to save to {self.filepath}: {e}")
            return False
