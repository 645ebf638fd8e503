"""
Game Content Loader Module
Loads game documents (meta, resources, stats, items, buffs, shops, events,
story, endings) from YAML or JSON files.
"""

import json
import logging
import os
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

CONTENT_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_GAME_FILE = os.path.join(CONTENT_DIR, "dusty_gate.yaml")

REQUIRED_SECTIONS = ("stats", "story")


def load_game_data(path: str) -> Dict[str, Any]:
    """
    Load a game document from disk.

    Args:
        path: Path to a .yaml / .yml / .json file

    Returns:
        dict: The game document

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is empty, malformed, or not a mapping
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Game data file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        raw = f.read()

    try:
        if path.lower().endswith(".json"):
            data = json.loads(raw) if raw.strip() else None
        else:
            data = yaml.safe_load(raw)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValueError(f"Error parsing game data file {path}: {e}") from e

    if data is None:
        raise ValueError(f"Game data file is empty or contains no data: {path}")
    if not isinstance(data, dict):
        raise ValueError(f"Game data must be a mapping at the top level: {path}")

    missing = [section for section in REQUIRED_SECTIONS if section not in data]
    if missing:
        logger.warning("Game data %s has no %s section(s)", path, ", ".join(missing))

    return data


def load_default_game() -> Dict[str, Any]:
    """Load the bundled Dusty Gate demo game."""
    return load_game_data(DEFAULT_GAME_FILE)
