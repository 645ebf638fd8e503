"""
Configuration Settings Module
Centralized configuration constants for the narrative rules engine.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Action Log ---
LOG_LIMIT = int(os.getenv("LOG_LIMIT", "12"))  # Most-recent-first entries kept

# --- Game Mechanics ---
DEFAULT_DICE = os.getenv("DEFAULT_DICE", "1d20")  # Band bounds fallback for non-dice roll expressions
DEFAULT_DC = int(os.getenv("DEFAULT_DC", "0"))

# --- Paths ---
# Use relative paths from the project root
GAME_DATA_PATH = os.getenv("GAME_DATA_PATH", "content/dusty_gate.yaml")
SAVE_DIR = os.getenv("SAVE_DIR", "data")  # Folder to store runtime saves (json)
SAVE_FILENAME = os.getenv("SAVE_FILENAME", "savegame.json")

# --- Diagnostics ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")
