"""
Dusty Gate Engine - Main Entry Point (Controller Layer)
Orchestrates game flow using the rules engine (Model) and renderer (View).
Commands are delegated to InputHandler, persistence to MemoryManager.
"""

import logging
import sys
from typing import Optional
from config import settings
from content.loader import load_default_game, load_game_data
from core.engine import GameEngine
from ui.renderer import GameRenderer

from core.memory import MemoryManager
from core.input_handler import InputHandler

logger = logging.getLogger(__name__)


class GameSession:
    """
    Holds the engine and handles one turn of input. Keeps main loop clean.
    """

    def __init__(self, ui: GameRenderer, input_handler: InputHandler, engine: GameEngine):
        self.ui = ui
        self.input_handler = input_handler
        self.engine = engine
        self.running = True

    def render(self) -> None:
        self.ui.print(self.ui.show_dashboard(self.engine.snapshot()))
        self.ui.print()

    def turn(self, user_input: str) -> Optional[str]:
        """
        Process one user input. Returns "quit", "continue", or the handler's result message.
        """
        result = self.input_handler.handle(user_input, self.engine)
        if result is None:
            return "continue"
        if result == "quit":
            self.running = False
        return result


def load_game(ui: GameRenderer, path: str) -> dict:
    """Load the requested game document, falling back to the bundled demo."""
    try:
        return load_game_data(path)
    except (FileNotFoundError, ValueError) as e:
        ui.print_warning(f"⚠️ {e}")
        ui.print_system_info("Falling back to the bundled demo game.")
        return load_default_game()


def main():
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    ui = GameRenderer()
    ui.clear_screen()

    # 1. Load Data
    path = sys.argv[1] if len(sys.argv) > 1 else settings.GAME_DATA_PATH
    data = load_game(ui, path)
    engine = GameEngine(data)
    ui.show_title(engine.snapshot()["title"])

    # 2. Init Session & Handlers
    memory_mgr = MemoryManager()
    session = GameSession(ui=ui, input_handler=InputHandler(ui, memory_mgr), engine=engine)

    if memory_mgr.exists():
        ui.print_system_info("💾 A saved game exists. Type /load to continue it.")
    ui.print_rule("Type a choice number, or /help for commands", style="info")

    # 3. Main Loop
    while session.running:
        try:
            session.render()
            session.turn(ui.input_prompt())
        except (KeyboardInterrupt, EOFError):
            break

    ui.print("\n[info]Goodbye![/info]")


if __name__ == "__main__":
    main()
