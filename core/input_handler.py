from typing import Optional
from core.engine import GameEngine
from core.expression import is_finite_number, to_number
from core.memory import MemoryManager

HELP_TEXT = """Commands:
  <n>                  Take the n-th choice
  /buy <shop> <item>   Buy an item from a shop at this location
  /use <item>          Use an item from your inventory
  /rest \\[days]         Let one or more days pass
  /save  /load         Save or load the game
  /reset               Restart from the beginning
  /help                Show this help
  quit                 Leave the game"""


class InputHandler:
    """
    Handles player input (choice numbers and slash-commands such as /buy, /use, /rest).
    Decouples command logic from the main game loop.
    """

    def __init__(self, ui, memory: Optional[MemoryManager] = None):
        self.ui = ui
        self.memory = memory

    def handle(self, user_input: str, engine: GameEngine) -> Optional[str]:
        """
        Process one line of player input against the engine.

        Args:
            user_input: The raw input string.
            engine: The running GameEngine.

        Returns:
            - None: If the input was empty.
            - "quit": If the player asked to leave.
            - str: A short result message (errors are also printed to the UI).
        """
        text = (user_input or "").strip()
        if not text:
            return None

        if text.lower() in ["quit", "exit", "q"]:
            return "quit"

        if text.isdigit():
            return self._choose(int(text), engine)

        if not text.startswith('/'):
            self.ui.print_error("❌ Type a choice number or /help.")
            return "Unknown input."

        parts = text.split()
        command = parts[0].lower()

        # --- COMMAND: /BUY <SHOP> <ITEM> ---
        if command == '/buy':
            if len(parts) < 3:
                self.ui.print_error("❌ Usage: /buy <shop_id> <item_id>")
                return "Command error: Missing shop or item."

            shop_id, item_id = parts[1], parts[2]
            available = [shop["id"] for shop in engine.snapshot()["shops"]]
            if shop_id not in available:
                self.ui.print_error(f"❌ There is no shop '{shop_id}' here.")
                return "Command error: Shop not here."
            if not engine.buy(shop_id, item_id):
                self.ui.print_error(f"❌ You can't buy '{item_id}' right now.")
                return "Purchase refused."
            return f"Bought {item_id}."

        # --- COMMAND: /USE <ITEM> ---
        elif command == '/use':
            if len(parts) < 2:
                self.ui.print_error("❌ Usage: /use <item_id>")
                return "Command error: Missing item id."

            item_id = parts[1]
            if not engine.use_item(item_id):
                self.ui.print_error(f"❌ You can't use '{item_id}'.")
                return "You can't use that item."
            return f"Used {item_id}."

        # --- COMMAND: /REST [DAYS] ---
        elif command == '/rest':
            days = to_number(parts[1]) if len(parts) > 1 else 1
            if not is_finite_number(days) or days < 1:
                self.ui.print_error("❌ Days must be a positive number.")
                return "Command error: Bad day count."
            engine.advance_day(days)
            return f"Rested until day {engine.state.day}."

        elif command == '/save':
            if self.memory is None or not self.memory.save(engine.export_state()):
                self.ui.print_error("❌ Save failed.")
                return "Save failed."
            self.ui.print_system_info("💾 Game saved.")
            return "Game saved."

        elif command == '/load':
            data = self.memory.load() if self.memory else None
            if data is None:
                self.ui.print_error("❌ No saved game found.")
                return "Load failed."
            engine.restore(data)
            self.ui.print_system_info("💾 Game loaded.")
            return "Game loaded."

        elif command == '/reset':
            engine.reset()
            self.ui.print_system_info("🔄 Game reset.")
            return "Game reset."

        elif command == '/help':
            self.ui.print_system_info(HELP_TEXT)
            return "Help shown."

        else:
            self.ui.print_error(f"❌ Unknown command: {command}")
            return "Unknown command."

    def _choose(self, number: int, engine: GameEngine) -> str:
        choices = engine.current_choices()
        if not 1 <= number <= len(choices) or not engine.choose_index(number - 1):
            self.ui.print_error(f"❌ Choice {number} is not available.")
            return "Choice unavailable."
        return f"Chose: {choices[number - 1]['text']}"
