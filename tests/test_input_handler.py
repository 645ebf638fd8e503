"""Tests for player command handling."""

import pytest

from core.input_handler import InputHandler
from core.memory import MemoryManager


class FakeUI:
    """Records what the handler prints."""

    def __init__(self):
        self.errors = []
        self.infos = []

    def print_error(self, text):
        self.errors.append(text)

    def print_system_info(self, text):
        self.infos.append(text)


@pytest.fixture
def ui():
    return FakeUI()


@pytest.fixture
def handler(ui, tmp_path):
    return InputHandler(ui, MemoryManager(save_dir=str(tmp_path)))


class TestBasicInput:
    """Test non-command input."""

    def test_empty_input(self, handler, engine):
        assert handler.handle("   ", engine) is None

    @pytest.mark.parametrize("text", ["quit", "EXIT", "q"])
    def test_quit(self, handler, engine, text):
        assert handler.handle(text, engine) == "quit"

    def test_choice_number(self, handler, engine):
        assert handler.handle("1", engine) == "Chose: Visit the market"
        assert engine.state.node == "n_market"

    def test_unavailable_choice(self, handler, engine, ui):
        assert handler.handle("9", engine) == "Choice unavailable."
        assert handler.handle("0", engine) == "Choice unavailable."
        assert len(ui.errors) == 2

    def test_free_text(self, handler, engine, ui):
        assert handler.handle("open the gate", engine) == "Unknown input."
        assert ui.errors


class TestCommands:
    """Test slash-commands."""

    def test_buy(self, handler, engine):
        assert handler.handle("/buy market bread", engine) == "Bought bread."
        assert engine.get_item_count("bread") == 3

    def test_buy_errors(self, handler, engine, ui):
        assert handler.handle("/buy market", engine).startswith("Command error")
        assert handler.handle("/buy bazaar bread", engine) == "Command error: Shop not here."
        assert handler.handle("/buy market sword", engine) == "Purchase refused."
        engine.goto_node("n_gate")
        assert handler.handle("/buy market bread", engine) == "Command error: Shop not here."
        assert len(ui.errors) == 4

    def test_use(self, handler, engine):
        assert handler.handle("/use bread", engine) == "Used bread."
        assert handler.handle("/use key", engine) == "You can't use that item."
        assert handler.handle("/use", engine).startswith("Command error")

    def test_rest(self, handler, engine):
        assert handler.handle("/rest", engine) == "Rested until day 2."
        assert handler.handle("/rest 2", engine) == "Rested until day 4."

    @pytest.mark.parametrize("arg", ["zero", "0", "-1"])
    def test_rest_bad_days(self, handler, engine, arg):
        assert handler.handle(f"/rest {arg}", engine) == "Command error: Bad day count."
        assert engine.state.day == 1

    def test_save_load(self, handler, engine):
        assert handler.handle("/load", engine) == "Load failed."
        handler.handle("1", engine)
        assert handler.handle("/save", engine) == "Game saved."
        handler.handle("1", engine)
        assert engine.state.node == "n1"
        assert handler.handle("/load", engine) == "Game loaded."
        assert engine.state.node == "n_market"

    def test_save_without_memory(self, ui, engine):
        assert InputHandler(ui).handle("/save", engine) == "Save failed."

    def test_reset(self, handler, engine):
        handler.handle("/rest 3", engine)
        assert handler.handle("/reset", engine) == "Game reset."
        assert engine.state.day == 1

    def test_help_and_unknown(self, handler, engine, ui):
        assert handler.handle("/HELP", engine) == "Help shown."
        assert "/buy" in ui.infos[-1]
        assert handler.handle("/dance", engine) == "Unknown command."
        assert ui.errors == ["❌ Unknown command: /dance"]
