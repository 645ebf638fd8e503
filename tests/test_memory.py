"""Tests for JSON save/load of the engine state."""

import json

import pytest

from core.memory import MemoryManager


@pytest.fixture
def memory(tmp_path):
    return MemoryManager(save_dir=str(tmp_path / "saves"), filename="slot.json")


class TestMemoryManager:
    """Test the persistence collaborator."""

    def test_creates_save_dir(self, tmp_path):
        MemoryManager(save_dir=str(tmp_path / "nested" / "dir"))
        assert (tmp_path / "nested" / "dir").is_dir()

    def test_load_without_save(self, memory):
        assert not memory.exists()
        assert memory.load() is None

    def test_save_and_load(self, memory):
        assert memory.save({"day": 3, "flags": {"met": True}})
        assert memory.exists()
        assert memory.load() == {"day": 3, "flags": {"met": True}}

    def test_engine_round_trip(self, memory, engine, make_engine, demo_data):
        """A saved game restores to an identical snapshot."""
        engine.buy("market", "bread")
        engine.advance_day()
        engine.add_buff("brave", None, 2)
        engine.sync_derived()
        assert memory.save(engine.export_state())

        other = make_engine(demo_data)
        other.restore(memory.load())
        assert other.snapshot() == engine.snapshot()

    def test_corrupt_file(self, memory, capsys):
        with open(memory.filepath, "w", encoding="utf-8") as f:
            f.write("{not json")
        assert memory.load() is None
        assert "[Memory Error]" in capsys.readouterr().out

    def test_empty_file(self, memory):
        open(memory.filepath, "w", encoding="utf-8").close()
        assert memory.load() is None

    def test_non_dict_save(self, memory, capsys):
        with open(memory.filepath, "w", encoding="utf-8") as f:
            json.dump([1, 2, 3], f)
        assert memory.load() is None
        assert "Unexpected save format" in capsys.readouterr().out

    def test_unserializable_state(self, memory, capsys):
        assert memory.save({"bad": object()}) is False
        assert "[Memory Error]" in capsys.readouterr().out
