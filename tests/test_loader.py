"""Tests for loading game documents."""

import json

import pytest

from content.loader import DEFAULT_GAME_FILE, load_default_game, load_game_data


class TestLoadGameData:
    """Test YAML / JSON game documents."""

    def test_default_game(self):
        data = load_default_game()
        assert data["meta"]["title"] == "Dusty Gate"
        assert data["story"]["start"] == "n1"
        assert set(data) >= {"meta", "resources", "stats", "items", "buffs", "shops", "events", "story", "endings"}

    def test_default_game_file_exists(self):
        assert DEFAULT_GAME_FILE.endswith("dusty_gate.yaml")

    def test_json_document(self, tmp_path):
        path = tmp_path / "game.json"
        path.write_text(json.dumps({"stats": {"hp": {"cur": 1, "max": 1}}, "story": {}}), encoding="utf-8")
        assert load_game_data(str(path))["stats"]["hp"]["cur"] == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_game_data(str(tmp_path / "nope.yaml"))

    @pytest.mark.parametrize("name,body", [
        ("empty.yaml", ""),
        ("empty.json", "  "),
        ("list.yaml", "- 1\n- 2\n"),
        ("broken.yaml", "stats: [1, 2\n"),
        ("broken.json", "{\"stats\": "),
    ])
    def test_bad_documents(self, tmp_path, name, body):
        path = tmp_path / name
        path.write_text(body, encoding="utf-8")
        with pytest.raises(ValueError):
            load_game_data(str(path))

    def test_missing_sections_warn(self, tmp_path, caplog):
        path = tmp_path / "thin.yaml"
        path.write_text("meta: {title: Thin}\n", encoding="utf-8")
        assert load_game_data(str(path)) == {"meta": {"title": "Thin"}}
        assert "stats, story" in caplog.text
