"""Unit tests for trigger configuration stores."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from visual_trigger_engine.config_store import InMemoryTriggerConfigStore, JsonTriggerConfigStore
from visual_trigger_engine.models import TriggerConfig


def test_json_store_missing_workflow(tmp_path: Path) -> None:
    store = JsonTriggerConfigStore(tmp_path / "configs.json")
    assert store.get_trigger_config("streamer") is None


def test_json_store_get_or_create_persists_defaults(tmp_path: Path) -> None:
    path = tmp_path / "state" / "configs.json"
    store = JsonTriggerConfigStore(path)

    config = store.get_or_create_trigger_config("streamer")

    assert config == TriggerConfig()
    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk["streamer"]["triggerCooldownSeconds"] == 30.0
    assert on_disk["streamer"]["frameSampleRateSeconds"] == 5.0


def test_json_store_add_update_remove(tmp_path: Path) -> None:
    path = tmp_path / "configs.json"
    store = JsonTriggerConfigStore(path)

    cue = store.add_visual_trigger(
        "streamer", label="  thumbs_up ", threshold=0.8, query="a thumbs up gesture", provider="openai"
    )
    assert cue.label == "thumbs_up"

    updated = store.update_trigger_config("streamer", enabled=True, trigger_cooldown_seconds=10)
    assert updated.enabled is True
    assert updated.trigger_cooldown_seconds == 10
    assert [c.id for c in updated.cues] == [cue.id]

    # A fresh store reads back what was written.
    reopened = JsonTriggerConfigStore(path).get_trigger_config("streamer")
    assert reopened is not None
    assert reopened.cues[0].query == "a thumbs up gesture"
    assert reopened.cues[0].provider == "openai"

    raw_cue = json.loads(path.read_text(encoding="utf-8"))["streamer"]["cues"][0]
    assert "imageId" in raw_cue

    assert store.remove_visual_trigger("streamer", "missing") is False
    assert store.remove_visual_trigger("other", cue.id) is False
    assert store.remove_visual_trigger("streamer", cue.id) is True
    assert store.get_trigger_config("streamer").cues == ()


def test_json_store_rejects_blank_label(tmp_path: Path) -> None:
    store = JsonTriggerConfigStore(tmp_path / "configs.json")
    with pytest.raises(ValueError):
        store.add_visual_trigger("streamer", label="   ")


def test_json_store_tolerates_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "configs.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonTriggerConfigStore(path).get_trigger_config("streamer") is None


def test_in_memory_store() -> None:
    store = InMemoryTriggerConfigStore()
    config = TriggerConfig(enabled=True)
    store.save_trigger_config("streamer", config)
    assert store.get_trigger_config("streamer") is config
    assert store.get_trigger_config("other") is None
