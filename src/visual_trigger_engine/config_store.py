"""Trigger configuration stores.

The engine only depends on `TriggerConfigStore.get_trigger_config`. The JSON
store persists to a single file keyed by workflow so the transport adapter can
edit cues without a database.
"""

from __future__ import annotations

import json
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from visual_trigger_engine.models import TriggerConfig, TriggerDefinition


class TriggerConfigStore(Protocol):
    def get_trigger_config(self, workflow: str) -> TriggerConfig | None: ...


@dataclass
class InMemoryTriggerConfigStore:
    configs: dict[str, TriggerConfig] = field(default_factory=dict)

    def get_trigger_config(self, workflow: str) -> TriggerConfig | None:
        return self.configs.get(workflow)

    def save_trigger_config(self, workflow: str, config: TriggerConfig) -> TriggerConfig:
        self.configs[workflow] = config
        return config


@dataclass
class JsonTriggerConfigStore:
    path: Path

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def _load_unlocked(self) -> dict[str, TriggerConfig]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return {}
        if not isinstance(raw, dict):
            return {}
        return {
            workflow: TriggerConfig.model_validate(item)
            for workflow, item in raw.items()
            if isinstance(workflow, str) and isinstance(item, dict)
        }

    def _save_unlocked(self, configs: dict[str, TriggerConfig]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            workflow: config.model_dump(mode="json", by_alias=True)
            for workflow, config in configs.items()
        }
        self.path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

    def get_trigger_config(self, workflow: str) -> TriggerConfig | None:
        with self._lock:
            return self._load_unlocked().get(workflow)

    def get_or_create_trigger_config(self, workflow: str) -> TriggerConfig:
        with self._lock:
            configs = self._load_unlocked()
            existing = configs.get(workflow)
            if existing is not None:
                return existing
            created = TriggerConfig()
            configs[workflow] = created
            self._save_unlocked(configs)
            return created

    def save_trigger_config(self, workflow: str, config: TriggerConfig) -> TriggerConfig:
        with self._lock:
            configs = self._load_unlocked()
            configs[workflow] = config
            self._save_unlocked(configs)
            return config

    def update_trigger_config(self, workflow: str, **updates: object) -> TriggerConfig:
        with self._lock:
            configs = self._load_unlocked()
            current = configs.get(workflow, TriggerConfig())
            merged = TriggerConfig.model_validate({**current.model_dump(), **updates})
            configs[workflow] = merged
            self._save_unlocked(configs)
            return merged

    def add_visual_trigger(
        self,
        workflow: str,
        *,
        label: str,
        threshold: float = 0.7,
        query: str | None = None,
        provider: str | None = None,
        image_id: str | None = None,
    ) -> TriggerDefinition:
        if not label.strip():
            raise ValueError("label is required")
        cue = TriggerDefinition(
            id=str(uuid.uuid4()),
            label=label.strip(),
            threshold=threshold,
            query=query,
            provider=provider,
            image_id=image_id,
        )
        with self._lock:
            configs = self._load_unlocked()
            current = configs.get(workflow, TriggerConfig())
            configs[workflow] = current.model_copy(update={"cues": (*current.cues, cue)})
            self._save_unlocked(configs)
        return cue

    def remove_visual_trigger(self, workflow: str, trigger_id: str) -> bool:
        """Remove a cue; returns False when it was not present."""

        with self._lock:
            configs = self._load_unlocked()
            current = configs.get(workflow)
            if current is None:
                return False
            remaining = tuple(cue for cue in current.cues if cue.id != trigger_id)
            if len(remaining) == len(current.cues):
                return False
            configs[workflow] = current.model_copy(update={"cues": remaining})
            self._save_unlocked(configs)
            return True
