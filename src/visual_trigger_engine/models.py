"""Domain types shared by the engine, the providers and the transport adapter."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Accepts both snake_case and the camelCase used on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class TriggerDefinition(_CamelModel):
    """A visual cue to watch for.

    The engine only ever holds a read-only snapshot of these; edits go through
    the configuration store and are picked up by `reload_config`.
    """

    id: str
    label: str
    enabled: bool = True
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    query: str | None = Field(
        default=None,
        description="Natural-language description sent to cloud providers (defaults to label)",
    )
    provider: str | None = Field(
        default=None,
        description="Provider tag for this cue; falls back to the session provider",
    )
    image_id: str | None = None

    @property
    def effective_query(self) -> str:
        query = (self.query or "").strip()
        return query or self.label


class TriggerConfig(_CamelModel):
    """Per-workflow visual trigger configuration as returned by the config store."""

    enabled: bool = False
    frame_sample_rate_seconds: float = Field(default=5.0, gt=0)
    trigger_cooldown_seconds: float = Field(default=30.0, ge=0)
    cues: tuple[TriggerDefinition, ...] = ()

    @property
    def enabled_cues(self) -> tuple[TriggerDefinition, ...]:
        return tuple(cue for cue in self.cues if cue.enabled)


@dataclass(frozen=True, slots=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class Detection:
    """One (label, confidence) result from a provider for one frame."""

    label: str
    confidence: float
    bounding_box: BoundingBox | None = None

    @staticmethod
    def from_json(obj: dict[str, object]) -> Detection | None:
        """Parse a wire detection; returns None for ill-formed entries."""

        label = obj.get("label")
        confidence = obj.get("confidence")
        if not isinstance(label, str) or not label.strip():
            return None
        if isinstance(confidence, bool) or not isinstance(confidence, int | float):
            return None
        if not 0.0 <= float(confidence) <= 1.0:
            return None

        box: BoundingBox | None = None
        box_raw = obj.get("boundingBox", obj.get("bounding_box"))
        if isinstance(box_raw, dict):
            try:
                box = BoundingBox(
                    x=float(box_raw["x"]),
                    y=float(box_raw["y"]),
                    width=float(box_raw["width"]),
                    height=float(box_raw["height"]),
                )
            except (KeyError, TypeError, ValueError):
                box = None
        return Detection(label=label, confidence=float(confidence), bounding_box=box)

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"label": self.label, "confidence": self.confidence}
        if self.bounding_box is not None:
            out["boundingBox"] = {
                "x": self.bounding_box.x,
                "y": self.bounding_box.y,
                "width": self.bounding_box.width,
                "height": self.bounding_box.height,
            }
        return out
