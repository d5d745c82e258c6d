"""Pydantic models for the REST server."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from visual_trigger_engine.models import Detection
from visual_trigger_engine.providers.factory import ProviderType


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StartRequest(_ApiModel):
    workflow: str = Field(min_length=1)
    provider: ProviderType = "mediapipe"


class SessionStatus(_ApiModel):
    session_id: str
    workflow: str
    provider: str
    state: str
    enabled: bool
    cue_count: int
    providers: list[str] = Field(default_factory=list)
    sampling: bool = False


class ApiBoundingBox(_ApiModel):
    x: float
    y: float
    width: float
    height: float


class ApiDetection(_ApiModel):
    label: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)
    bounding_box: ApiBoundingBox | None = None

    def to_detection(self) -> Detection | None:
        return Detection.from_json(self.model_dump(by_alias=True, exclude_none=True))


class PushDetectionsRequest(_ApiModel):
    detections: list[ApiDetection] = Field(default_factory=list)


class PushDetectionsResponse(_ApiModel):
    accepted: int
    emitted: int


class AddVisualTriggerRequest(_ApiModel):
    label: str = Field(min_length=1, max_length=100)
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    query: str | None = None
    provider: ProviderType | None = None
    image_id: str | None = None


class UpdateTriggerConfigRequest(_ApiModel):
    enabled: bool | None = None
    frame_sample_rate_seconds: float | None = Field(default=None, gt=0)
    trigger_cooldown_seconds: float | None = Field(default=None, ge=0)
