from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from videogen.models import AspectRatio, GenerationStatus


class CreateGenerationAction(BaseModel):
    action: Literal["create"]
    prompt: str
    image_url: str | None = None
    # free-form: missing or unknown ratios fall back to portrait
    aspect_ratio: str | None = None
    duration: int | None = None

    @field_validator("duration", mode="before")
    @classmethod
    def _lenient_duration(cls, value: Any) -> int | None:
        # unparsable or non-positive durations get the server default
        if value is None or isinstance(value, bool):
            return None
        try:
            seconds = int(value)
        except (TypeError, ValueError):
            return None
        return seconds if seconds > 0 else None


class CheckStatusAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["check_status"]
    generation_id: str = Field(alias="generationId", min_length=1)


GenerateVideoRequest = Annotated[
    Union[CreateGenerationAction, CheckStatusAction],
    Field(discriminator="action"),
]


class CreateGenerationResponse(BaseModel):
    success: Literal[True] = True
    generation_id: str
    job_id: str


class GenerationStatusResponse(BaseModel):
    status: GenerationStatus
    video_url: str | None = None
    error_message: str | None = None
    progress: int | None = None


class GenerationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    image_url: str | None
    prompt: str
    aspect_ratio: AspectRatio
    duration: int
    status: GenerationStatus
    job_id: str
    video_url: str | None
    error_message: str | None
    created_by: str | None
    created_at: datetime
    updated_at: datetime


class ImageUploadResponse(BaseModel):
    file_url: str
    width: int
    height: int


class HealthResponse(BaseModel):
    status: str
    app: str
    env: str
