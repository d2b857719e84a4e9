from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Brand(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str
    name: str | None = None
    description: str | None = None
    user_id: str | None = None
    current_status: str | None = None
    status_description: str | None = None
    payment_complete: int | bool | None = None
    brand_name: str | None = None
    survey_id: str | None = None
    summary: str | None = None
    archetype: str | None = None
    answers: dict[str, Any] | None = None
    jtbd: dict[str, Any] | list[Any] | None = None
    survey: dict[str, Any] | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_paid(self) -> bool:
        return bool(self.payment_complete)


class ProgressResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: str | None = None
    current_status: str | None = None

    @property
    def reported_status(self) -> str | None:
        return self.status or self.current_status


class AssetSummary(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str
    type: str


class AssetList(BaseModel):
    assets: list[AssetSummary] = Field(default_factory=list)

    @field_validator("assets", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class Asset(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    display_as: Literal["text", "markdown", "html", "image"] | None = None
    description: str | None = None
    url: str | None = None
    content: str | None = None
    created_at: str | None = None


class AudioProcessingStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: str
    text: str | None = None
    error: str | None = None
    processing_id: str | None = None


class AudioSubmission(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    processing_id: str
    status: str | None = None


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str | None = None


__all__ = [
    "Asset",
    "AssetList",
    "AssetSummary",
    "AudioProcessingStatus",
    "AudioSubmission",
    "Brand",
    "ProgressResponse",
    "TokenPair",
]
