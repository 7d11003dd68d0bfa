"""Direct Line wire models."""

from __future__ import annotations

from typing import Any

from botbuilder.schema import Activity
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConversationHandle(BaseModel):
    """Response body of ``POST /conversations``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    conversation_id: str = Field(default="", alias="conversationId")
    token: str | None = None
    expires_in: int | None = None
    stream_url: str | None = Field(default=None, alias="streamUrl")


class ActivitySet(BaseModel):
    """Response body of ``GET /conversations/{id}/activities``."""

    model_config = ConfigDict(extra="ignore")

    activities: list[dict[str, Any]] = Field(default_factory=list)
    watermark: str | None = None

    @field_validator("activities", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("watermark", mode="before")
    @classmethod
    def _stringify_watermark(cls, value: Any) -> Any:
        # Some service versions send the cursor as a number.
        return None if value is None else str(value)

    def to_activities(self) -> list[Activity]:
        return [Activity().deserialize(raw) for raw in self.activities]
