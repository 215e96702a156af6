"""
content.py — Request / response bodies for the generation endpoints.
"""

from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from app.core.config import settings

ANONYMOUS_FREE_PROMPT_MESSAGE = (
    "This was your free prompt for this device. You can generate another prompt "
    "tomorrow or register/login for unlimited access!"
)


class GenerateRequest(BaseModel):
    """Payload for POST /api/generate-content. Accepts the legacy *userPrompt* key."""
    prompt: str = Field(min_length=1, validation_alias=AliasChoices("prompt", "userPrompt"))

    @field_validator("prompt")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("prompt cannot be empty")
        if len(v) > settings.max_prompt_length:
            raise ValueError(f"prompt exceeds {settings.max_prompt_length} characters")
        return v


class GenerationResult(BaseModel):
    text: str
    user_type: Literal["authenticated", "anonymous"]
    remaining_quota: Optional[int] = None
    message: Optional[str] = None
    username: Optional[str] = None
    session_id: Optional[str] = None


class ClearSessionsResponse(BaseModel):
    message: str
    deleted: int
