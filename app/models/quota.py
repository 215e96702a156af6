"""
quota.py — Anonymous usage records and quota status.

UsageRecord   — one approved anonymous generation, as stored in MongoDB
IdentityKey   — one signal (session key or network address) a caller is
                recognised by; also the _id of its quota claim
QuotaStatus   — read-only answer of the policy engine / status endpoints
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

FREE_PROMPT_AVAILABLE = "You have 1 free prompt remaining for this device today"
FREE_PROMPT_USED = (
    "You have used your free prompt for this device today. "
    "Try again tomorrow or register/login for unlimited access!"
)


class IdentityKey(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["session", "ip"]
    value: str

    @property
    def claim_id(self) -> str:
        return f"{self.kind}:{self.value}"

    @property
    def field(self) -> str:
        """Usage-record field this key is matched against."""
        return "session_id" if self.kind == "session" else "ip_address"


class UsageRecord(BaseModel):
    id: Optional[str] = None
    session_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: str = ""
    device_fingerprint: str = ""
    prompt: str
    created_at: datetime

    @classmethod
    def from_doc(cls, doc: dict) -> "UsageRecord":
        return cls(
            id=str(doc["_id"]),
            session_id=doc.get("session_id"),
            ip_address=doc.get("ip_address"),
            user_agent=doc.get("user_agent") or "",
            device_fingerprint=doc.get("device_fingerprint") or "",
            prompt=doc["prompt"],
            created_at=doc["created_at"],
        )


class QuotaStatus(BaseModel):
    """Response body for /api/anonymous-status and /api/check-free-prompt."""
    has_used_free_prompt: bool
    user_type: str = "anonymous"
    remaining_quota: int = Field(ge=0, le=1)
    message: str

    @property
    def exhausted(self) -> bool:
        return self.has_used_free_prompt

    @classmethod
    def fresh(cls) -> "QuotaStatus":
        return cls(has_used_free_prompt=False, remaining_quota=1, message=FREE_PROMPT_AVAILABLE)

    @classmethod
    def used(cls) -> "QuotaStatus":
        return cls(has_used_free_prompt=True, remaining_quota=0, message=FREE_PROMPT_USED)
