"""
account.py — Pydantic schemas for account-related request / response bodies.

Separation of concerns:
  RegisterRequest — what the client sends to register
  LoginRequest    — what the client sends to log in (username OR email)
  Account         — internal representation read from MongoDB (has the hash)
  AccountSummary  — what register / login return (never includes the hash)
  ProfileView     — what /auth/profile returns
  AuthResponse    — token + summary from /auth/register and /auth/login
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


# ── Requests ──────────────────────────────────────────────────────────────────

class RegisterRequest(BaseModel):
    """Payload for POST /auth/register."""
    username: str = Field(min_length=3, max_length=30)
    password: str = Field(min_length=6, max_length=128)
    email: EmailStr


class LoginRequest(BaseModel):
    """Payload for POST /auth/login. *username* may also be the email address."""
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


# ── Account ───────────────────────────────────────────────────────────────────

class Account(BaseModel):
    """Full document as stored in MongoDB (includes hashed_password)."""
    id: str
    username: str
    email: str
    hashed_password: str
    created_at: datetime
    last_login_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc: dict) -> "Account":
        return cls(
            id=str(doc["_id"]),
            username=doc["username"],
            email=doc["email"],
            hashed_password=doc["hashed_password"],
            created_at=doc["created_at"],
            last_login_at=doc.get("last_login_at"),
        )

    def summary(self) -> "AccountSummary":
        return AccountSummary(id=self.id, username=self.username, email=self.email)

    def profile(self) -> "ProfileView":
        return ProfileView(
            id=self.id,
            username=self.username,
            email=self.email,
            created_at=self.created_at,
            last_login_at=self.last_login_at,
        )


class AccountSummary(BaseModel):
    """Safe account representation — no secrets."""
    id: str
    username: str
    email: str


class ProfileView(AccountSummary):
    created_at: datetime
    last_login_at: Optional[datetime] = None


class ProfileResponse(BaseModel):
    user: ProfileView


# ── Auth tokens ───────────────────────────────────────────────────────────────

class AuthResponse(BaseModel):
    """Response body for successful login / register."""
    message: str
    token: str
    token_type: str = "bearer"
    user: AccountSummary
