"""
Pydantic schemas for the scrumboard API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


class Credentials(BaseModel):
    """Email/password pair posted to the auth endpoints."""

    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "Credentials":
        values = {}
        for name in ("email", "password"):
            value = payload.get(name)
            values[name] = value if isinstance(value, str) else None
        return cls(**values)

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in ("email", "password")
            if not getattr(self, name)
        ]


class ScrumListResponse(BaseModel):
    scrums: list[dict]


class SessionResponse(BaseModel):
    user: Optional[dict] = None
    session: Optional[dict] = None


class PendingConfirmationResponse(BaseModel):
    message: str
    requiresConfirmation: Optional[Literal[True]] = None


class ErrorResponse(BaseModel):
    error: str
