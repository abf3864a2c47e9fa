"""User model."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

Role = Literal["admin", "pm", "exec"]
VALID_ROLES = {"admin", "pm", "exec"}


class User(BaseModel):
    """An admin, project manager or executive."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4())[:8])
    name: str
    email: str
    # Hashing and verification happen outside the core
    password_hash: str | None = None
    role: Role
    is_active: bool = True
    created_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    updated_at: str | None = None

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value: str) -> str:
        return value.strip().lower()

    def to_storage(self) -> dict:
        return self.model_dump()

    def to_response(self) -> dict:
        return {
            "_v": "1.0",
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
        }
