"""Project model."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

ContractType = Literal["T & Material", "Fixed Price", "Retainer"]
ProjectStatus = Literal["active", "closed"]
VALID_CONTRACT_TYPES = {"T & Material", "Fixed Price", "Retainer"}
VALID_STATUSES = {"active", "closed"}


class Project(BaseModel):
    """A client engagement, optionally assigned to a PM."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4())[:8])
    name: str
    client: str
    contract_type: ContractType = "T & Material"
    pm_id: str | None = None
    status: ProjectStatus = "active"
    closed_at: str | None = None
    created_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    updated_at: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_storage(self) -> dict:
        return self.model_dump()

    def to_response(self, *, detail: str = "summary") -> dict:
        data = {
            "_v": "1.0",
            "id": self.id,
            "name": self.name,
            "client": self.client,
            "status": self.status,
            "pm_id": self.pm_id,
        }
        if detail != "summary":
            data.update(
                {
                    "contract_type": self.contract_type,
                    "closed_at": self.closed_at,
                    "created_at": self.created_at,
                    "updated_at": self.updated_at,
                }
            )
        return data
