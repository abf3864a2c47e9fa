"""Weekly report model and its sub-records."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Rag = Literal["Red", "Amber", "Green"]
PrevRag = Literal["Red", "Amber", "Green", "NotAvailable"]
VALID_RAGS = ("Red", "Amber", "Green")
NOT_AVAILABLE = "NotAvailable"

# Sequences left out of the summary projection
DETAIL_FIELDS = ("deliverables", "attrition", "escalations")


class Deliverable(BaseModel):
    type: Literal["Story", "Hotfix", "Bug", "Task", "Other"] = "Task"
    task: str = Field(min_length=1)
    owner: str | None = None
    eta: date | None = None
    status: Literal["On Track", "Completed", "Delayed", "At Risk"] = "On Track"
    delay_reason: str | None = None


class Attrition(BaseModel):
    engineer_name: str = Field(min_length=1)
    informed_to_client: bool = False
    billable: bool = True
    key_player: bool = False
    action_taken: str | None = None
    comments: str | None = None


class Escalation(BaseModel):
    engineer_name: str | None = None
    details: str = Field(min_length=1)
    severity: Literal["Low", "Medium", "Major", "Critical"] = "Medium"
    action_taken: str | None = None
    status: Literal["Open", "In Progress", "Resolved"] = "Open"
    comments: str | None = None


class SubmissionFields(BaseModel):
    """What a PM sends for a week. Unknown keys such as ``yet_to_bill`` are ignored."""

    model_config = ConfigDict(extra="ignore")

    rag: Rag
    reason_for_rag: str = ""
    path_to_green: str = ""
    overall_summary: str = ""
    team_size: str = ""
    planned_team_size: str = ""
    actual_team_size: str = ""
    billing_count: int = Field(default=0, ge=0)
    current_billable_count: int = Field(default=0, ge=0)
    buffer: int = Field(default=0, ge=0)
    deliverables: list[Deliverable] = Field(default_factory=list)
    attrition: list[Attrition] = Field(default_factory=list)
    escalations: list[Escalation] = Field(default_factory=list)

    @property
    def yet_to_bill(self) -> int:
        return max(0, self.billing_count - self.current_billable_count)


class WeeklyReport(BaseModel):
    """One project's status for one ISO week."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4())[:8])
    project_id: str
    pm_id: str | None
    week_key: str
    week_start_date: date
    rag: Rag
    prev_rag: PrevRag = NOT_AVAILABLE
    reason_for_rag: str = ""
    path_to_green: str = ""
    overall_summary: str = ""
    # Legacy combined field kept for reports written before the split
    team_size: str = ""
    planned_team_size: str = ""
    actual_team_size: str = ""
    billing_count: int = 0
    current_billable_count: int = 0
    yet_to_bill: int = 0
    buffer: int = 0
    deliverables: list[Deliverable] = Field(default_factory=list)
    attrition: list[Attrition] = Field(default_factory=list)
    escalations: list[Escalation] = Field(default_factory=list)
    submitted_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    last_edited_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def effective_planned_team_size(self) -> str:
        """Split fields win; the legacy field is used only when both are empty."""
        if self.planned_team_size or self.actual_team_size:
            return self.planned_team_size
        return self.team_size

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def to_response(self, *, detail: str = "summary") -> dict[str, Any]:
        data: dict[str, Any] = {
            "_v": "1.0",
            "id": self.id,
            "project_id": self.project_id,
            "pm_id": self.pm_id,
            "week_key": self.week_key,
            "week_start_date": self.week_start_date.isoformat(),
            "rag": self.rag,
            "prev_rag": self.prev_rag,
            "reason_for_rag": self.reason_for_rag,
            "path_to_green": self.path_to_green,
            "planned_team_size": self.effective_planned_team_size,
            "actual_team_size": self.actual_team_size,
            "submitted_at": self.submitted_at,
        }
        if detail != "summary":
            dumped = self.model_dump(mode="json", include={*DETAIL_FIELDS})
            data.update(
                {
                    "overall_summary": self.overall_summary,
                    "team_size": self.team_size,
                    "billing_count": self.billing_count,
                    "current_billable_count": self.current_billable_count,
                    "yet_to_bill": self.yet_to_bill,
                    "buffer": self.buffer,
                    "last_edited_at": self.last_edited_at,
                    **dumped,
                }
            )
        return data
