"""Advisory RAG score derived from a submission's metrics.

The PM's chosen RAG is always the stored value. This score is only a
suggestion returned next to it.
"""

from __future__ import annotations

from dataclasses import dataclass

from ragtracker.models.report import SubmissionFields

GREEN_THRESHOLD = 80
AMBER_THRESHOLD = 60


@dataclass(frozen=True)
class RagScore:
    team: int
    attrition: int
    escalation: int
    deliverables: int

    @property
    def score(self) -> float:
        return (self.team + self.attrition + self.escalation + self.deliverables) / 4

    @property
    def rag(self) -> str:
        if self.score >= GREEN_THRESHOLD:
            return "Green"
        if self.score >= AMBER_THRESHOLD:
            return "Amber"
        return "Red"


def score_report(fields: SubmissionFields) -> RagScore:
    """Score team composition, attrition, escalations and deliverables (each 50-100)."""
    team = 100 if fields.billing_count == fields.current_billable_count > 0 else 50
    attrition = 100 if not fields.attrition else 50

    escalation = 100
    if fields.escalations:
        severe = any(e.severity in ("Major", "Critical") for e in fields.escalations)
        escalation = 50 if severe else 80

    deliverables = 50 if any(d.status == "Delayed" for d in fields.deliverables) else 100
    return RagScore(
        team=team, attrition=attrition, escalation=escalation, deliverables=deliverables
    )
