"""
Estimation value objects.

``ProjectSummary`` is what the kernel hands to an ``EstimationGateway``;
``EstimateResult`` is what comes back.  Both are frozen and carry no
database identity beyond the project id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

MIN_REQUEST_LENGTH = 10
MAX_REQUEST_LENGTH = 5000


@dataclass(frozen=True)
class WorkItemSummary:
    work_item_id: UUID
    label: str | None
    duration_seconds: Decimal | None


@dataclass(frozen=True)
class ProjectSummary:
    """Everything the oracle is told about a project."""

    project_id: UUID
    name: str
    description: str | None
    priority: str
    request_text: str
    work_items: tuple[WorkItemSummary, ...]

    @property
    def total_duration_seconds(self) -> Decimal:
        return sum(
            (w.duration_seconds for w in self.work_items if w.duration_seconds is not None),
            Decimal("0"),
        )

    @property
    def total_duration_minutes(self) -> Decimal:
        return (self.total_duration_seconds / 60).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )

    def to_prompt(self) -> str:
        lines = [
            f"Project: {self.name}",
            f"Description: {self.description or 'No description'}",
            f"Priority: {self.priority}",
            f"Number of audio files: {len(self.work_items)}",
            f"Total audio duration: {self.total_duration_seconds} seconds "
            f"({self.total_duration_minutes} minutes)",
            "",
            "Audio files:",
        ]
        for index, item in enumerate(self.work_items, start=1):
            duration = (
                f"{item.duration_seconds}s" if item.duration_seconds is not None else "unknown duration"
            )
            lines.append(f"{index}. {item.label or item.work_item_id} ({duration})")
        lines.extend(["", "Client request:", self.request_text])
        return "\n".join(lines)


@dataclass(frozen=True)
class EstimateResult:
    """
    An oracle answer.

    cost is in dollars and always positive; duration_hours may be unknown.
    raw keeps the untouched payload for audit.
    """

    cost: Decimal
    duration_hours: Decimal | None = None
    breakdown: dict[str, Any] = field(default_factory=dict)
    assumptions: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe form stored on the project as estimation data."""
        return {
            "cost": str(self.cost),
            "duration_hours": str(self.duration_hours) if self.duration_hours is not None else None,
            "breakdown": _json_safe(self.breakdown),
            "assumptions": list(self.assumptions),
            "raw": _json_safe(self.raw),
        }


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value
