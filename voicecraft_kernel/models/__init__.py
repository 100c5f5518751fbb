"""Domain models for the voicecraft kernel."""

from voicecraft_kernel.models.account import Account
from voicecraft_kernel.models.expert import ExpertProfile
from voicecraft_kernel.models.ledger import LedgerEntry
from voicecraft_kernel.models.project import (
    HistoryKind,
    Project,
    ProjectHistoryEntry,
    ProjectWorkItem,
    WorkItemRole,
)

__all__ = [
    "Account",
    "ExpertProfile",
    "HistoryKind",
    "LedgerEntry",
    "Project",
    "ProjectHistoryEntry",
    "ProjectWorkItem",
    "WorkItemRole",
]
