"""Selectors for the voicecraft kernel (read side)."""

from voicecraft_kernel.selectors.expert_selector import ExpertSelector
from voicecraft_kernel.selectors.ledger_selector import LedgerSelector
from voicecraft_kernel.selectors.project_selector import ProjectSelector

__all__ = [
    "ExpertSelector",
    "LedgerSelector",
    "ProjectSelector",
]
