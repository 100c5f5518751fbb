"""Services for the voicecraft kernel (write side)."""

from voicecraft_kernel.services.account_balance_service import AccountBalanceService
from voicecraft_kernel.services.estimation_gateway import (
    DeadlineEstimationGateway,
    EstimationGateway,
    HttpEstimationGateway,
    RetryingEstimationGateway,
)
from voicecraft_kernel.services.expert_service import ExpertService
from voicecraft_kernel.services.ledger_service import LedgerService
from voicecraft_kernel.services.notifications import (
    Notification,
    NotificationKind,
    Notifier,
    NullNotifier,
)
from voicecraft_kernel.services.payout_orchestrator import PayoutOrchestrator
from voicecraft_kernel.services.project_workflow_service import ProjectWorkflowService

__all__ = [
    "AccountBalanceService",
    "DeadlineEstimationGateway",
    "EstimationGateway",
    "ExpertService",
    "HttpEstimationGateway",
    "LedgerService",
    "Notification",
    "NotificationKind",
    "Notifier",
    "NullNotifier",
    "PayoutOrchestrator",
    "ProjectWorkflowService",
    "RetryingEstimationGateway",
]
