"""
Notifications -- fire-and-forget signals raised by workflow transitions.

The kernel decides *that* something noteworthy happened (an estimate is
ready, work was submitted, a payout was issued); delivery (email, in-app,
webhooks) belongs to the caller layer behind the ``Notifier`` port.

Notifications are dispatched only after the transition's transaction has
been applied.  A failing notifier is logged and never undoes or fails the
transition that triggered it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable
from uuid import UUID

from voicecraft_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class NotificationKind(str, Enum):
    ESTIMATE_READY = "estimate_ready"
    ESTIMATE_FAILED = "estimate_failed"
    AWAITING_ASSIGNMENT = "awaiting_assignment"
    PROJECT_ASSIGNED = "project_assigned"
    WORK_SUBMITTED = "work_submitted"
    CHANGES_REQUESTED = "changes_requested"
    RE_ESTIMATE_REQUESTED = "re_estimate_requested"
    WORK_APPROVED = "work_approved"
    PAYOUT_ISSUED = "payout_issued"
    PROJECT_REFUNDED = "project_refunded"


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    project_id: UUID
    recipient_account_id: UUID | None
    data: dict[str, Any] = field(default_factory=dict)


class Notifier(ABC):
    """Delivery port.  Implementations may raise; the kernel logs and moves on."""

    @abstractmethod
    def send(self, notification: Notification) -> None:
        ...


class NullNotifier(Notifier):
    """Drops every notification (logged at DEBUG)."""

    def send(self, notification: Notification) -> None:
        logger.debug(
            "notification_dropped",
            extra={
                "kind": notification.kind.value,
                "project_id": str(notification.project_id),
            },
        )


def dispatch_notifications(notifier: Notifier, notifications: Iterable[Notification]) -> int:
    """Send each notification; return how many were delivered."""
    delivered = 0
    for notification in notifications:
        try:
            notifier.send(notification)
        except Exception:
            logger.warning(
                "notification_delivery_failed",
                extra={
                    "kind": notification.kind.value,
                    "project_id": str(notification.project_id),
                    "recipient_account_id": (
                        str(notification.recipient_account_id)
                        if notification.recipient_account_id
                        else None
                    ),
                },
                exc_info=True,
            )
            continue
        delivered += 1
    return delivered
