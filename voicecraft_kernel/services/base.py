"""
BaseService -- abstract bases for kernel services.

Responsibility:
    ``BaseService`` gives every service the caller's ``Session``; services
    persist with ``session.flush()`` and never commit.

    ``TransitionService`` adds the unit of work used by the two public
    workflow facades (ProjectWorkflowService, PayoutOrchestrator): every
    operation runs inside a SAVEPOINT, commits or rolls back the session
    when ``auto_commit`` is on, logs ``<action>_started`` /
    ``_completed`` / ``_rejected`` / ``_failed`` with timing, and only then
    hands queued notifications to the notifier.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Failure modes:
    - Kernel errors (business rule violations) are logged at WARNING as
      ``<action>_rejected`` and re-raised.
    - Anything else is logged at ERROR as ``<action>_failed`` and re-raised.
    In both cases the savepoint is rolled back, so the project and the
    ledger are left exactly as they were.
"""

import logging
import time
from abc import ABC
from typing import Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from voicecraft_kernel.exceptions import VoicecraftKernelError
from voicecraft_kernel.logging_config import LogContext, get_logger
from voicecraft_kernel.services.notifications import (
    Notification,
    Notifier,
    NullNotifier,
    dispatch_notifications,
)

T = TypeVar("T")


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.  Never commits or rolls back.
    """

    def __init__(self, session: Session):
        self.session = session


class TransitionService(BaseService):
    """
    Base for services that define their own transaction boundary.

    Set auto_commit=False to delegate commit/rollback to the caller (tests,
    or composing several operations in one transaction).
    """

    _logger: logging.Logger = get_logger("services")

    def __init__(
        self,
        session: Session,
        notifier: Notifier | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session)
        self._notifier = notifier or NullNotifier()
        self._auto_commit = auto_commit

    def _execute(
        self,
        action: str,
        work: Callable[[list[Notification]], T],
        *,
        actor_id: UUID,
        project_id: UUID | None = None,
    ) -> T:
        outbox: list[Notification] = []
        with LogContext.bind(
            correlation_id=str(uuid4()),
            project_id=str(project_id) if project_id else None,
            actor_id=str(actor_id),
            action=action,
        ):
            self._logger.info(f"{action}_started")
            t0 = time.monotonic()
            try:
                with self.session.begin_nested():
                    result = work(outbox)
                if self._auto_commit:
                    self.session.commit()
            except VoicecraftKernelError as exc:
                if self._auto_commit:
                    self.session.rollback()
                self._logger.warning(
                    f"{action}_rejected",
                    extra={
                        "error_code": exc.code,
                        "error": str(exc),
                        "guard": exc.guard,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                raise
            except Exception:
                if self._auto_commit:
                    self.session.rollback()
                self._logger.error(
                    f"{action}_failed",
                    extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                    exc_info=True,
                )
                raise

            self._logger.info(
                f"{action}_completed",
                extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
            )
            dispatch_notifications(self._notifier, outbox)
            return result
