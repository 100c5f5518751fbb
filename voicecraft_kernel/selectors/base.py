"""
Module: voicecraft_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    are the "Q" side of the kernel: structured read access to balances,
    ledger history, projects and experts without mutation capability.
Architecture position: Kernel > Selectors.  May import from models/ and
    domain/dtos.py.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen dataclasses or plain
      values, NOT ORM model instances.
    - Session ownership: the caller owns the session and its transaction scope.

Failure modes:
    - Typed NotFoundError subclasses from ``get``-style methods when the row
      does not exist.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from voicecraft_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
