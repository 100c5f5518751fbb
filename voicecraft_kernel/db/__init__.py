"""Database layer - engine, base classes, types, and immutability."""

from voicecraft_kernel.db.base import UUID, Base, TrackedBase, UTCDateTime, UUIDString
from voicecraft_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from voicecraft_kernel.db.types import Credits, Dollars, Sequence

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
    "Credits",
    "Dollars",
    "Sequence",
]
