"""Transaction, mutation and change-notification enumerations.

These types define the lifecycle of the single-writer transaction and
the kinds of mutation a collection can record and announce.
"""

from __future__ import annotations

from enum import Enum, auto


class TransactionState(Enum):
    """Transaction lifecycle states.

    State machine:

        IDLE ──begin()──> ACTIVE
                            │
              ┌─────────────┴─────────────┐
              │                           │
          commit()                   rollback()
              │                           │
              v                           v
         COMMITTING                 ROLLING_BACK
              │                           │
              └──────────> IDLE <─────────┘

    COMMITTING and ROLLING_BACK only exist while the three artifacts are
    being written; a failure there still returns the manager to IDLE.
    """

    IDLE = auto()
    """No transaction is open. Mutations persist immediately."""

    ACTIVE = auto()
    """A transaction is open. Mutations are logged and persistence is deferred."""

    COMMITTING = auto()
    """Buffered state is being persisted and notifications replayed."""

    ROLLING_BACK = auto()
    """The begin-time snapshot is being restored and persisted."""

    def is_active(self) -> bool:
        """Check if mutations are currently being buffered."""
        return self == TransactionState.ACTIVE

    def can_begin(self) -> bool:
        """Check if a new transaction may start."""
        return self == TransactionState.IDLE

    def can_finish(self) -> bool:
        """Check if commit() or rollback() is allowed."""
        return self == TransactionState.ACTIVE


class MutationKind(Enum):
    """Kinds of entries recorded in a transaction log."""

    INSERT = "insert"
    INSERT_MANY = "insertMany"
    UPDATE = "update"
    DELETE = "delete"


class ChangeType(Enum):
    """Kinds of change delivered to change listeners."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    SOFT_DELETE = "soft_delete"


class RevisionAction(Enum):
    """Action recorded in a document's revision history."""

    INSERT = "insert"
    UPDATE = "update"
    SOFT_DELETE = "soft_delete"
