"""Assignment error taxonomy.

Every failure the assignment path can report carries an ErrorKind and a
``retryable`` flag. Retry policy belongs to the caller; nothing in the engine
retries on its own.
"""

from __future__ import annotations

from lead_router.domain.value_objects.enums import ErrorKind


class AssignmentError(Exception):
    kind: ErrorKind = ErrorKind.PERSISTENCE_FAILURE
    retryable: bool = False


class NoWorkersAvailable(AssignmentError):
    """The worker registry is empty; the work item stays unassigned."""

    kind = ErrorKind.NO_WORKERS_AVAILABLE


class WorkItemNotFound(AssignmentError):
    kind = ErrorKind.WORK_ITEM_NOT_FOUND


class LockTimeout(AssignmentError):
    kind = ErrorKind.LOCK_TIMEOUT
    retryable = True


class TransactionConflict(AssignmentError):
    kind = ErrorKind.TRANSACTION_CONFLICT
    retryable = True


class PersistenceFailure(AssignmentError):
    kind = ErrorKind.PERSISTENCE_FAILURE


class WorkerInUse(PersistenceFailure):
    """The worker is still referenced by work items or assignment records."""
