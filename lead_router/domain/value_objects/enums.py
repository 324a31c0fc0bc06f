"""Domain enums — pure Python, no external dependencies."""

from enum import Enum


class ReasonCode(str, Enum):
    """Why a worker was chosen for a work item (stored in the audit log)."""

    AFFINITY_ROUND_ROBIN = "affinity_round_robin"
    GLOBAL_ROUND_ROBIN = "global_round_robin"
    CAPACITY_OVERFLOW_FALLBACK = "capacity_overflow_fallback"


class ErrorKind(str, Enum):
    NO_WORKERS_AVAILABLE = "no_workers_available"
    WORK_ITEM_NOT_FOUND = "work_item_not_found"
    LOCK_TIMEOUT = "lock_timeout"
    TRANSACTION_CONFLICT = "transaction_conflict"
    PERSISTENCE_FAILURE = "persistence_failure"
