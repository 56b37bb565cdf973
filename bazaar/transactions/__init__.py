"""Mini README: Authoritative purchase and sale processing.

Structure:
    * models - requests, outcome statuses and outcomes.
    * approval - authority review of pending requests.
    * locks - per-resource serialisation.
    * coordinator - TransactionCoordinator tying them to the ledger.
"""

from .approval import (
    ApprovalDecision,
    ApprovalProvider,
    ApprovalTicket,
    AutoApprover,
    PendingApprovalQueue,
)
from .coordinator import TransactionCoordinator
from .locks import ResourceLocks
from .models import (
    OutcomeStatus,
    RequestLine,
    TransactionKind,
    TransactionOutcome,
    TransactionRequest,
)

__all__ = [
    "ApprovalDecision",
    "ApprovalProvider",
    "ApprovalTicket",
    "AutoApprover",
    "OutcomeStatus",
    "PendingApprovalQueue",
    "RequestLine",
    "ResourceLocks",
    "TransactionCoordinator",
    "TransactionKind",
    "TransactionOutcome",
    "TransactionRequest",
]
