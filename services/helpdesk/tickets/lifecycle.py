"""Ticket statuses and the transitions allowed between them."""
from __future__ import annotations

from typing import Dict, FrozenSet, List, Tuple

from helpdesk_service.errors import InvalidTransition

UNDER_REVIEW = "under_review"
IN_PROGRESS = "in_progress"
RESOLVED = "resolved"
CLOSED = "closed"
REJECTED = "rejected"

STATUS_CHOICES = [
    (UNDER_REVIEW, "Under Review"),
    (IN_PROGRESS, "In Progress"),
    (RESOLVED, "Resolved"),
    (CLOSED, "Closed"),
    (REJECTED, "Rejected"),
]

STATUS_LABELS: Dict[str, str] = dict(STATUS_CHOICES)

STATUS_COLORS: Dict[str, str] = {
    UNDER_REVIEW: "#f59e0b",
    IN_PROGRESS: "#3b82f6",
    RESOLVED: "#10b981",
    CLOSED: "#6b7280",
    REJECTED: "#ef4444",
}

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    UNDER_REVIEW: frozenset({IN_PROGRESS, REJECTED}),
    IN_PROGRESS: frozenset({RESOLVED, REJECTED}),
    RESOLVED: frozenset({CLOSED}),
    CLOSED: frozenset(),
    REJECTED: frozenset(),
}

TERMINAL = frozenset({CLOSED, REJECTED})
ACTIONABLE = frozenset({UNDER_REVIEW, IN_PROGRESS, RESOLVED})

APPROVE = "Approve"
REJECT = "Reject"
RESOLVE = "Resolve"
CLOSE = "Close"

AVAILABLE_ACTIONS: Dict[str, Tuple[str, ...]] = {
    UNDER_REVIEW: (APPROVE, REJECT),
    IN_PROGRESS: (RESOLVE, REJECT),
    RESOLVED: (CLOSE,),
    CLOSED: (),
    REJECTED: (),
}

# Target status requested through the generic status update -> lifecycle operation.
OPERATION_FOR_STATUS: Dict[str, str] = {
    IN_PROGRESS: "approve",
    REJECTED: "reject",
    RESOLVED: "resolve",
    CLOSED: "close",
}


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def assert_transition(current: str, target: str, operation: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot {operation} a ticket that is {status_label(current).lower()}."
        )


def available_actions(status: str) -> List[str]:
    return list(AVAILABLE_ACTIONS.get(status, ()))


def is_open(status: str) -> bool:
    return status not in TERMINAL
