"""Command objects accepted by ``tickets.handlers.dispatch``."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class CreateTicket:
    title: str
    ticket_type_id: int
    category_id: int
    description: str = ""
    category_module_id: Optional[int] = None
    customer_id: Optional[int] = None
    form_data: Dict[str, Any] = field(default_factory=dict)
    due_date: Optional[datetime] = None


@dataclass(frozen=True)
class PreviewTicket(CreateTicket):
    """Validate a wizard submission without saving it."""


@dataclass(frozen=True)
class ApproveTicket:
    ticket_id: int
    comment: Optional[str] = None
    send_to_pmo: bool = False


@dataclass(frozen=True)
class RejectTicket:
    ticket_id: int
    reason: str = ""


@dataclass(frozen=True)
class ResolveTicket:
    ticket_id: int
    comment: Optional[str] = None


@dataclass(frozen=True)
class CloseTicket:
    ticket_id: int
    comment: Optional[str] = None


@dataclass(frozen=True)
class UpdateTicketStatus:
    ticket_id: int
    status: str
    comment: Optional[str] = None
    send_to_pmo: bool = False


@dataclass(frozen=True)
class AddComment:
    ticket_id: int
    content: str
    is_internal: bool = False


@dataclass(frozen=True)
class AddAttachment:
    ticket_id: int
    upload: Any


@dataclass(frozen=True)
class RateTicket:
    ticket_id: int
    rating: int
    feedback: str = ""
