"""Read-side queries: ticket listing and detail."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Dict, Mapping, Optional

from django.db.models import Prefetch, Q, QuerySet
from django.utils import timezone
from django.utils.dateparse import parse_date

from accounts.context import RequestContext
from helpdesk_service.errors import InvalidArgument, NotFound

from .models import Ticket, TicketComment, TicketHistory
from .scoping import ticket_queryset

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

SORT_FIELDS = {
    "number": "ticket_number",
    "title": "title",
    "status": "status",
    "customer": "customer__name",
    "type": "ticket_type__name",
    "category": "category__name",
    "created_at": "created_at",
    "updated_at": "updated_at",
}


def _int(params: Mapping[str, Any], key: str) -> Optional[int]:
    raw = params.get(key)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{key} must be an integer.") from None


def _date(params: Mapping[str, Any], key: str) -> Optional[date]:
    raw = params.get(key)
    if raw in (None, ""):
        return None
    try:
        parsed = parse_date(str(raw))
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidArgument(f"{key} must be a date (YYYY-MM-DD).")
    return parsed


@dataclass(frozen=True)
class TicketFilters:
    search: str = ""
    customer_id: Optional[int] = None
    ticket_type_id: Optional[int] = None
    category_id: Optional[int] = None
    status: str = ""
    assigned_to_id: Optional[int] = None
    created_from: Optional[date] = None
    created_to: Optional[date] = None
    sort_by: str = "created_at"
    descending: bool = True
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_query_params(cls, params: Mapping[str, Any]) -> "TicketFilters":
        sort_by = params.get("sort_by") or "created_at"
        if sort_by not in SORT_FIELDS:
            raise InvalidArgument(f"Cannot sort by {sort_by}.")
        page = _int(params, "page") or 1
        page_size = _int(params, "page_size") or DEFAULT_PAGE_SIZE
        return cls(
            search=(params.get("search") or "").strip(),
            customer_id=_int(params, "customer"),
            ticket_type_id=_int(params, "type"),
            category_id=_int(params, "category"),
            status=(params.get("status") or "").strip(),
            assigned_to_id=_int(params, "assigned_to"),
            created_from=_date(params, "created_from"),
            created_to=_date(params, "created_to"),
            sort_by=sort_by,
            descending=(params.get("sort_direction") or "desc").lower() != "asc",
            page=max(page, 1),
            page_size=min(max(page_size, 1), MAX_PAGE_SIZE),
        )

    def apply(self, queryset: QuerySet) -> QuerySet:
        if self.search:
            queryset = queryset.filter(
                Q(title__icontains=self.search)
                | Q(ticket_number__icontains=self.search)
                | Q(description__icontains=self.search)
            )
        if self.customer_id is not None:
            queryset = queryset.filter(customer_id=self.customer_id)
        if self.ticket_type_id is not None:
            queryset = queryset.filter(ticket_type_id=self.ticket_type_id)
        if self.category_id is not None:
            queryset = queryset.filter(category_id=self.category_id)
        if self.status:
            queryset = queryset.filter(status=self.status)
        if self.assigned_to_id is not None:
            queryset = queryset.filter(assigned_to_id=self.assigned_to_id)
        if self.created_from is not None:
            start = timezone.make_aware(datetime.combine(self.created_from, time.min))
            queryset = queryset.filter(created_at__gte=start)
        if self.created_to is not None:
            end = timezone.make_aware(datetime.combine(self.created_to, time.max))
            queryset = queryset.filter(created_at__lte=end)
        order = SORT_FIELDS[self.sort_by]
        return queryset.order_by(f"-{order}" if self.descending else order, "-id")


def list_tickets(context: RequestContext, filters: TicketFilters) -> Dict[str, Any]:
    queryset = filters.apply(
        ticket_queryset(context).select_related(
            "customer", "ticket_type", "category", "category_module", "created_by", "assigned_to"
        )
    )
    total = queryset.count()
    offset = (filters.page - 1) * filters.page_size
    return {
        "items": list(queryset[offset : offset + filters.page_size]),
        "page": filters.page,
        "page_size": filters.page_size,
        "total": total,
        "total_pages": math.ceil(total / filters.page_size) if total else 0,
    }


def get_ticket_detail(context: RequestContext, ticket_id: int) -> Ticket:
    """Load a ticket with its comments, attachments and history for display.

    Customers do not see internal comments or the history rows they produce.
    """

    comments = TicketComment.objects.select_related("author")
    history = TicketHistory.objects.select_related("actor")
    if not context.is_admin:
        comments = comments.filter(is_internal=False)
        history = history.exclude(
            action=TicketHistory.COMMENT_ADDED, new_value=TicketHistory.INTERNAL
        )

    queryset = ticket_queryset(context).select_related(
        "company",
        "customer",
        "ticket_type",
        "category",
        "category_module",
        "created_by",
        "assigned_to",
    ).prefetch_related(
        Prefetch("comments", queryset=comments),
        Prefetch("history", queryset=history),
        "attachments",
    )
    try:
        return queryset.get(pk=ticket_id)
    except Ticket.DoesNotExist:
        raise NotFound("Ticket not found.") from None
