"""Dashboard statistics over the tickets visible to the caller."""
from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List

from django.db.models import Count
from django.db.models.functions import TruncDate
from django.utils import timezone

from accounts.context import RequestContext

from . import lifecycle
from .models import Ticket
from .scoping import ticket_queryset

TREND_DAYS = 30
TOP_CUSTOMERS = 10
RECENT_TICKETS = 5


def build_dashboard(context: RequestContext) -> Dict[str, Any]:
    tickets = ticket_queryset(context)

    status_counts: Dict[str, int] = {
        row["status"]: row["total"]
        for row in tickets.values("status").order_by().annotate(total=Count("id"))
    }
    total = sum(status_counts.values())

    by_status: List[Dict[str, Any]] = [
        {
            "status": value,
            "label": label,
            "color": lifecycle.STATUS_COLORS[value],
            "count": status_counts[value],
        }
        for value, label in lifecycle.STATUS_CHOICES
        if status_counts.get(value, 0) > 0
    ]

    by_type = [
        {"id": row["ticket_type_id"], "name": row["ticket_type__name"], "color": row["ticket_type__color"], "count": row["total"]}
        for row in tickets.values("ticket_type_id", "ticket_type__name", "ticket_type__color")
        .order_by()
        .annotate(total=Count("id"))
        .order_by("-total", "ticket_type__name")
    ]

    by_category = [
        {"id": row["category_id"], "name": row["category__name"], "color": row["category__color"], "count": row["total"]}
        for row in tickets.values("category_id", "category__name", "category__color")
        .order_by()
        .annotate(total=Count("id"))
        .order_by("-total", "category__name")
    ]

    since = timezone.now() - timedelta(days=TREND_DAYS)
    trend = [
        {"date": row["day"].isoformat(), "count": row["total"]}
        for row in tickets.filter(created_at__gte=since)
        .annotate(day=TruncDate("created_at"))
        .values("day")
        .order_by("day")
        .annotate(total=Count("id"))
    ]

    recent = [
        {
            "id": ticket.pk,
            "ticket_number": ticket.ticket_number,
            "title": ticket.title,
            "status": ticket.status,
            "status_label": ticket.status_label,
            "created_at": ticket.created_at.isoformat(),
        }
        for ticket in tickets.order_by("-created_at", "-id")[:RECENT_TICKETS]
    ]

    summary: Dict[str, Any] = {
        "total": total,
        "active": status_counts.get(Ticket.UNDER_REVIEW, 0) + status_counts.get(Ticket.IN_PROGRESS, 0),
        "under_review": status_counts.get(Ticket.UNDER_REVIEW, 0),
        "in_progress": status_counts.get(Ticket.IN_PROGRESS, 0),
        "resolved": status_counts.get(Ticket.RESOLVED, 0),
        "closed": status_counts.get(Ticket.CLOSED, 0),
        "rejected": status_counts.get(Ticket.REJECTED, 0),
        "by_status": by_status,
        "by_type": by_type,
        "by_category": by_category,
        "trend": trend,
        "recent": recent,
    }

    if context.is_admin:
        summary["by_customer"] = [
            {"id": row["customer_id"], "name": row["customer__name"], "count": row["total"]}
            for row in tickets.values("customer_id", "customer__name")
            .order_by()
            .annotate(total=Count("id"))
            .order_by("-total", "customer__name")[:TOP_CUSTOMERS]
        ]
    return summary
