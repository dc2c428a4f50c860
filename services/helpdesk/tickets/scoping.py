"""Tenant and customer scoping for ticket lookups."""
from __future__ import annotations

import logging

from django.db.models import QuerySet

from accounts.context import RequestContext
from helpdesk_service.errors import NotFound

from .models import Ticket

logger = logging.getLogger(__name__)


def ticket_queryset(context: RequestContext) -> QuerySet:
    """Tickets the principal may see: its company's, and only its own customer's for customers."""

    company_id = context.require_company()
    queryset = Ticket.objects.filter(company_id=company_id, is_deleted=False)
    if not context.is_admin:
        queryset = queryset.filter(customer_id=context.customer_id)
    return queryset


def get_scoped_ticket(context: RequestContext, ticket_id: int, for_update: bool = False) -> Ticket:
    """Load a ticket in scope. Out-of-scope tickets are reported as missing."""

    queryset = ticket_queryset(context)
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(pk=ticket_id)
    except Ticket.DoesNotExist:
        logger.info("Ticket %s not found for user %s", ticket_id, context.user_id)
        raise NotFound("Ticket not found.") from None
