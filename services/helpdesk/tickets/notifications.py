"""Plain-text e-mail notifications about ticket activity."""
from __future__ import annotations

import logging
from smtplib import SMTPException
from typing import Iterable

from django.conf import settings
from django.core.mail import BadHeaderError, send_mail

from . import lifecycle
from .models import Ticket, TicketComment

logger = logging.getLogger(__name__)


def _one_line(value: str) -> str:
    return " ".join(value.split())


def _deliver(ticket: Ticket, subject: str, message: str, recipients: Iterable[str]) -> bool:
    if not ticket.company.send_email_notifications:
        return False
    # Header values must not contain line breaks.
    subject = _one_line(subject)
    recipient_list = sorted({address for address in recipients if address})
    if not recipient_list:
        return False
    try:
        send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=recipient_list,
            fail_silently=False,
        )
    except (SMTPException, BadHeaderError, OSError) as exc:
        logger.error("Sending '%s' for ticket %s failed: %s", subject, ticket.ticket_number, exc)
        return False
    return True


def ticket_created(ticket: Ticket) -> bool:
    subject = f"[{ticket.ticket_number}] Ticket received: {ticket.title}"
    message = (
        f"Ticket {ticket.ticket_number} has been submitted for {ticket.customer.name}.\n\n"
        f"Type: {ticket.ticket_type.name}\n"
        f"Category: {ticket.category.name}\n"
        f"Status: {ticket.status_label}\n\n"
        f"{ticket.description}"
    )
    return _deliver(ticket, subject, message, [ticket.created_by.email, ticket.company.email])


def status_changed(ticket: Ticket, previous_status: str) -> bool:
    subject = f"[{ticket.ticket_number}] Status changed to {ticket.status_label}"
    message = (
        f"The status of ticket {ticket.ticket_number} ({ticket.title}) changed from "
        f"{lifecycle.status_label(previous_status)} to {ticket.status_label}."
    )
    if ticket.resolution:
        message += f"\n\nResolution: {ticket.resolution}"
    return _deliver(ticket, subject, message, [ticket.created_by.email])


def comment_added(comment: TicketComment) -> bool:
    if comment.is_internal:
        return False
    ticket = comment.ticket
    if comment.author_id == ticket.created_by_id:
        return False
    author = comment.author.display_name if comment.author else "Support"
    subject = f"[{ticket.ticket_number}] New comment"
    message = f"{author} commented on ticket {ticket.ticket_number} ({ticket.title}):\n\n{comment.content}"
    return _deliver(ticket, subject, message, [ticket.created_by.email])
