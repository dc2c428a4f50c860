"""Command handlers for tickets.

Every handler receives the command and the caller's ``RequestContext``.
``dispatch`` is the boundary: expected failures raised as ``HelpdeskError``
come back as a failed ``Result`` instead of propagating.
"""
from __future__ import annotations

import hashlib
import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from django.conf import settings
from django.db import transaction
from kombu.exceptions import OperationalError
from rest_framework import status

from accounts.context import RequestContext
from accounts.models import Customer
from catalog.form_schema import describe_form_data, validate_form_data
from catalog.models import TicketCategory, TicketCategoryModule, TicketFormField, TicketType
from helpdesk_service.errors import Forbidden, HelpdeskError, InvalidArgument, InvalidTransition, NotFound
from helpdesk_service.results import Result

from . import lifecycle, notifications
from .commands import (
    AddAttachment,
    AddComment,
    ApproveTicket,
    CloseTicket,
    CreateTicket,
    PreviewTicket,
    RateTicket,
    RejectTicket,
    ResolveTicket,
    UpdateTicketStatus,
)
from .models import PmoSyncRequest, Ticket, TicketAttachment, TicketNumberSequence
from .scoping import get_scoped_ticket
from .tasks import forward_ticket_to_pmo

logger = logging.getLogger(__name__)

Handler = Callable[[Any, RequestContext], Any]

_HANDLERS: Dict[Type, Handler] = {}


def handles(command_type: Type) -> Callable[[Handler], Handler]:
    def register(handler: Handler) -> Handler:
        _HANDLERS[command_type] = handler
        return handler

    return register


def dispatch(command: Any, context: RequestContext) -> Result:
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise LookupError(f"No handler registered for {type(command).__name__}")
    try:
        outcome = handler(command, context)
    except HelpdeskError as exc:
        logger.info(
            "%s refused for user %s: %s (%s)",
            type(command).__name__,
            context.user_id,
            exc.message,
            exc.code,
        )
        return Result.from_error(exc)
    if isinstance(outcome, Result):
        return outcome
    return Result.success(outcome)


# Ticket submission


@dataclass
class _Submission:
    company_id: int
    title: str
    description: str
    customer: Customer
    ticket_type: TicketType
    category: TicketCategory
    category_module: Optional[TicketCategoryModule]
    fields: List[TicketFormField]
    form_data: Dict[str, Any]


def _resolve_submission(command: CreateTicket, context: RequestContext) -> _Submission:
    company_id = context.require_company()

    title = (command.title or "").strip()
    description = (command.description or "").strip()
    if not title:
        raise InvalidArgument("Title is required.")
    if len(title) > 200:
        raise InvalidArgument("Title must be at most 200 characters.")
    if len(description) > 2000:
        raise InvalidArgument("Description must be at most 2000 characters.")

    customer_id = command.customer_id if context.is_admin else context.customer_id
    if customer_id is None:
        raise InvalidArgument("A customer must be selected.")
    customer = Customer.objects.filter(company_id=company_id, pk=customer_id, is_active=True).first()
    if customer is None:
        raise NotFound("Customer not found.")

    ticket_type = TicketType.objects.filter(
        company_id=company_id, pk=command.ticket_type_id, is_active=True
    ).first()
    if ticket_type is None:
        raise NotFound("Ticket type not found.")

    category = TicketCategory.objects.filter(
        company_id=company_id, pk=command.category_id, is_active=True
    ).first()
    if category is None:
        raise NotFound("Category not found.")

    module = None
    if command.category_module_id is not None:
        module = category.modules.filter(pk=command.category_module_id, is_active=True).first()
        if module is None:
            raise NotFound("Category module not found.")

    fields = list(ticket_type.fields.all())
    form_data = validate_form_data(fields, command.form_data)
    return _Submission(
        company_id=company_id,
        title=title,
        description=description,
        customer=customer,
        ticket_type=ticket_type,
        category=category,
        category_module=module,
        fields=fields,
        form_data=form_data,
    )


@handles(PreviewTicket)
def preview_ticket(command: PreviewTicket, context: RequestContext) -> Dict[str, Any]:
    submission = _resolve_submission(command, context)
    module = submission.category_module
    return {
        "title": submission.title,
        "description": submission.description,
        "customer": {"id": submission.customer.pk, "name": submission.customer.name},
        "ticket_type": {"id": submission.ticket_type.pk, "name": submission.ticket_type.name},
        "category": {"id": submission.category.pk, "name": submission.category.name},
        "category_module": {"id": module.pk, "name": module.name} if module else None,
        "form_data": submission.form_data,
        "fields": describe_form_data(submission.fields, submission.form_data),
    }


@handles(CreateTicket)
def create_ticket(command: CreateTicket, context: RequestContext) -> Result:
    submission = _resolve_submission(command, context)
    with transaction.atomic():
        ticket = Ticket.objects.create(
            company_id=submission.company_id,
            customer=submission.customer,
            ticket_type=submission.ticket_type,
            category=submission.category,
            category_module=submission.category_module,
            created_by_id=context.user_id,
            ticket_number=TicketNumberSequence.next_number(submission.company_id),
            title=submission.title,
            description=submission.description,
            form_data=submission.form_data,
            due_date=command.due_date,
        )
        ticket.record_created(context.user_id)
    logger.info("Ticket %s created by user %s", ticket.ticket_number, context.user_id)
    notifications.ticket_created(ticket)
    return Result.success(ticket, status_code=status.HTTP_201_CREATED)


# Lifecycle transitions


def _transition(
    context: RequestContext, ticket_id: int, apply: Callable[[Ticket], None]
) -> Tuple[Ticket, str]:
    context.require_admin()
    with transaction.atomic():
        ticket = get_scoped_ticket(context, ticket_id, for_update=True)
        previous = ticket.status
        apply(ticket)
    logger.info(
        "Ticket %s moved from %s to %s by user %s",
        ticket.ticket_number,
        previous,
        ticket.status,
        context.user_id,
    )
    notifications.status_changed(ticket, previous)
    return ticket, previous


def _request_pmo_sync(ticket: Ticket, actor_id: int) -> Tuple[Optional[PmoSyncRequest], List[str]]:
    if not ticket.company.pmo_enabled:
        return None, ["PMO integration is not configured; the ticket was not forwarded."]
    return PmoSyncRequest.objects.create(ticket=ticket, requested_by_id=actor_id), []


def _enqueue_pmo_sync(sync: PmoSyncRequest) -> List[str]:
    try:
        forward_ticket_to_pmo.delay(str(sync.id))
    except OperationalError as exc:
        logger.warning("Could not enqueue PMO sync %s: %s", sync.id, exc)
        return ["The ticket will be forwarded to PMO once the task queue is available."]
    sync.refresh_from_db()
    if sync.status == PmoSyncRequest.FAILED:
        return [f"The ticket could not be forwarded to PMO: {sync.last_error}"]
    return []


@handles(ApproveTicket)
def approve_ticket(command: ApproveTicket, context: RequestContext) -> Result:
    outbox: List[Tuple[Optional[PmoSyncRequest], List[str]]] = []

    def apply(ticket: Ticket) -> None:
        ticket.approve(context.user_id, command.comment)
        if command.send_to_pmo:
            outbox.append(_request_pmo_sync(ticket, context.user_id))

    ticket, _ = _transition(context, command.ticket_id, apply)
    warnings: List[str] = []
    for sync, notes in outbox:
        warnings.extend(notes)
        if sync is not None:
            warnings.extend(_enqueue_pmo_sync(sync))
    return Result.success(ticket, warnings=warnings)


@handles(RejectTicket)
def reject_ticket(command: RejectTicket, context: RequestContext) -> Ticket:
    ticket, _ = _transition(
        context, command.ticket_id, lambda ticket: ticket.reject(context.user_id, command.reason)
    )
    return ticket


@handles(ResolveTicket)
def resolve_ticket(command: ResolveTicket, context: RequestContext) -> Ticket:
    ticket, _ = _transition(
        context, command.ticket_id, lambda ticket: ticket.resolve(context.user_id, command.comment)
    )
    return ticket


@handles(CloseTicket)
def close_ticket(command: CloseTicket, context: RequestContext) -> Ticket:
    ticket, _ = _transition(
        context, command.ticket_id, lambda ticket: ticket.close(context.user_id, command.comment)
    )
    return ticket


@handles(UpdateTicketStatus)
def update_ticket_status(command: UpdateTicketStatus, context: RequestContext) -> Any:
    """Route a requested target status onto the matching lifecycle operation."""

    context.require_admin()
    operation = lifecycle.OPERATION_FOR_STATUS.get(command.status)
    if operation is None:
        raise InvalidTransition(
            f"Tickets cannot be moved to {lifecycle.status_label(command.status).lower()}."
        )
    if operation == "approve":
        return approve_ticket(
            ApproveTicket(command.ticket_id, command.comment, command.send_to_pmo), context
        )
    if operation == "reject":
        return reject_ticket(RejectTicket(command.ticket_id, command.comment or ""), context)
    if operation == "resolve":
        return resolve_ticket(ResolveTicket(command.ticket_id, command.comment), context)
    return close_ticket(CloseTicket(command.ticket_id, command.comment), context)


# Comments, attachments, ratings


@handles(AddComment)
def add_comment(command: AddComment, context: RequestContext) -> Result:
    context.require_company()
    if command.is_internal and not context.is_admin:
        raise Forbidden("Only administrators can add internal comments.")
    ticket = get_scoped_ticket(context, command.ticket_id)
    comment = ticket.add_comment(command.content, context.user_id, internal=command.is_internal)
    logger.info("Comment %s added to ticket %s by user %s", comment.pk, ticket.ticket_number, context.user_id)
    notifications.comment_added(comment)
    return Result.success(comment, status_code=status.HTTP_201_CREATED)


def _sha256(upload) -> str:
    digest = hashlib.sha256()
    for chunk in upload.chunks():
        digest.update(chunk)
    return digest.hexdigest()


@handles(AddAttachment)
def add_attachment(command: AddAttachment, context: RequestContext) -> Result:
    context.require_company()
    ticket = get_scoped_ticket(context, command.ticket_id)
    company = ticket.company
    upload = command.upload

    if not company.allow_file_attachments:
        raise InvalidArgument("File attachments are disabled for this company.")
    name = os.path.basename(upload.name or "")
    extension = os.path.splitext(name)[1].lower()
    if extension not in settings.TICKET_ATTACHMENT_EXTENSIONS:
        raise InvalidArgument(f"Files of type '{extension or name}' are not allowed.")
    if not upload.size:
        raise InvalidArgument("The uploaded file is empty.")
    if upload.size > company.max_file_size_bytes:
        raise InvalidArgument(f"Files must not exceed {company.max_file_size_mb} MB.")

    content_type = getattr(upload, "content_type", "") or mimetypes.guess_type(name)[0] or ""
    with transaction.atomic():
        attachment = TicketAttachment(
            ticket=ticket,
            uploaded_by_id=context.user_id,
            original_name=name,
            content_type=content_type,
            size=upload.size,
            sha256=_sha256(upload),
            is_image=content_type.startswith("image/"),
        )
        attachment.file.save(name, upload, save=True)
        ticket.record_attachment(attachment, context.user_id)
    logger.info("Attachment %s added to ticket %s", attachment.pk, ticket.ticket_number)
    return Result.success(attachment, status_code=status.HTTP_201_CREATED)


@handles(RateTicket)
def rate_ticket(command: RateTicket, context: RequestContext) -> Ticket:
    context.require_company()
    if not context.is_customer:
        raise Forbidden("Only customers can rate tickets.")
    with transaction.atomic():
        ticket = get_scoped_ticket(context, command.ticket_id, for_update=True)
        ticket.rate(context.user_id, command.rating, command.feedback)
    return ticket
