"""Database models for tickets and their audit trail."""
from __future__ import annotations

import os
import uuid
from datetime import timedelta
from typing import List, Optional

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.utils import timezone

from helpdesk_service.errors import InvalidArgument, InvalidTransition

from . import lifecycle


class TicketNumberSequence(models.Model):
    """Per-company monthly counter behind ticket numbers."""

    company = models.ForeignKey(
        "accounts.Company", related_name="ticket_sequences", on_delete=models.CASCADE
    )
    period = models.CharField(max_length=6)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        unique_together = ("company", "period")

    @classmethod
    def next_number(cls, company_id: int, moment=None) -> str:
        """Reserve the next ``TKT-<yyyyMM>-<seq>`` number for a company."""

        period = timezone.localtime(moment or timezone.now()).strftime("%Y%m")
        with transaction.atomic():
            cls.objects.get_or_create(company_id=company_id, period=period)
            sequence = cls.objects.select_for_update().get(company_id=company_id, period=period)
            sequence.last_value += 1
            sequence.save(update_fields=["last_value"])
        return f"TKT-{period}-{sequence.last_value:04d}"


class Ticket(models.Model):
    """A customer request moving through the review lifecycle."""

    UNDER_REVIEW = lifecycle.UNDER_REVIEW
    IN_PROGRESS = lifecycle.IN_PROGRESS
    RESOLVED = lifecycle.RESOLVED
    CLOSED = lifecycle.CLOSED
    REJECTED = lifecycle.REJECTED

    STATUS_CHOICES = lifecycle.STATUS_CHOICES

    company = models.ForeignKey("accounts.Company", related_name="tickets", on_delete=models.CASCADE)
    customer = models.ForeignKey("accounts.Customer", related_name="tickets", on_delete=models.PROTECT)
    ticket_type = models.ForeignKey("catalog.TicketType", related_name="tickets", on_delete=models.PROTECT)
    category = models.ForeignKey("catalog.TicketCategory", related_name="tickets", on_delete=models.PROTECT)
    category_module = models.ForeignKey(
        "catalog.TicketCategoryModule",
        related_name="tickets",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, related_name="created_tickets", on_delete=models.PROTECT
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="assigned_tickets",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )

    ticket_number = models.CharField(max_length=32, editable=False)
    title = models.CharField(max_length=200)
    description = models.TextField(max_length=2000, blank=True)
    form_data = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=UNDER_REVIEW)
    resolution = models.TextField(max_length=2000, blank=True)
    customer_rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )
    customer_feedback = models.TextField(blank=True)

    submitted_at = models.DateTimeField(default=timezone.now)
    approved_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    due_date = models.DateTimeField(null=True, blank=True)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tickets"
        ordering = ["-created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "ticket_number"], name="unique_ticket_number_per_company"
            ),
        ]
        indexes = [
            models.Index(fields=["company", "status"], name="tickets_company_status_idx"),
            models.Index(fields=["company", "customer"], name="tickets_company_customer_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.ticket_number} {self.title} ({self.status})"

    # Derived state

    @property
    def status_label(self) -> str:
        return lifecycle.status_label(self.status)

    @property
    def status_color(self) -> str:
        return lifecycle.STATUS_COLORS.get(self.status, "#6b7280")

    @property
    def is_open(self) -> bool:
        return lifecycle.is_open(self.status)

    @property
    def can_take_action(self) -> bool:
        return self.status in lifecycle.ACTIONABLE

    @property
    def available_actions(self) -> List[str]:
        return lifecycle.available_actions(self.status)

    @property
    def time_to_resolve(self) -> Optional[timedelta]:
        if self.resolved_at is None or self.submitted_at is None:
            return None
        return self.resolved_at - self.submitted_at

    @property
    def is_overdue(self) -> bool:
        return self.due_date is not None and self.due_date < timezone.now() and self.is_open

    # Lifecycle operations. Each checks its guard before touching any field.

    def approve(self, actor_id: int, comment: Optional[str] = None) -> None:
        lifecycle.assert_transition(self.status, self.IN_PROGRESS, "approve")
        with transaction.atomic():
            previous = self._move_to(self.IN_PROGRESS)
            self.approved_at = timezone.now()
            self.assigned_to_id = actor_id
            self.save(update_fields=["status", "approved_at", "assigned_to", "updated_at"])
            self._record_status_change(previous, actor_id)
            if comment and comment.strip():
                self._append_comment(comment, actor_id, internal=True)

    def reject(self, actor_id: int, reason: str) -> None:
        if not reason or not reason.strip():
            raise InvalidArgument("A reason is required to reject a ticket.")
        lifecycle.assert_transition(self.status, self.REJECTED, "reject")
        with transaction.atomic():
            previous = self._move_to(self.REJECTED)
            now = timezone.now()
            self.rejected_at = now
            self.resolved_at = now
            self.resolution = reason.strip()
            self.save(update_fields=["status", "rejected_at", "resolved_at", "resolution", "updated_at"])
            self._record_status_change(previous, actor_id)
            self._append_comment(f"Ticket rejected: {reason.strip()}", actor_id, internal=False)

    def resolve(self, actor_id: int, comment: Optional[str] = None) -> None:
        lifecycle.assert_transition(self.status, self.RESOLVED, "resolve")
        with transaction.atomic():
            previous = self._move_to(self.RESOLVED)
            now = timezone.now()
            self.completed_at = now
            self.resolved_at = now
            fields = ["status", "completed_at", "resolved_at", "updated_at"]
            if comment and comment.strip():
                self.resolution = comment.strip()
                fields.append("resolution")
            self.save(update_fields=fields)
            self._record_status_change(previous, actor_id)
            if comment and comment.strip():
                self._append_comment(comment, actor_id, internal=False)

    def close(self, actor_id: int, comment: Optional[str] = None) -> None:
        lifecycle.assert_transition(self.status, self.CLOSED, "close")
        with transaction.atomic():
            previous = self._move_to(self.CLOSED)
            self.closed_at = timezone.now()
            self.save(update_fields=["status", "closed_at", "updated_at"])
            self._record_status_change(previous, actor_id)
            if comment and comment.strip():
                self._append_comment(comment, actor_id, internal=False)

    def add_comment(self, content: str, actor_id: int, internal: bool = False) -> "TicketComment":
        if not content or not content.strip():
            raise InvalidArgument("Comment content cannot be empty.")
        with transaction.atomic():
            comment = self._append_comment(content, actor_id, internal=internal)
            TicketHistory.objects.create(
                ticket=self,
                actor_id=actor_id,
                action=TicketHistory.COMMENT_ADDED,
                new_value=TicketHistory.INTERNAL if internal else TicketHistory.PUBLIC,
                description="Internal comment added" if internal else "Comment added",
            )
        return comment

    def add_system_comment(self, content: str, actor_id: Optional[int]) -> "TicketComment":
        """Internal note written by the system, outside the audit trail."""

        return TicketComment.objects.create(
            ticket=self,
            author_id=actor_id,
            content=content,
            is_internal=True,
            is_system_generated=True,
        )

    def rate(self, actor_id: int, rating: int, feedback: str = "") -> None:
        if self.status not in {self.RESOLVED, self.CLOSED}:
            raise InvalidTransition("Only resolved or closed tickets can be rated.")
        if not 1 <= rating <= 5:
            raise InvalidArgument("Rating must be between 1 and 5.")
        with transaction.atomic():
            previous = self.customer_rating
            self.customer_rating = rating
            self.customer_feedback = feedback.strip()
            self.save(update_fields=["customer_rating", "customer_feedback", "updated_at"])
            TicketHistory.objects.create(
                ticket=self,
                actor_id=actor_id,
                action=TicketHistory.RATED,
                old_value=str(previous) if previous is not None else "",
                new_value=str(rating),
                description=f"Customer rated the ticket {rating}/5",
            )

    def record_created(self, actor_id: int) -> "TicketHistory":
        return TicketHistory.objects.create(
            ticket=self,
            actor_id=actor_id,
            action=TicketHistory.CREATED,
            new_value=self.status,
            description=f"Ticket {self.ticket_number} created",
        )

    def record_attachment(self, attachment: "TicketAttachment", actor_id: int) -> "TicketHistory":
        return TicketHistory.objects.create(
            ticket=self,
            actor_id=actor_id,
            action=TicketHistory.ATTACHMENT_ADDED,
            new_value=attachment.original_name,
            description=f"Attached {attachment.original_name}",
        )

    def _move_to(self, target: str) -> str:
        previous = self.status
        self.status = target
        return previous

    def _record_status_change(self, previous: str, actor_id: int) -> "TicketHistory":
        return TicketHistory.objects.create(
            ticket=self,
            actor_id=actor_id,
            action=TicketHistory.STATUS_CHANGED,
            old_value=previous,
            new_value=self.status,
            description=(
                f"Status changed from {lifecycle.status_label(previous)} "
                f"to {lifecycle.status_label(self.status)}"
            ),
        )

    def _append_comment(self, content: str, actor_id: int, internal: bool) -> "TicketComment":
        return TicketComment.objects.create(
            ticket=self,
            author_id=actor_id,
            content=content.strip(),
            is_internal=internal,
        )


class TicketComment(models.Model):
    ticket = models.ForeignKey(Ticket, related_name="comments", on_delete=models.CASCADE)
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="ticket_comments",
        on_delete=models.SET_NULL,
        null=True,
    )
    content = models.TextField()
    is_internal = models.BooleanField(default=False)
    is_system_generated = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "ticket_comments"
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"Comment {self.pk} on {self.ticket_id}"


class TicketHistory(models.Model):
    """Append-only audit entry for a ticket."""

    CREATED = "Created"
    STATUS_CHANGED = "StatusChanged"
    COMMENT_ADDED = "CommentAdded"
    ATTACHMENT_ADDED = "AttachmentAdded"
    RATED = "Rated"

    INTERNAL = "internal"
    PUBLIC = "public"

    ticket = models.ForeignKey(Ticket, related_name="history", on_delete=models.CASCADE)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="ticket_history",
        on_delete=models.SET_NULL,
        null=True,
    )
    action = models.CharField(max_length=50)
    old_value = models.CharField(max_length=255, blank=True)
    new_value = models.CharField(max_length=255, blank=True)
    description = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "ticket_history"
        ordering = ["created_at", "id"]
        verbose_name_plural = "ticket history"

    def __str__(self) -> str:
        return f"{self.action} on {self.ticket_id}"


def _attachment_path(instance: "TicketAttachment", filename: str) -> str:
    extension = os.path.splitext(filename)[1].lower()
    return f"tickets/{instance.ticket.company_id}/{instance.ticket_id}/{uuid.uuid4().hex}{extension}"


class TicketAttachment(models.Model):
    ticket = models.ForeignKey(Ticket, related_name="attachments", on_delete=models.CASCADE)
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="ticket_attachments",
        on_delete=models.SET_NULL,
        null=True,
    )
    file = models.FileField(upload_to=_attachment_path, max_length=500)
    original_name = models.CharField(max_length=255)
    content_type = models.CharField(max_length=100, blank=True)
    size = models.PositiveBigIntegerField(default=0)
    sha256 = models.CharField(max_length=64)
    is_image = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return self.original_name


class PmoSyncRequest(models.Model):
    """Outbox row for forwarding an approved ticket to the PMO system."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (PROCESSING, "Processing"),
        (COMPLETED, "Completed"),
        (FAILED, "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    ticket = models.ForeignKey(Ticket, related_name="pmo_syncs", on_delete=models.CASCADE)
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="pmo_sync_requests",
        on_delete=models.SET_NULL,
        null=True,
    )
    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=PENDING)
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="pmo_sync_status_idx"),
        ]

    def mark_processing(self) -> None:
        self.status = self.PROCESSING
        self.attempts += 1
        self.save(update_fields=["status", "attempts", "updated_at"])

    def mark_pending(self, message: str) -> None:
        self.status = self.PENDING
        self.last_error = message
        self.save(update_fields=["status", "last_error", "updated_at"])

    def mark_completed(self) -> None:
        self.status = self.COMPLETED
        self.completed_at = timezone.now()
        self.last_error = ""
        self.save(update_fields=["status", "completed_at", "last_error", "updated_at"])

    def mark_failed(self, message: str) -> None:
        self.status = self.FAILED
        self.last_error = message
        self.completed_at = timezone.now()
        self.save(update_fields=["status", "last_error", "completed_at", "updated_at"])
