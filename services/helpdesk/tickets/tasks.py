"""Background tasks for the helpdesk service."""
from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .models import PmoSyncRequest, Ticket
from .pmo import PmoForwarder

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=None, default_retry_delay=5)
def forward_ticket_to_pmo(self, sync_id: str) -> None:
    """Deliver one outbox row to the PMO endpoint, retrying with backoff."""

    try:
        with transaction.atomic():
            sync = PmoSyncRequest.objects.select_for_update().get(id=sync_id)
            if sync.status == PmoSyncRequest.COMPLETED:
                logger.info("PMO sync %s already completed", sync_id)
                return
            if sync.status == PmoSyncRequest.FAILED:
                logger.info("PMO sync %s already failed", sync_id)
                return
            if sync.status == PmoSyncRequest.PROCESSING:
                logger.info("PMO sync %s already processing", sync_id)
                return
            sync.mark_processing()
    except PmoSyncRequest.DoesNotExist:
        logger.warning("PMO sync %s does not exist", sync_id)
        return

    ticket = Ticket.objects.select_related(
        "company", "customer", "ticket_type", "category", "created_by"
    ).get(pk=sync.ticket_id)
    forwarder = PmoForwarder.for_company(ticket.company)
    if forwarder.forward(ticket):
        with transaction.atomic():
            sync.mark_completed()
            ticket.add_system_comment("Ticket forwarded to PMO.", sync.requested_by_id)
        logger.info("PMO sync %s for ticket %s completed", sync_id, ticket.ticket_number)
        return

    error = forwarder.last_error or "PMO forwarding failed"
    if sync.attempts >= settings.PMO_SYNC_MAX_RETRIES:
        with transaction.atomic():
            sync.mark_failed(error)
            ticket.add_system_comment(
                f"Forwarding to PMO failed after {sync.attempts} attempts: {error}",
                sync.requested_by_id,
            )
        logger.error(
            "PMO sync %s for ticket %s failed after %s attempts: %s",
            sync_id,
            ticket.ticket_number,
            sync.attempts,
            error,
        )
        return

    sync.mark_pending(error)
    logger.warning(
        "PMO sync %s attempt %s failed, retrying: %s", sync_id, sync.attempts, error
    )
    raise self.retry(countdown=min(300, 5 * 2 ** sync.attempts))


@shared_task
def requeue_stale_pmo_syncs() -> int:
    """Re-enqueue outbox rows a worker never picked up or abandoned."""

    cutoff = timezone.now() - timedelta(minutes=settings.PMO_SYNC_STALE_MINUTES)
    stale_processing = PmoSyncRequest.objects.filter(
        status=PmoSyncRequest.PROCESSING, updated_at__lt=cutoff
    )
    reset = stale_processing.update(status=PmoSyncRequest.PENDING)
    if reset:
        logger.warning("Reset %s abandoned PMO syncs to pending", reset)

    sync_ids = list(
        PmoSyncRequest.objects.filter(status=PmoSyncRequest.PENDING, updated_at__lt=cutoff)
        .values_list("id", flat=True)
    )
    for sync_id in sync_ids:
        forward_ticket_to_pmo.delay(str(sync_id))
    if sync_ids:
        logger.info("Re-enqueued %s stale PMO syncs", len(sync_ids))
    return len(sync_ids)
