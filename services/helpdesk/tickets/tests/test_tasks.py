"""Tests for PMO forwarding and its background tasks."""
from __future__ import annotations

from datetime import timedelta
from unittest import mock

import requests
from django.test import TestCase
from django.utils import timezone

from tickets.models import PmoSyncRequest, Ticket
from tickets.pmo import PmoForwarder
from tickets.tasks import forward_ticket_to_pmo, requeue_stale_pmo_syncs

from .fixtures import HelpdeskFixtures


class PmoForwarderTests(HelpdeskFixtures, TestCase):
    def setUp(self) -> None:
        self.tenant = self.build_tenant()
        self.ticket = self.make_ticket(self.tenant, status=Ticket.IN_PROGRESS)

    def test_payload_describes_ticket(self) -> None:
        payload = PmoForwarder.build_payload(self.ticket)
        self.assertEqual(payload["ticketNumber"], self.ticket.ticket_number)
        self.assertEqual(payload["type"], "Access Request")
        self.assertEqual(payload["category"], "Applications")
        self.assertEqual(payload["customer"], self.tenant.customer.name)
        self.assertEqual(payload["createdBy"], "Rita Requester")

    def test_missing_endpoint_fails_without_request(self) -> None:
        forwarder = PmoForwarder("")
        with mock.patch("tickets.pmo.requests.post") as post:
            self.assertFalse(forwarder.forward(self.ticket))
        post.assert_not_called()
        self.assertEqual(forwarder.last_error, "No PMO endpoint is configured.")

    def test_non_success_status_is_reported(self) -> None:
        forwarder = PmoForwarder("https://pmo.example.com/tickets", timeout=3)
        with mock.patch("tickets.pmo.requests.post") as post:
            post.return_value = mock.Mock(status_code=500)
            self.assertFalse(forwarder.forward(self.ticket))
        self.assertEqual(post.call_args.kwargs["timeout"], 3)
        self.assertNotIn("Authorization", post.call_args.kwargs["headers"])
        self.assertEqual(forwarder.last_error, "PMO endpoint responded with HTTP 500")

    def test_check_connection_uses_health_endpoint(self) -> None:
        forwarder = PmoForwarder("https://pmo.example.com/api/", "key")
        with mock.patch("tickets.pmo.requests.get") as get:
            get.return_value = mock.Mock(status_code=200)
            self.assertTrue(forwarder.check_connection())
        self.assertEqual(get.call_args.args[0], "https://pmo.example.com/api/health")

    def test_check_connection_reports_network_errors(self) -> None:
        forwarder = PmoForwarder("https://pmo.example.com/api")
        with mock.patch("tickets.pmo.requests.get", side_effect=requests.Timeout("slow")):
            self.assertFalse(forwarder.check_connection())
        self.assertIn("slow", forwarder.last_error)


class ForwardTicketTaskTests(HelpdeskFixtures, TestCase):
    def setUp(self) -> None:
        self.tenant = self.build_tenant()
        company = self.tenant.company
        company.requires_pmo_integration = True
        company.pmo_api_endpoint = "https://pmo.example.com/tickets"
        company.save()
        self.ticket = self.make_ticket(self.tenant, status=Ticket.IN_PROGRESS)

    def _sync(self, **values) -> PmoSyncRequest:
        return PmoSyncRequest.objects.create(ticket=self.ticket, requested_by=self.tenant.admin, **values)

    def test_pending_sync_is_completed(self) -> None:
        sync = self._sync()
        with mock.patch("tickets.pmo.requests.post") as post:
            post.return_value = mock.Mock(status_code=200)
            forward_ticket_to_pmo.delay(str(sync.id))

        sync.refresh_from_db()
        self.assertEqual(sync.status, PmoSyncRequest.COMPLETED)
        self.assertIsNotNone(sync.completed_at)
        self.assertEqual(sync.last_error, "")
        note = self.ticket.comments.get()
        self.assertEqual(note.content, "Ticket forwarded to PMO.")
        self.assertTrue(note.is_internal)
        self.assertTrue(note.is_system_generated)
        self.assertEqual(note.author_id, self.tenant.admin.pk)

    def test_finished_syncs_are_not_sent_again(self) -> None:
        for state in (PmoSyncRequest.COMPLETED, PmoSyncRequest.FAILED, PmoSyncRequest.PROCESSING):
            with self.subTest(state=state):
                sync = self._sync(status=state, attempts=1)
                with mock.patch("tickets.pmo.requests.post") as post:
                    forward_ticket_to_pmo.delay(str(sync.id))
                post.assert_not_called()
                sync.refresh_from_db()
                self.assertEqual(sync.status, state)
                self.assertEqual(sync.attempts, 1)

    def test_unknown_sync_is_ignored(self) -> None:
        with mock.patch("tickets.pmo.requests.post") as post:
            forward_ticket_to_pmo.delay("00000000-0000-0000-0000-000000000000")
        post.assert_not_called()

    def test_exhausted_retries_mark_failed_and_leave_a_note(self) -> None:
        sync = self._sync()
        with self.settings(PMO_SYNC_MAX_RETRIES=1), mock.patch("tickets.pmo.requests.post") as post:
            post.return_value = mock.Mock(status_code=503)
            forward_ticket_to_pmo.delay(str(sync.id))

        sync.refresh_from_db()
        self.assertEqual(sync.status, PmoSyncRequest.FAILED)
        self.assertEqual(sync.attempts, 1)
        self.assertEqual(sync.last_error, "PMO endpoint responded with HTTP 503")
        note = self.ticket.comments.get()
        self.assertTrue(note.is_internal)
        self.assertTrue(note.is_system_generated)
        self.assertEqual(note.author_id, self.tenant.admin.pk)
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.status, Ticket.IN_PROGRESS)

    def test_transient_failure_is_retried_until_success(self) -> None:
        sync = self._sync()
        with mock.patch("tickets.pmo.requests.post") as post:
            post.side_effect = [requests.ConnectionError("reset"), mock.Mock(status_code=202)]
            forward_ticket_to_pmo.delay(str(sync.id))

        self.assertEqual(post.call_count, 2)
        sync.refresh_from_db()
        self.assertEqual(sync.status, PmoSyncRequest.COMPLETED)
        self.assertEqual(sync.attempts, 2)
        self.assertEqual(
            list(self.ticket.comments.values_list("content", flat=True)), ["Ticket forwarded to PMO."]
        )


class RequeueStaleSyncTests(HelpdeskFixtures, TestCase):
    def setUp(self) -> None:
        self.tenant = self.build_tenant()
        self.ticket = self.make_ticket(self.tenant, status=Ticket.IN_PROGRESS)

    def _sync(self, state: str, age_minutes: int) -> PmoSyncRequest:
        sync = PmoSyncRequest.objects.create(ticket=self.ticket, status=state)
        PmoSyncRequest.objects.filter(pk=sync.pk).update(
            updated_at=timezone.now() - timedelta(minutes=age_minutes)
        )
        return sync

    def test_stale_rows_are_requeued(self) -> None:
        abandoned = self._sync(PmoSyncRequest.PROCESSING, 60)
        waiting = self._sync(PmoSyncRequest.PENDING, 60)
        fresh = self._sync(PmoSyncRequest.PENDING, 1)
        done = self._sync(PmoSyncRequest.COMPLETED, 60)

        with self.settings(PMO_SYNC_STALE_MINUTES=15), mock.patch(
            "tickets.tasks.forward_ticket_to_pmo.delay"
        ) as delay:
            count = requeue_stale_pmo_syncs()

        self.assertEqual(count, 2)
        queued = {call.args[0] for call in delay.call_args_list}
        self.assertEqual(queued, {str(abandoned.id), str(waiting.id)})
        abandoned.refresh_from_db()
        self.assertEqual(abandoned.status, PmoSyncRequest.PENDING)
        fresh.refresh_from_db()
        done.refresh_from_db()
        self.assertEqual(fresh.status, PmoSyncRequest.PENDING)
        self.assertEqual(done.status, PmoSyncRequest.COMPLETED)
