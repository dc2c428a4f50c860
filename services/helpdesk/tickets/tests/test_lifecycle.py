"""Tests for the ticket lifecycle operations on the model."""
from __future__ import annotations

from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from helpdesk_service.errors import InvalidArgument, InvalidTransition
from tickets.models import Ticket, TicketComment, TicketHistory, TicketNumberSequence

from .fixtures import HelpdeskFixtures

ALL_STATUSES = [value for value, _ in Ticket.STATUS_CHOICES]


class TicketLifecycleTests(HelpdeskFixtures, TestCase):
    def setUp(self) -> None:
        self.tenant = self.build_tenant()
        self.admin = self.tenant.admin

    def _snapshot(self, ticket: Ticket):
        ticket.refresh_from_db()
        return (
            ticket.status,
            ticket.approved_at,
            ticket.resolved_at,
            ticket.closed_at,
            ticket.rejected_at,
            ticket.resolution,
            ticket.assigned_to_id,
            ticket.history.count(),
            ticket.comments.count(),
        )

    def test_new_ticket_is_under_review(self) -> None:
        ticket = self.make_ticket(self.tenant)
        self.assertEqual(ticket.status, Ticket.UNDER_REVIEW)
        self.assertEqual(ticket.available_actions, ["Approve", "Reject"])
        self.assertTrue(ticket.is_open)
        self.assertTrue(ticket.can_take_action)

    def test_approve_assigns_actor_and_records_one_history_row(self) -> None:
        ticket = self.make_ticket(self.tenant)
        ticket.approve(self.admin.pk)

        ticket.refresh_from_db()
        self.assertEqual(ticket.status, Ticket.IN_PROGRESS)
        self.assertEqual(ticket.assigned_to_id, self.admin.pk)
        self.assertIsNotNone(ticket.approved_at)
        history = list(ticket.history.all())
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].action, TicketHistory.STATUS_CHANGED)
        self.assertEqual(history[0].old_value, Ticket.UNDER_REVIEW)
        self.assertEqual(history[0].new_value, Ticket.IN_PROGRESS)
        self.assertEqual(history[0].actor_id, self.admin.pk)
        self.assertEqual(ticket.available_actions, ["Resolve", "Reject"])

    def test_approve_comment_is_internal_and_adds_no_extra_history(self) -> None:
        ticket = self.make_ticket(self.tenant)
        ticket.approve(self.admin.pk, "Routing to the ERP team")

        comment = ticket.comments.get()
        self.assertTrue(comment.is_internal)
        self.assertEqual(comment.author_id, self.admin.pk)
        self.assertEqual(ticket.history.count(), 1)

    def test_approve_outside_under_review_changes_nothing(self) -> None:
        for status in ALL_STATUSES:
            if status == Ticket.UNDER_REVIEW:
                continue
            with self.subTest(status=status):
                ticket = self.make_ticket(self.tenant, status=status)
                before = self._snapshot(ticket)
                with self.assertRaises(InvalidTransition):
                    ticket.approve(self.admin.pk, "again")
                self.assertEqual(self._snapshot(ticket), before)

    def test_reject_with_blank_reason_fails_in_every_status(self) -> None:
        for status in ALL_STATUSES:
            for reason in ("", "   "):
                with self.subTest(status=status, reason=reason):
                    ticket = self.make_ticket(self.tenant, status=status)
                    before = self._snapshot(ticket)
                    with self.assertRaises(InvalidArgument):
                        ticket.reject(self.admin.pk, reason)
                    self.assertEqual(self._snapshot(ticket), before)

    def test_reject_from_open_statuses(self) -> None:
        for status in (Ticket.UNDER_REVIEW, Ticket.IN_PROGRESS):
            with self.subTest(status=status):
                ticket = self.make_ticket(self.tenant, status=status)
                history_before = ticket.history.count()
                ticket.reject(self.admin.pk, "Out of support scope")

                ticket.refresh_from_db()
                self.assertEqual(ticket.status, Ticket.REJECTED)
                self.assertEqual(ticket.resolution, "Out of support scope")
                self.assertIsNotNone(ticket.rejected_at)
                self.assertEqual(ticket.rejected_at, ticket.resolved_at)
                self.assertEqual(ticket.history.count(), history_before + 1)
                comment = ticket.comments.order_by("-id").first()
                self.assertFalse(comment.is_internal)
                self.assertIn("Out of support scope", comment.content)

    def test_reject_from_resolved_is_invalid_transition(self) -> None:
        ticket = self.make_ticket(self.tenant, status=Ticket.RESOLVED)
        with self.assertRaises(InvalidTransition):
            ticket.reject(self.admin.pk, "Too late")

    def test_resolve_stores_resolution_and_public_comment(self) -> None:
        ticket = self.make_ticket(self.tenant, status=Ticket.IN_PROGRESS)
        comments_before = ticket.comments.count()
        ticket.resolve(self.admin.pk, "fixed")

        ticket.refresh_from_db()
        self.assertEqual(ticket.status, Ticket.RESOLVED)
        self.assertEqual(ticket.resolution, "fixed")
        self.assertIsNotNone(ticket.resolved_at)
        self.assertIsNotNone(ticket.completed_at)
        self.assertEqual(ticket.comments.count(), comments_before + 1)
        self.assertFalse(ticket.comments.order_by("-id").first().is_internal)
        last = ticket.history.order_by("-id").first()
        self.assertEqual((last.old_value, last.new_value), (Ticket.IN_PROGRESS, Ticket.RESOLVED))

    def test_resolve_without_comment_keeps_resolution_empty(self) -> None:
        ticket = self.make_ticket(self.tenant, status=Ticket.IN_PROGRESS)
        ticket.resolve(self.admin.pk)
        ticket.refresh_from_db()
        self.assertEqual(ticket.resolution, "")
        self.assertEqual(ticket.available_actions, ["Close"])

    def test_close_from_under_review_changes_nothing(self) -> None:
        ticket = self.make_ticket(self.tenant)
        before = self._snapshot(ticket)
        with self.assertRaises(InvalidTransition):
            ticket.close(self.admin.pk, "done")
        self.assertEqual(self._snapshot(ticket), before)

    def test_close_resolved_ticket(self) -> None:
        ticket = self.make_ticket(self.tenant, status=Ticket.RESOLVED)
        ticket.close(self.admin.pk, "Confirmed with customer")
        ticket.refresh_from_db()
        self.assertEqual(ticket.status, Ticket.CLOSED)
        self.assertIsNotNone(ticket.closed_at)
        self.assertEqual(ticket.available_actions, [])
        self.assertFalse(ticket.can_take_action)

    def test_is_open_is_false_only_for_terminal_statuses(self) -> None:
        for status in ALL_STATUSES:
            with self.subTest(status=status):
                ticket = self.make_ticket(self.tenant, status=status)
                self.assertEqual(ticket.is_open, status not in {Ticket.CLOSED, Ticket.REJECTED})

    def test_every_transition_appends_exactly_one_status_row(self) -> None:
        ticket = self.make_ticket(self.tenant, status=Ticket.CLOSED)
        rows = list(
            ticket.history.filter(action=TicketHistory.STATUS_CHANGED).values_list("old_value", "new_value")
        )
        self.assertEqual(
            rows,
            [
                (Ticket.UNDER_REVIEW, Ticket.IN_PROGRESS),
                (Ticket.IN_PROGRESS, Ticket.RESOLVED),
                (Ticket.RESOLVED, Ticket.CLOSED),
            ],
        )

    def test_add_comment_rejects_blank_content(self) -> None:
        ticket = self.make_ticket(self.tenant)
        with self.assertRaises(InvalidArgument):
            ticket.add_comment("  ", self.admin.pk)
        self.assertEqual(TicketComment.objects.count(), 0)

    def test_terminal_tickets_remain_commentable(self) -> None:
        ticket = self.make_ticket(self.tenant, status=Ticket.REJECTED)
        comment = ticket.add_comment("Please reopen", self.tenant.requester.pk)
        self.assertFalse(comment.is_internal)
        last = ticket.history.order_by("-id").first()
        self.assertEqual(last.action, TicketHistory.COMMENT_ADDED)
        ticket.refresh_from_db()
        self.assertEqual(ticket.status, Ticket.REJECTED)

    def test_time_to_resolve_and_overdue(self) -> None:
        ticket = self.make_ticket(self.tenant, due_date=timezone.now() - timedelta(days=1))
        self.assertIsNone(ticket.time_to_resolve)
        self.assertTrue(ticket.is_overdue)

        self.advance(ticket, self.admin, Ticket.RESOLVED)
        self.assertIsNotNone(ticket.time_to_resolve)
        self.assertGreaterEqual(ticket.time_to_resolve, timedelta(0))
        self.assertTrue(ticket.is_overdue)

        ticket.close(self.admin.pk)
        self.assertFalse(ticket.is_overdue)

    def test_rating_requires_resolved_ticket(self) -> None:
        ticket = self.make_ticket(self.tenant, status=Ticket.IN_PROGRESS)
        with self.assertRaises(InvalidTransition):
            ticket.rate(self.tenant.requester.pk, 5)

        ticket.resolve(self.admin.pk)
        with self.assertRaises(InvalidArgument):
            ticket.rate(self.tenant.requester.pk, 6)
        ticket.rate(self.tenant.requester.pk, 4, "Quick turnaround")
        ticket.refresh_from_db()
        self.assertEqual(ticket.customer_rating, 4)
        self.assertEqual(ticket.customer_feedback, "Quick turnaround")


class TicketNumberSequenceTests(HelpdeskFixtures, TestCase):
    def test_numbers_are_sequential_per_company_and_month(self) -> None:
        first = self.build_tenant("First Co")
        second = self.build_tenant("Second Co")
        moment = timezone.now()
        period = timezone.localtime(moment).strftime("%Y%m")

        self.assertEqual(TicketNumberSequence.next_number(first.company.id, moment), f"TKT-{period}-0001")
        self.assertEqual(TicketNumberSequence.next_number(first.company.id, moment), f"TKT-{period}-0002")
        self.assertEqual(TicketNumberSequence.next_number(second.company.id, moment), f"TKT-{period}-0001")

        next_month = moment + timedelta(days=32)
        next_period = timezone.localtime(next_month).strftime("%Y%m")
        self.assertEqual(
            TicketNumberSequence.next_number(first.company.id, next_month), f"TKT-{next_period}-0001"
        )
