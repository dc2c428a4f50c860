"""API tests for ticket endpoints, the dashboard and PMO sync metrics."""
from __future__ import annotations

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from accounts.context import RequestContext
from tickets.commands import AddAttachment
from tickets.handlers import dispatch
from tickets.models import PmoSyncRequest, Ticket, TicketHistory

from .fixtures import HelpdeskFixtures


class TicketApiTests(HelpdeskFixtures, TestCase):
    def setUp(self) -> None:
        self.tenant = self.build_tenant()
        self.client = APIClient()

    def _payload(self, **overrides):
        payload = {
            "title": "Printer offline",
            "description": "Third floor printer shows offline.",
            "ticket_type_id": self.tenant.ticket_type.pk,
            "category_id": self.tenant.category.pk,
            "form_data": {"system": "ERP"},
        }
        payload.update(overrides)
        return payload

    def test_requires_authentication(self) -> None:
        response = self.client.get(reverse("ticket-list"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        body = response.json()
        self.assertFalse(body["succeeded"])
        self.assertEqual(len(body["errors"]), 1)

    def test_customer_creates_ticket(self) -> None:
        self.client.force_authenticate(user=self.tenant.requester)
        response = self.client.post(reverse("ticket-list"), self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()
        self.assertTrue(body["succeeded"])
        self.assertEqual(body["errors"], [])
        data = body["data"]
        self.assertEqual(data["status"], Ticket.UNDER_REVIEW)
        self.assertEqual(data["status_label"], "Under Review")
        self.assertEqual(data["available_actions"], ["Approve", "Reject"])
        self.assertEqual(data["customer_id"], self.tenant.customer.pk)
        self.assertEqual(data["form_data"], {"system": "ERP"})
        self.assertEqual([entry["action"] for entry in data["history"]], [TicketHistory.CREATED])

    def test_create_validation_errors_use_envelope(self) -> None:
        self.client.force_authenticate(user=self.tenant.requester)
        response = self.client.post(reverse("ticket-list"), {"title": ""}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        body = response.json()
        self.assertFalse(body["succeeded"])
        self.assertIsNone(body["data"])
        self.assertTrue(any(error.startswith("ticket_type_id:") for error in body["errors"]))

    def test_create_with_invalid_form_data(self) -> None:
        self.client.force_authenticate(user=self.tenant.requester)
        response = self.client.post(
            reverse("ticket-list"), self._payload(form_data={}), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["errors"], ["System is required."])

    def test_preview_does_not_create(self) -> None:
        self.client.force_authenticate(user=self.tenant.requester)
        response = self.client.post(reverse("ticket-preview"), self._payload(), format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["title"], "Printer offline")
        self.assertFalse(Ticket.objects.exists())

    def test_list_is_scoped_to_customer(self) -> None:
        own = self.make_ticket(self.tenant)
        self.make_ticket(self.tenant, customer=self.tenant.other_customer)
        other_tenant = self.build_tenant("Globex")
        self.make_ticket(other_tenant)

        self.client.force_authenticate(user=self.tenant.requester)
        data = self.client.get(reverse("ticket-list")).json()["data"]
        self.assertEqual(data["total"], 1)
        self.assertEqual(data["items"][0]["id"], own.pk)

        self.client.force_authenticate(user=self.tenant.admin)
        data = self.client.get(reverse("ticket-list")).json()["data"]
        self.assertEqual(data["total"], 2)

    def test_list_filters_sorts_and_paginates(self) -> None:
        first = self.make_ticket(self.tenant, title="Alpha outage")
        second = self.make_ticket(self.tenant, title="Beta request", status=Ticket.IN_PROGRESS)
        self.make_ticket(self.tenant, title="Gamma question", status=Ticket.CLOSED)
        self.client.force_authenticate(user=self.tenant.admin)
        url = reverse("ticket-list")

        data = self.client.get(url, {"status": Ticket.IN_PROGRESS}).json()["data"]
        self.assertEqual([item["id"] for item in data["items"]], [second.pk])

        data = self.client.get(url, {"search": "alpha"}).json()["data"]
        self.assertEqual([item["id"] for item in data["items"]], [first.pk])

        data = self.client.get(url, {"assigned_to": self.tenant.admin.pk}).json()["data"]
        self.assertEqual(data["total"], 2)

        data = self.client.get(
            url, {"sort_by": "title", "sort_direction": "asc", "page": 2, "page_size": 2}
        ).json()["data"]
        self.assertEqual(data["total"], 3)
        self.assertEqual(data["total_pages"], 2)
        self.assertEqual([item["title"] for item in data["items"]], ["Gamma question"])

    def test_list_rejects_unknown_sort(self) -> None:
        self.client.force_authenticate(user=self.tenant.admin)
        response = self.client.get(reverse("ticket-list"), {"sort_by": "password"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["errors"], ["Cannot sort by password."])

    def test_detail_hides_internal_comments_from_customers(self) -> None:
        ticket = self.make_ticket(self.tenant)
        ticket.add_comment("Check the AD group", self.tenant.admin.pk, internal=True)
        ticket.add_comment("We are on it", self.tenant.admin.pk)
        url = reverse("ticket-detail", args=[ticket.pk])

        self.client.force_authenticate(user=self.tenant.requester)
        data = self.client.get(url).json()["data"]
        self.assertEqual([comment["content"] for comment in data["comments"]], ["We are on it"])
        self.assertEqual([entry["new_value"] for entry in data["history"]], [TicketHistory.PUBLIC])

        self.client.force_authenticate(user=self.tenant.admin)
        data = self.client.get(url).json()["data"]
        self.assertEqual(len(data["comments"]), 2)
        self.assertEqual(len(data["history"]), 2)

    def test_detail_of_other_company_ticket_is_not_found(self) -> None:
        other_tenant = self.build_tenant("Globex")
        ticket = self.make_ticket(other_tenant)
        self.client.force_authenticate(user=self.tenant.admin)
        response = self.client.get(reverse("ticket-detail", args=[ticket.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.json()["errors"], ["Ticket not found."])

    def test_admin_walks_ticket_through_lifecycle(self) -> None:
        ticket = self.make_ticket(self.tenant)
        self.client.force_authenticate(user=self.tenant.admin)

        response = self.client.post(reverse("ticket-approve", args=[ticket.pk]), {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["status"], Ticket.IN_PROGRESS)

        response = self.client.post(
            reverse("ticket-resolve", args=[ticket.pk]), {"comment": "fixed"}, format="json"
        )
        self.assertEqual(response.json()["data"]["resolution"], "fixed")

        response = self.client.post(reverse("ticket-close", args=[ticket.pk]), {}, format="json")
        data = response.json()["data"]
        self.assertEqual(data["status"], Ticket.CLOSED)
        self.assertFalse(data["can_take_action"])

    def test_invalid_transition_is_conflict(self) -> None:
        ticket = self.make_ticket(self.tenant)
        self.client.force_authenticate(user=self.tenant.admin)
        response = self.client.post(reverse("ticket-close", args=[ticket.pk]), {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.json()["errors"], ["Cannot close a ticket that is under review."])

    def test_reject_without_reason(self) -> None:
        ticket = self.make_ticket(self.tenant)
        self.client.force_authenticate(user=self.tenant.admin)
        response = self.client.post(reverse("ticket-reject", args=[ticket.pk]), {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status_endpoint(self) -> None:
        ticket = self.make_ticket(self.tenant)
        self.client.force_authenticate(user=self.tenant.admin)
        response = self.client.post(
            reverse("ticket-update-status", args=[ticket.pk]),
            {"status": Ticket.REJECTED, "comment": "Duplicate of an open ticket"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["status"], Ticket.REJECTED)

    def test_customer_cannot_approve(self) -> None:
        ticket = self.make_ticket(self.tenant)
        self.client.force_authenticate(user=self.tenant.requester)
        response = self.client.post(reverse("ticket-approve", args=[ticket.pk]), {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_comment_endpoint(self) -> None:
        ticket = self.make_ticket(self.tenant)
        self.client.force_authenticate(user=self.tenant.requester)
        response = self.client.post(
            reverse("ticket-comments", args=[ticket.pk]), {"content": "Still broken"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.json()["data"]
        self.assertEqual(data["content"], "Still broken")
        self.assertEqual(data["author"], "Rita Requester")

    def test_rate_endpoint(self) -> None:
        ticket = self.make_ticket(self.tenant, status=Ticket.RESOLVED)
        self.client.force_authenticate(user=self.tenant.requester)
        response = self.client.post(
            reverse("ticket-rate", args=[ticket.pk]), {"rating": 5, "feedback": "Thanks"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["customer_rating"], 5)

        response = self.client.post(reverse("ticket-rate", args=[ticket.pk]), {"rating": 9}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_approve_with_pmo_warning(self) -> None:
        ticket = self.make_ticket(self.tenant)
        self.client.force_authenticate(user=self.tenant.admin)
        response = self.client.post(
            reverse("ticket-approve", args=[ticket.pk]), {"send_to_pmo": True}, format="json"
        )
        body = response.json()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(body["succeeded"])
        self.assertEqual(len(body["warnings"]), 1)


class TicketAttachmentTests(HelpdeskFixtures, TestCase):
    def setUp(self) -> None:
        self.tenant = self.build_tenant()
        self.ticket = self.make_ticket(self.tenant)
        self.client = APIClient()
        self.client.force_authenticate(user=self.tenant.requester)
        self.url = reverse("ticket-attachments", args=[self.ticket.pk])

    def test_upload_is_stored_with_checksum(self) -> None:
        upload = SimpleUploadedFile("screenshot.png", b"\x89PNG fake image", content_type="image/png")
        response = self.client.post(self.url, {"file": upload}, format="multipart")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.json()["data"]
        self.assertEqual(data["original_name"], "screenshot.png")
        self.assertTrue(data["is_image"])
        self.assertEqual(len(data["sha256"]), 64)
        self.assertEqual(data["size"], len(b"\x89PNG fake image"))
        last = self.ticket.history.order_by("-id").first()
        self.assertEqual(last.action, TicketHistory.ATTACHMENT_ADDED)

    def test_long_file_name_fits_the_history_row(self) -> None:
        name = "a" * 230 + ".pdf"
        upload = SimpleUploadedFile(name, b"%PDF-1.4", content_type="application/pdf")
        response = self.client.post(self.url, {"file": upload}, format="multipart")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        row = self.ticket.history.get(action=TicketHistory.ATTACHMENT_ADDED)
        self.assertEqual(row.new_value, name)
        row.full_clean()

    def test_disallowed_extension(self) -> None:
        upload = SimpleUploadedFile("setup.exe", b"MZ", content_type="application/octet-stream")
        response = self.client.post(self.url, {"file": upload}, format="multipart")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(self.ticket.attachments.exists())

    def test_size_limit_follows_company_setting(self) -> None:
        self.tenant.company.max_file_size_mb = 1
        self.tenant.company.save()
        upload = SimpleUploadedFile("log.txt", b"x" * (1024 * 1024 + 1), content_type="text/plain")
        response = self.client.post(self.url, {"file": upload}, format="multipart")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["errors"], ["Files must not exceed 1 MB."])

    def test_attachments_can_be_disabled(self) -> None:
        self.tenant.company.allow_file_attachments = False
        self.tenant.company.save()
        upload = SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain")
        response = self.client.post(self.url, {"file": upload}, format="multipart")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_empty_file_is_refused(self) -> None:
        upload = SimpleUploadedFile("empty.txt", b"", content_type="text/plain")
        result = dispatch(
            AddAttachment(self.ticket.pk, upload), RequestContext.from_user(self.tenant.requester)
        )
        self.assertFalse(result.succeeded)
        self.assertEqual(result.errors, ("The uploaded file is empty.",))


class DashboardApiTests(HelpdeskFixtures, TestCase):
    def setUp(self) -> None:
        self.tenant = self.build_tenant()
        self.client = APIClient()
        self.make_ticket(self.tenant)
        self.make_ticket(self.tenant, status=Ticket.IN_PROGRESS)
        self.make_ticket(self.tenant, status=Ticket.CLOSED, customer=self.tenant.other_customer)

    def test_admin_dashboard(self) -> None:
        self.client.force_authenticate(user=self.tenant.admin)
        response = self.client.get(reverse("dashboard"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.json()["data"]
        self.assertEqual(data["total"], 3)
        self.assertEqual(data["active"], 2)
        self.assertEqual(data["closed"], 1)
        self.assertEqual(data["rejected"], 0)
        self.assertEqual(
            [entry["status"] for entry in data["by_status"]],
            [Ticket.UNDER_REVIEW, Ticket.IN_PROGRESS, Ticket.CLOSED],
        )
        self.assertEqual(data["by_type"][0]["count"], 3)
        self.assertEqual(sum(day["count"] for day in data["trend"]), 3)
        self.assertEqual(len(data["recent"]), 3)
        self.assertEqual(len(data["by_customer"]), 2)

    def test_customer_dashboard_is_scoped(self) -> None:
        self.client.force_authenticate(user=self.tenant.requester)
        data = self.client.get(reverse("dashboard")).json()["data"]
        self.assertEqual(data["total"], 2)
        self.assertNotIn("by_customer", data)


class PmoSyncMetricsTests(HelpdeskFixtures, TestCase):
    def setUp(self) -> None:
        self.tenant = self.build_tenant()
        self.client = APIClient()
        ticket = self.make_ticket(self.tenant, status=Ticket.IN_PROGRESS)
        PmoSyncRequest.objects.create(ticket=ticket)
        PmoSyncRequest.objects.create(ticket=ticket, status=PmoSyncRequest.FAILED, last_error="HTTP 500")
        other = self.build_tenant("Globex")
        PmoSyncRequest.objects.create(ticket=self.make_ticket(other, status=Ticket.IN_PROGRESS))

    def test_metrics_for_admin(self) -> None:
        self.client.force_authenticate(user=self.tenant.admin)
        response = self.client.get(reverse("ticket-pmo-sync-metrics"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.json()["data"]
        self.assertEqual(data["pending"], 1)
        self.assertEqual(data["failed"], 1)
        self.assertEqual(data["completed"], 0)
        self.assertGreaterEqual(data["oldest_pending_seconds"], 0)
        self.assertEqual(data["recent_failures"][0]["last_error"], "HTTP 500")

    def test_metrics_are_admin_only(self) -> None:
        self.client.force_authenticate(user=self.tenant.requester)
        response = self.client.get(reverse("ticket-pmo-sync-metrics"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(response.json()["succeeded"])
