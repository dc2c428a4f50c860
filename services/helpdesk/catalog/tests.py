"""Tests for the ticket type and category catalog."""
from __future__ import annotations

from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from helpdesk_service.errors import InvalidArgument
from tickets.tests.fixtures import HelpdeskFixtures

from .form_schema import describe_form_data, validate_form_data
from .models import TicketCategory, TicketCategoryModule, TicketFormField, TicketType


class TicketTypeApiTests(HelpdeskFixtures, TestCase):
    def setUp(self) -> None:
        self.tenant = self.build_tenant()
        self.client = APIClient()
        self.client.force_authenticate(user=self.tenant.admin)

    def test_create_type_with_fields(self) -> None:
        payload = {
            "name": "Hardware Request",
            "color": "#10b981",
            "fields": [
                {"name": "device", "label": "Device", "field_type": "select", "options": ["Laptop", "Monitor"], "required": True},
                {"name": "justification", "label": "Justification", "field_type": "textarea", "max_length": 500},
            ],
        }
        response = self.client.post(reverse("ticket-type-list"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        ticket_type = TicketType.objects.get(name="Hardware Request")
        self.assertEqual(ticket_type.company_id, self.tenant.company.pk)
        self.assertEqual(
            list(ticket_type.fields.values_list("name", "order")),
            [("device", 0), ("justification", 1)],
        )

    def test_choice_fields_need_options(self) -> None:
        payload = {
            "name": "Broken",
            "fields": [{"name": "kind", "label": "Kind", "field_type": "radio"}],
        }
        response = self.client.post(reverse("ticket-type-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.json()["succeeded"])

    def test_names_are_unique_per_company(self) -> None:
        response = self.client.post(reverse("ticket-type-list"), {"name": "access request"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.client.force_authenticate(user=self.build_tenant("Globex").admin)
        response = self.client.post(reverse("ticket-type-list"), {"name": "Brand New"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_invalid_color(self) -> None:
        response = self.client.post(
            reverse("ticket-type-list"), {"name": "Colorful", "color": "blue"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_replaces_fields(self) -> None:
        url = reverse("ticket-type-detail", args=[self.tenant.ticket_type.pk])
        payload = {"fields": [{"name": "reason", "label": "Reason", "field_type": "text"}]}
        response = self.client.patch(url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([field["name"] for field in response.json()["fields"]], ["reason"])

    def test_customers_see_only_active_types(self) -> None:
        TicketType.objects.create(company=self.tenant.company, name="Retired", is_active=False)
        self.client.force_authenticate(user=self.tenant.requester)

        response = self.client.get(reverse("ticket-type-list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item["name"] for item in response.json()], ["Access Request"])

        response = self.client.post(reverse("ticket-type-list"), {"name": "Sneaky"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_can_filter_by_active(self) -> None:
        TicketType.objects.create(company=self.tenant.company, name="Retired", is_active=False)
        response = self.client.get(reverse("ticket-type-list"), {"active": "false"})
        self.assertEqual([item["name"] for item in response.json()], ["Retired"])

    def test_toggle_active(self) -> None:
        url = reverse("ticket-type-toggle-active", args=[self.tenant.ticket_type.pk])
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.json()["is_active"])
        self.tenant.ticket_type.refresh_from_db()
        self.assertFalse(self.tenant.ticket_type.is_active)

    def test_types_in_use_cannot_be_deleted(self) -> None:
        self.make_ticket(self.tenant)
        url = reverse("ticket-type-detail", args=[self.tenant.ticket_type.pk])
        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(TicketType.objects.filter(pk=self.tenant.ticket_type.pk).exists())

    def test_unused_type_can_be_deleted(self) -> None:
        ticket_type = TicketType.objects.create(company=self.tenant.company, name="Spare")
        response = self.client.delete(reverse("ticket-type-detail", args=[ticket_type.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_other_company_types_are_hidden(self) -> None:
        other = self.build_tenant("Globex")
        response = self.client.get(reverse("ticket-type-detail", args=[other.ticket_type.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class TicketCategoryApiTests(HelpdeskFixtures, TestCase):
    def setUp(self) -> None:
        self.tenant = self.build_tenant()
        self.client = APIClient()
        self.client.force_authenticate(user=self.tenant.admin)

    def test_create_category_with_modules(self) -> None:
        payload = {"name": "Network", "modules": [{"name": "VPN"}, {"name": "Wi-Fi"}]}
        response = self.client.post(reverse("category-list"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        category = TicketCategory.objects.get(name="Network")
        self.assertEqual(sorted(category.modules.values_list("name", flat=True)), ["VPN", "Wi-Fi"])

    def test_update_keeps_existing_module_ids(self) -> None:
        module = self.tenant.module
        url = reverse("category-detail", args=[self.tenant.category.pk])
        payload = {"modules": [{"id": module.pk, "name": "Finance & Payroll"}, {"name": "HR"}]}
        response = self.client.patch(url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        module.refresh_from_db()
        self.assertEqual(module.name, "Finance & Payroll")
        self.assertEqual(self.tenant.category.modules.count(), 2)

    def test_update_removes_missing_modules(self) -> None:
        url = reverse("category-detail", args=[self.tenant.category.pk])
        response = self.client.patch(url, {"modules": [{"name": "Sales"}]}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(TicketCategoryModule.objects.filter(pk=self.tenant.module.pk).exists())

    def test_categories_in_use_cannot_be_deleted(self) -> None:
        self.make_ticket(self.tenant)
        response = self.client.delete(reverse("category-detail", args=[self.tenant.category.pk]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(
            response.json()["errors"], ["Applications is used by existing tickets; deactivate it instead."]
        )


class FormSchemaTests(SimpleTestCase):
    def _field(self, name: str, field_type: str, **values) -> TicketFormField:
        values.setdefault("label", name.title())
        return TicketFormField(name=name, field_type=field_type, **values)

    def _errors(self, fields, data):
        with self.assertRaises(InvalidArgument) as caught:
            validate_form_data(fields, data)
        return caught.exception.errors

    def test_valid_data_is_returned_unchanged(self) -> None:
        fields = [
            self._field("email", TicketFormField.EMAIL, required=True),
            self._field("when", TicketFormField.DATE),
            self._field("tags", TicketFormField.MULTISELECT, options=["a", "b"]),
            self._field("urgent", TicketFormField.CHECKBOX),
            self._field("count", TicketFormField.NUMBER, min_value=0),
        ]
        data = {
            "email": "ops@example.com",
            "when": "2024-03-01",
            "tags": ["a"],
            "urgent": False,
            "count": "7",
            "extra": "kept",
        }
        self.assertEqual(validate_form_data(fields, data), data)

    def test_missing_required_field(self) -> None:
        fields = [self._field("asset", TicketFormField.TEXT, required=True)]
        self.assertEqual(self._errors(fields, {"asset": "  "}), ["Asset is required."])

    def test_optional_fields_may_be_omitted(self) -> None:
        fields = [self._field("asset", TicketFormField.TEXT)]
        self.assertEqual(validate_form_data(fields, None), {})

    def test_type_checks(self) -> None:
        cases = [
            (self._field("email", TicketFormField.EMAIL), "not-an-email", "Email must be a valid email address."),
            (self._field("site", TicketFormField.URL), "nowhere", "Site must be a valid URL."),
            (self._field("when", TicketFormField.DATE), "01/03/2024", "When must be a date (YYYY-MM-DD)."),
            (self._field("count", TicketFormField.NUMBER), True, "Count must be a number."),
            (self._field("urgent", TicketFormField.CHECKBOX), "yes", "Urgent must be true or false."),
            (self._field("tags", TicketFormField.MULTISELECT, options=["a"]), ["z"], "Tags contains an invalid option: z."),
            (self._field("code", TicketFormField.TEXT, min_length=3), "ab", "Code must be at least 3 characters."),
        ]
        for field, value, message in cases:
            with self.subTest(field=field.name):
                self.assertEqual(self._errors([field], {field.name: value}), [message])

    def test_options_may_be_objects(self) -> None:
        field = self._field("size", TicketFormField.SELECT, options=[{"value": "s", "label": "Small"}])
        self.assertEqual(validate_form_data([field], {"size": "s"}), {"size": "s"})

    def test_nested_values_are_refused(self) -> None:
        self.assertEqual(self._errors([], {"meta": {"a": 1}}), ["meta must be a plain value."])
        with self.assertRaises(InvalidArgument):
            validate_form_data([], ["not", "a", "mapping"])

    def test_describe_orders_by_form(self) -> None:
        fields = [self._field("b", TicketFormField.TEXT), self._field("a", TicketFormField.TEXT)]
        described = describe_form_data(fields, {"a": "1", "z": "2", "b": "3"})
        self.assertEqual([entry["name"] for entry in described], ["b", "a", "z"])
        self.assertIsNone(described[-1]["type"])
