"""Tests for authentication, company settings and the user directory."""
from __future__ import annotations

from io import StringIO
from unittest import mock

from django.core.management import CommandError, call_command
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from tickets.tests.fixtures import PASSWORD, HelpdeskFixtures

from .models import Company, Customer, User


class LoginTests(HelpdeskFixtures, TestCase):
    def setUp(self) -> None:
        self.tenant = self.build_tenant()
        self.client = APIClient()
        self.url = reverse("auth-login")

    def test_login_returns_token_and_profile(self) -> None:
        response = self.client.post(
            self.url, {"username": "acme-it-requester", "password": PASSWORD}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.json()["data"]
        self.assertEqual(data["token"], Token.objects.get(user=self.tenant.requester).key)
        self.assertEqual(data["user"]["role"], User.CUSTOMER)
        self.assertEqual(data["user"]["customer_id"], self.tenant.customer.pk)
        self.assertEqual(data["user"]["company"], "Acme IT")

    def test_usernames_differing_in_case_are_separate_accounts(self) -> None:
        company = self.tenant.company
        upper = User.objects.create_user("Bob", password="upper-pass", company=company, role=User.ADMIN)
        lower = User.objects.create_user("bob", password="lower-pass", company=company, role=User.ADMIN)

        for user, password in ((upper, "upper-pass"), (lower, "lower-pass")):
            with self.subTest(username=user.username):
                response = self.client.post(
                    self.url, {"username": user.username, "password": password}, format="json"
                )
                self.assertEqual(response.status_code, status.HTTP_200_OK)
                self.assertEqual(response.json()["data"]["user"]["id"], user.pk)

    def test_username_must_match_case(self) -> None:
        response = self.client.post(
            self.url, {"username": "ACME-IT-requester", "password": PASSWORD}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()["errors"], ["Invalid username or password."])

    def test_token_authenticates_following_requests(self) -> None:
        token = self.client.post(
            self.url, {"username": "acme-it-admin", "password": PASSWORD}, format="json"
        ).json()["data"]["token"]

        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token}")
        response = self.client.get(reverse("auth-me"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["username"], "acme-it-admin")

        self.assertEqual(self.client.post(reverse("auth-logout")).status_code, status.HTTP_200_OK)
        self.assertFalse(Token.objects.filter(key=token).exists())

    def test_wrong_password(self) -> None:
        response = self.client.post(
            self.url, {"username": "acme-it-admin", "password": "nope"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()["errors"], ["Invalid username or password."])

    def test_inactive_user(self) -> None:
        self.tenant.admin.is_active = False
        self.tenant.admin.save()
        response = self.client.post(
            self.url, {"username": "acme-it-admin", "password": PASSWORD}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()["errors"], ["This account has been deactivated."])

    def test_inactive_company(self) -> None:
        Company.objects.filter(pk=self.tenant.company.pk).update(is_active=False)
        response = self.client.post(
            self.url, {"username": "acme-it-admin", "password": PASSWORD}, format="json"
        )
        self.assertEqual(response.json()["errors"], ["Your company account is not active."])

    def test_health_is_public(self) -> None:
        response = self.client.get(reverse("helpdesk-health"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json(), {"status": "ok"})


class CompanySettingsTests(HelpdeskFixtures, TestCase):
    def setUp(self) -> None:
        self.tenant = self.build_tenant()
        self.client = APIClient()
        self.client.force_authenticate(user=self.tenant.admin)
        self.url = reverse("company-settings")

    def test_api_key_is_write_only(self) -> None:
        response = self.client.put(
            self.url,
            {
                "requires_pmo_integration": True,
                "pmo_api_endpoint": "https://pmo.example.com/api",
                "pmo_api_key": "top-secret",
                "max_file_size_mb": 25,
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.json()["data"]
        self.assertNotIn("pmo_api_key", data)
        self.assertTrue(data["has_pmo_api_key"])
        self.tenant.company.refresh_from_db()
        self.assertTrue(self.tenant.company.pmo_enabled)
        self.assertEqual(self.tenant.company.max_file_size_bytes, 25 * 1024 * 1024)

    def test_pmo_requires_endpoint(self) -> None:
        response = self.client.put(self.url, {"requires_pmo_integration": True}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(response.json()["errors"][0].startswith("pmo_api_endpoint:"))

    def test_file_size_bounds(self) -> None:
        response = self.client.put(self.url, {"max_file_size_mb": 500}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customers_cannot_read_settings(self) -> None:
        self.client.force_authenticate(user=self.tenant.requester)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_pmo_connection_check(self) -> None:
        company = self.tenant.company
        company.pmo_api_endpoint = "https://pmo.example.com/api"
        company.save()
        url = reverse("company-settings-test-pmo")

        with mock.patch("tickets.pmo.requests.get") as get:
            get.return_value = mock.Mock(status_code=200)
            response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.json()["data"]["reachable"])

        with mock.patch("tickets.pmo.requests.get") as get:
            get.return_value = mock.Mock(status_code=503)
            response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)

    def test_pmo_connection_without_endpoint(self) -> None:
        response = self.client.post(reverse("company-settings-test-pmo"))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class DirectoryApiTests(HelpdeskFixtures, TestCase):
    def setUp(self) -> None:
        self.tenant = self.build_tenant()
        self.other = self.build_tenant("Globex")
        self.client = APIClient()
        self.client.force_authenticate(user=self.tenant.admin)

    def test_customers_are_scoped_to_company(self) -> None:
        response = self.client.get(reverse("customer-list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = {customer["name"] for customer in response.json()}
        self.assertEqual(names, {"Acme IT Retail", "Acme IT Logistics"})

        response = self.client.get(reverse("customer-detail", args=[self.other.customer.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_customer_contact_email_is_unique_per_company(self) -> None:
        payload = {"name": "Duplicate", "contact_email": "CONTACT@acme-it-retail.example.com"}
        response = self.client.post(reverse("customer-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.json()["succeeded"])

        payload["contact_email"] = "contact@globex-retail.example.com"
        response = self.client.post(reverse("customer-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(
            Customer.objects.filter(company=self.tenant.company, name="Duplicate").exists()
        )

    def test_customer_with_users_cannot_be_deleted(self) -> None:
        response = self.client.delete(reverse("customer-detail", args=[self.tenant.customer.pk]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Customer.objects.filter(pk=self.tenant.customer.pk).exists())

    def test_create_customer_user(self) -> None:
        payload = {
            "username": "new-requester",
            "password": "s3cret-pass",
            "role": User.CUSTOMER,
            "customer": self.tenant.other_customer.pk,
        }
        response = self.client.post(reverse("user-list"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn("password", response.json())
        user = User.objects.get(username="new-requester")
        self.assertEqual(user.company_id, self.tenant.company.pk)
        self.assertTrue(user.check_password("s3cret-pass"))

    def test_customer_user_needs_customer_of_same_company(self) -> None:
        payload = {
            "username": "cross-tenant",
            "password": "s3cret-pass",
            "role": User.CUSTOMER,
            "customer": self.other.customer.pk,
        }
        response = self.client.post(reverse("user-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        payload.pop("customer")
        response = self.client.post(reverse("user-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_cannot_lock_themselves_out(self) -> None:
        url = reverse("user-detail", args=[self.tenant.admin.pk])
        response = self.client.patch(url, {"is_active": False}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.json()["errors"], ["You cannot deactivate your own account."])

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(User.objects.filter(pk=self.tenant.admin.pk).exists())

    def test_ticket_creators_cannot_be_deleted(self) -> None:
        self.make_ticket(self.tenant)
        response = self.client.delete(reverse("user-detail", args=[self.tenant.requester.pk]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.delete(reverse("user-detail", args=[self.tenant.other_requester.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_directory_is_admin_only(self) -> None:
        self.client.force_authenticate(user=self.tenant.requester)
        self.assertEqual(self.client.get(reverse("user-list")).status_code, status.HTTP_403_FORBIDDEN)


class BootstrapCompanyCommandTests(TestCase):
    def test_creates_company_and_admin(self) -> None:
        out = StringIO()
        call_command(
            "bootstrap_company",
            "Initech",
            "--username=root",
            "--password=changeme",
            "--email=it@initech.example.com",
            stdout=out,
        )

        admin = User.objects.get(username="root")
        self.assertEqual(admin.role, User.ADMIN)
        self.assertEqual(admin.company.name, "Initech")
        self.assertTrue(admin.check_password("changeme"))
        self.assertIn("Created company", out.getvalue())

    def test_refuses_existing_username(self) -> None:
        call_command("bootstrap_company", "Initech", "--username=root", "--password=x", stdout=StringIO())
        with self.assertRaises(CommandError):
            call_command("bootstrap_company", "Other", "--username=ROOT", "--password=y", stdout=StringIO())
