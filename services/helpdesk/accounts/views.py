"""API views for authentication, company settings, customers and users."""
from __future__ import annotations

import logging

from django.contrib.auth.models import update_last_login
from rest_framework import viewsets
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from helpdesk_service.errors import ExternalIntegrationFailure, InvalidArgument, NotAuthenticated, envelope
from tickets.pmo import PmoForwarder

from .models import Customer, User
from .permissions import IsTenantAdmin
from .serializers import (
    CompanySettingsSerializer,
    CustomerSerializer,
    LoginSerializer,
    ProfileSerializer,
    UserSerializer,
)

logger = logging.getLogger(__name__)


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def login(request: Request) -> Response:
    """Exchange a username and password for an API token."""

    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    username = serializer.validated_data["username"]

    user = User.objects.select_related("company").filter(username=username).first()
    if user is None or not user.check_password(serializer.validated_data["password"]):
        logger.warning("Failed login for %s", username)
        raise NotAuthenticated("Invalid username or password.")
    if not user.is_active:
        logger.warning("Login refused for inactive user %s", user.pk)
        raise NotAuthenticated("This account has been deactivated.")
    if user.company is None or not user.company.is_active:
        logger.warning("Login refused for user %s of inactive company", user.pk)
        raise NotAuthenticated("Your company account is not active.")

    token, _ = Token.objects.get_or_create(user=user)
    update_last_login(None, user)
    logger.info("User %s signed in", user.pk)
    return Response(envelope(True, {"token": token.key, "user": ProfileSerializer(user).data}))


@api_view(["POST"])
def logout(request: Request) -> Response:
    Token.objects.filter(user=request.user).delete()
    return Response(envelope(True))


@api_view(["GET"])
def me(request: Request) -> Response:
    return Response(envelope(True, ProfileSerializer(request.user).data))


class CompanySettingsView(APIView):
    permission_classes = [IsTenantAdmin]

    def get(self, request: Request) -> Response:
        serializer = CompanySettingsSerializer(request.user.company)
        return Response(envelope(True, serializer.data))

    def put(self, request: Request) -> Response:
        serializer = CompanySettingsSerializer(
            request.user.company, data=request.data, partial=True
        )
        serializer.is_valid(raise_exception=True)
        company = serializer.save()
        logger.info("Company %s settings updated by user %s", company.pk, request.user.pk)
        return Response(envelope(True, serializer.data))


@api_view(["POST"])
@permission_classes([IsTenantAdmin])
def test_pmo_connection(request: Request) -> Response:
    """Probe the configured PMO endpoint's health route."""

    company = request.user.company
    if not company.pmo_api_endpoint:
        raise InvalidArgument("No PMO API endpoint is configured.")
    if not PmoForwarder.for_company(company).check_connection():
        raise ExternalIntegrationFailure("The PMO endpoint did not respond successfully.")
    return Response(envelope(True, {"endpoint": company.pmo_api_endpoint, "reachable": True}))


class CustomerViewSet(viewsets.ModelViewSet):
    serializer_class = CustomerSerializer
    permission_classes = [IsTenantAdmin]
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["name", "contact_email", "contact_person"]
    ordering_fields = ["name", "created_at"]
    ordering = ["name"]

    def get_queryset(self):  # type: ignore[override]
        queryset = Customer.objects.filter(company_id=self.request.user.company_id)
        active = self.request.query_params.get("active")
        if active is not None:
            queryset = queryset.filter(is_active=active.lower() in {"1", "true", "yes"})
        return queryset

    def perform_create(self, serializer) -> None:  # type: ignore[override]
        customer = serializer.save(company_id=self.request.user.company_id)
        logger.info("Customer %s created by user %s", customer.pk, self.request.user.pk)

    def perform_destroy(self, instance: Customer) -> None:  # type: ignore[override]
        if instance.tickets.exists():
            raise InvalidArgument("Customers with tickets cannot be deleted; deactivate them instead.")
        if instance.users.exists():
            raise InvalidArgument("Customers with users cannot be deleted; deactivate them instead.")
        instance.delete()


class UserViewSet(viewsets.ModelViewSet):
    serializer_class = UserSerializer
    permission_classes = [IsTenantAdmin]
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["username", "first_name", "last_name", "email"]
    ordering_fields = ["username", "last_name", "date_joined"]
    ordering = ["username"]

    def get_queryset(self):  # type: ignore[override]
        queryset = User.objects.select_related("customer").filter(
            company_id=self.request.user.company_id
        )
        role = self.request.query_params.get("role")
        if role:
            queryset = queryset.filter(role=role)
        return queryset

    def perform_create(self, serializer) -> None:  # type: ignore[override]
        user = serializer.save(company_id=self.request.user.company_id)
        logger.info("User %s created by user %s", user.pk, self.request.user.pk)

    def perform_update(self, serializer) -> None:  # type: ignore[override]
        if serializer.instance.pk == self.request.user.pk:
            if serializer.validated_data.get("is_active") is False:
                raise InvalidArgument("You cannot deactivate your own account.")
            if serializer.validated_data.get("role", User.ADMIN) != User.ADMIN:
                raise InvalidArgument("You cannot remove your own administrator role.")
        serializer.save()

    def perform_destroy(self, instance: User) -> None:  # type: ignore[override]
        if instance.pk == self.request.user.pk:
            raise InvalidArgument("You cannot delete your own account.")
        if instance.created_tickets.exists():
            raise InvalidArgument("Users who created tickets cannot be deleted; deactivate them instead.")
        instance.delete()


@api_view(["GET"])
@permission_classes([AllowAny])
def health(request):  # type: ignore[override]
    """Readiness endpoint for orchestration tooling."""

    return Response({"status": "ok"})
