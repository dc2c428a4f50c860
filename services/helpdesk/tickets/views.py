"""API views for tickets, the dashboard and PMO sync monitoring."""
from __future__ import annotations

from typing import Any, Dict

from django.db.models import Count
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.request import Request
from rest_framework.response import Response

from accounts.context import RequestContext
from accounts.permissions import IsTenantAdmin
from helpdesk_service.errors import envelope
from helpdesk_service.results import Result

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
from .dashboard import build_dashboard
from .handlers import dispatch
from .models import PmoSyncRequest, Ticket, TicketAttachment, TicketComment
from .queries import TicketFilters, get_ticket_detail, list_tickets
from .serializers import (
    ApproveRequestSerializer,
    AttachmentRequestSerializer,
    CommentRequestSerializer,
    PmoSyncRequestSerializer,
    RatingRequestSerializer,
    RejectRequestSerializer,
    StatusUpdateRequestSerializer,
    TicketAttachmentSerializer,
    TicketCommentSerializer,
    TicketCreateRequestSerializer,
    TicketDetailSerializer,
    TicketListSerializer,
    TransitionRequestSerializer,
)


class TicketViewSet(viewsets.ViewSet):
    """Ticket endpoints. Every write goes through a command handler."""

    lookup_value_regex = "[0-9]+"

    def _context(self, request: Request) -> RequestContext:
        return RequestContext.from_request(request)

    def _validated(self, serializer_class, request: Request) -> Dict[str, Any]:
        serializer = serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    def _render(self, request: Request, result: Result) -> Response:
        data = result.data
        if isinstance(data, Ticket):
            # Reload so the response honours the caller's comment visibility.
            data = get_ticket_detail(self._context(request), data.pk)
            data = TicketDetailSerializer(data, context={"request": request}).data
        elif isinstance(data, TicketComment):
            data = TicketCommentSerializer(data).data
        elif isinstance(data, TicketAttachment):
            data = TicketAttachmentSerializer(data, context={"request": request}).data
        return result.with_data(data).to_response()

    def list(self, request: Request) -> Response:
        page = list_tickets(
            self._context(request), TicketFilters.from_query_params(request.query_params)
        )
        page["items"] = TicketListSerializer(page["items"], many=True).data
        return Response(envelope(True, page))

    def create(self, request: Request) -> Response:
        data = self._validated(TicketCreateRequestSerializer, request)
        return self._render(request, dispatch(CreateTicket(**data), self._context(request)))

    def retrieve(self, request: Request, pk: str = None) -> Response:
        ticket = get_ticket_detail(self._context(request), int(pk))
        serializer = TicketDetailSerializer(ticket, context={"request": request})
        return Response(envelope(True, serializer.data))

    @action(detail=False, methods=["post"], url_path="preview")
    def preview(self, request: Request) -> Response:
        """Validate a submission, including its form data, without creating it."""

        data = self._validated(TicketCreateRequestSerializer, request)
        return self._render(request, dispatch(PreviewTicket(**data), self._context(request)))

    @action(detail=True, methods=["post"])
    def approve(self, request: Request, pk: str = None) -> Response:
        data = self._validated(ApproveRequestSerializer, request)
        command = ApproveTicket(int(pk), data["comment"], data["send_to_pmo"])
        return self._render(request, dispatch(command, self._context(request)))

    @action(detail=True, methods=["post"])
    def reject(self, request: Request, pk: str = None) -> Response:
        data = self._validated(RejectRequestSerializer, request)
        command = RejectTicket(int(pk), data["reason"])
        return self._render(request, dispatch(command, self._context(request)))

    @action(detail=True, methods=["post"])
    def resolve(self, request: Request, pk: str = None) -> Response:
        data = self._validated(TransitionRequestSerializer, request)
        command = ResolveTicket(int(pk), data["comment"])
        return self._render(request, dispatch(command, self._context(request)))

    @action(detail=True, methods=["post"])
    def close(self, request: Request, pk: str = None) -> Response:
        data = self._validated(TransitionRequestSerializer, request)
        command = CloseTicket(int(pk), data["comment"])
        return self._render(request, dispatch(command, self._context(request)))

    @action(detail=True, methods=["post"], url_path="status")
    def update_status(self, request: Request, pk: str = None) -> Response:
        data = self._validated(StatusUpdateRequestSerializer, request)
        command = UpdateTicketStatus(int(pk), data["status"], data["comment"], data["send_to_pmo"])
        return self._render(request, dispatch(command, self._context(request)))

    @action(detail=True, methods=["post"])
    def comments(self, request: Request, pk: str = None) -> Response:
        data = self._validated(CommentRequestSerializer, request)
        command = AddComment(int(pk), data["content"], data["is_internal"])
        return self._render(request, dispatch(command, self._context(request)))

    @action(detail=True, methods=["post"], parser_classes=[MultiPartParser, FormParser])
    def attachments(self, request: Request, pk: str = None) -> Response:
        data = self._validated(AttachmentRequestSerializer, request)
        command = AddAttachment(int(pk), data["file"])
        return self._render(request, dispatch(command, self._context(request)))

    @action(detail=True, methods=["post"])
    def rate(self, request: Request, pk: str = None) -> Response:
        data = self._validated(RatingRequestSerializer, request)
        command = RateTicket(int(pk), data["rating"], data["feedback"])
        return self._render(request, dispatch(command, self._context(request)))


@api_view(["GET"])
def dashboard(request: Request) -> Response:
    return Response(envelope(True, build_dashboard(RequestContext.from_request(request))))


@api_view(["GET"])
@permission_classes([IsTenantAdmin])
def pmo_sync_metrics(request: Request) -> Response:
    """Provide observability data for the PMO outbox."""

    syncs = PmoSyncRequest.objects.filter(ticket__company_id=request.user.company_id)
    totals: Dict[str, int] = {
        PmoSyncRequest.PENDING: 0,
        PmoSyncRequest.PROCESSING: 0,
        PmoSyncRequest.COMPLETED: 0,
        PmoSyncRequest.FAILED: 0,
    }

    for entry in syncs.values("status").order_by().annotate(total=Count("id")):
        status_value = entry.get("status")
        if status_value in totals:
            totals[status_value] = int(entry.get("total", 0))

    oldest_pending = (
        syncs.filter(status__in=[PmoSyncRequest.PENDING, PmoSyncRequest.PROCESSING])
        .order_by("created_at")
        .first()
    )
    if oldest_pending is not None:
        wait_seconds = max(int((timezone.now() - oldest_pending.created_at).total_seconds()), 0)
    else:
        wait_seconds = 0

    recent_failures = syncs.filter(status=PmoSyncRequest.FAILED).order_by("-updated_at")[:10]
    return Response(
        envelope(
            True,
            {
                "pending": totals[PmoSyncRequest.PENDING],
                "processing": totals[PmoSyncRequest.PROCESSING],
                "completed": totals[PmoSyncRequest.COMPLETED],
                "failed": totals[PmoSyncRequest.FAILED],
                "oldest_pending_seconds": wait_seconds,
                "recent_failures": PmoSyncRequestSerializer(recent_failures, many=True).data,
            },
        ),
        status=status.HTTP_200_OK,
    )
