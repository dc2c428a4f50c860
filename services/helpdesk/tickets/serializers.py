"""Serializers for ticket entities and ticket command payloads."""
from __future__ import annotations

from typing import Any, Dict, Optional

from rest_framework import serializers

from .models import PmoSyncRequest, Ticket, TicketAttachment, TicketComment, TicketHistory


def _display_name(user) -> Optional[str]:
    return user.display_name if user is not None else None


class TicketCommentSerializer(serializers.ModelSerializer):
    author = serializers.SerializerMethodField()

    class Meta:
        model = TicketComment
        fields = ["id", "content", "is_internal", "is_system_generated", "author_id", "author", "created_at"]

    def get_author(self, obj: TicketComment) -> Optional[str]:
        return _display_name(obj.author)


class TicketHistorySerializer(serializers.ModelSerializer):
    actor = serializers.SerializerMethodField()

    class Meta:
        model = TicketHistory
        fields = ["id", "action", "old_value", "new_value", "description", "actor_id", "actor", "created_at"]

    def get_actor(self, obj: TicketHistory) -> Optional[str]:
        return _display_name(obj.actor)


class TicketAttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = TicketAttachment
        fields = [
            "id",
            "original_name",
            "content_type",
            "size",
            "sha256",
            "is_image",
            "file",
            "uploaded_by_id",
            "created_at",
        ]


class TicketListSerializer(serializers.ModelSerializer):
    status_label = serializers.CharField(read_only=True)
    status_color = serializers.CharField(read_only=True)
    ticket_type = serializers.CharField(source="ticket_type.name", read_only=True)
    category = serializers.CharField(source="category.name", read_only=True)
    customer = serializers.CharField(source="customer.name", read_only=True)
    created_by = serializers.SerializerMethodField()
    assigned_to = serializers.SerializerMethodField()
    is_open = serializers.BooleanField(read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Ticket
        fields = [
            "id",
            "ticket_number",
            "title",
            "status",
            "status_label",
            "status_color",
            "ticket_type_id",
            "ticket_type",
            "category_id",
            "category",
            "customer_id",
            "customer",
            "created_by",
            "assigned_to",
            "is_open",
            "is_overdue",
            "due_date",
            "created_at",
            "updated_at",
        ]

    def get_created_by(self, obj: Ticket) -> Optional[str]:
        return _display_name(obj.created_by)

    def get_assigned_to(self, obj: Ticket) -> Optional[str]:
        return _display_name(obj.assigned_to)


class TicketDetailSerializer(TicketListSerializer):
    category_module = serializers.CharField(source="category_module.name", read_only=True, default=None)
    available_actions = serializers.ListField(child=serializers.CharField(), read_only=True)
    can_take_action = serializers.BooleanField(read_only=True)
    time_to_resolve_hours = serializers.SerializerMethodField()
    comments = TicketCommentSerializer(many=True, read_only=True)
    attachments = TicketAttachmentSerializer(many=True, read_only=True)
    history = TicketHistorySerializer(many=True, read_only=True)

    class Meta(TicketListSerializer.Meta):
        fields = TicketListSerializer.Meta.fields + [
            "description",
            "category_module_id",
            "category_module",
            "form_data",
            "resolution",
            "customer_rating",
            "customer_feedback",
            "assigned_to_id",
            "created_by_id",
            "submitted_at",
            "approved_at",
            "completed_at",
            "closed_at",
            "rejected_at",
            "resolved_at",
            "available_actions",
            "can_take_action",
            "time_to_resolve_hours",
            "comments",
            "attachments",
            "history",
        ]

    def get_time_to_resolve_hours(self, obj: Ticket) -> Optional[float]:
        elapsed = obj.time_to_resolve
        return round(elapsed.total_seconds() / 3600, 2) if elapsed is not None else None


class PmoSyncRequestSerializer(serializers.ModelSerializer):
    class Meta:
        model = PmoSyncRequest
        fields = ["id", "ticket_id", "status", "attempts", "last_error", "created_at", "updated_at", "completed_at"]


# Request payloads


class TicketCreateRequestSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(max_length=2000, required=False, allow_blank=True, default="")
    ticket_type_id = serializers.IntegerField()
    category_id = serializers.IntegerField()
    category_module_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    customer_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    form_data = serializers.JSONField(required=False, default=dict)
    due_date = serializers.DateTimeField(required=False, allow_null=True, default=None)

    def validate_form_data(self, value: Any) -> Dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise serializers.ValidationError("Must be a JSON object.")
        return value


class TransitionRequestSerializer(serializers.Serializer):
    comment = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


class ApproveRequestSerializer(TransitionRequestSerializer):
    send_to_pmo = serializers.BooleanField(required=False, default=False)


class RejectRequestSerializer(serializers.Serializer):
    # Blank reasons are refused by the lifecycle itself.
    reason = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False, default="")


class StatusUpdateRequestSerializer(ApproveRequestSerializer):
    status = serializers.CharField(max_length=32)


class CommentRequestSerializer(serializers.Serializer):
    content = serializers.CharField(allow_blank=True, trim_whitespace=False)
    is_internal = serializers.BooleanField(required=False, default=False)


class AttachmentRequestSerializer(serializers.Serializer):
    file = serializers.FileField(allow_empty_file=True)


class RatingRequestSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    feedback = serializers.CharField(required=False, allow_blank=True, default="")
