"""Serializers for ticket types and categories."""
from __future__ import annotations

import re
from typing import Any, Dict, List

from rest_framework import serializers

from .models import TicketCategory, TicketCategoryModule, TicketFormField, TicketType

_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


def _validate_color(value: str) -> str:
    if not _COLOR.match(value):
        raise serializers.ValidationError("Color must be a hex value such as #3b82f6.")
    return value


def _validate_unique_name(serializer: serializers.ModelSerializer, model, value: str) -> str:
    company_id = serializer.context["request"].user.company_id
    duplicates = model.objects.filter(company_id=company_id, name__iexact=value.strip())
    if serializer.instance is not None:
        duplicates = duplicates.exclude(pk=serializer.instance.pk)
    if duplicates.exists():
        raise serializers.ValidationError("An item with this name already exists.")
    return value.strip()


class TicketFormFieldSerializer(serializers.ModelSerializer):
    class Meta:
        model = TicketFormField
        fields = [
            "id",
            "name",
            "label",
            "field_type",
            "required",
            "order",
            "placeholder",
            "options",
            "min_length",
            "max_length",
            "min_value",
            "max_value",
        ]
        read_only_fields = ["id", "order"]

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        options = attrs.get("options") or []
        if not isinstance(options, list):
            raise serializers.ValidationError({"options": "Options must be a list."})
        if attrs.get("field_type") in TicketFormField.CHOICE_TYPES and not options:
            raise serializers.ValidationError({"options": "Choice fields need at least one option."})
        min_length, max_length = attrs.get("min_length"), attrs.get("max_length")
        if min_length is not None and max_length is not None and min_length > max_length:
            raise serializers.ValidationError({"min_length": "Minimum length exceeds maximum length."})
        min_value, max_value = attrs.get("min_value"), attrs.get("max_value")
        if min_value is not None and max_value is not None and min_value > max_value:
            raise serializers.ValidationError({"min_value": "Minimum value exceeds maximum value."})
        return attrs


class TicketTypeSerializer(serializers.ModelSerializer):
    fields = TicketFormFieldSerializer(many=True, required=False)

    class Meta:
        model = TicketType
        fields = [
            "id",
            "name",
            "description",
            "icon",
            "color",
            "sort_order",
            "is_active",
            "created_at",
            "updated_at",
            "fields",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_name(self, value: str) -> str:
        return _validate_unique_name(self, TicketType, value)

    def validate_color(self, value: str) -> str:
        return _validate_color(value)

    def validate_fields(self, value: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        names = [field["name"] for field in value]
        if len(names) != len(set(names)):
            raise serializers.ValidationError("Field names must be unique within a ticket type.")
        return value

    def create(self, validated_data):  # type: ignore[override]
        fields = validated_data.pop("fields", [])
        ticket_type = TicketType.objects.create(**validated_data)
        for index, field in enumerate(fields):
            TicketFormField.objects.create(ticket_type=ticket_type, order=index, **field)
        return ticket_type

    def update(self, instance, validated_data):  # type: ignore[override]
        fields = validated_data.pop("fields", None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()

        if fields is not None:
            instance.fields.all().delete()
            for index, field in enumerate(fields):
                TicketFormField.objects.create(ticket_type=instance, order=index, **field)
        return instance


class TicketCategoryModuleSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(required=False)

    class Meta:
        model = TicketCategoryModule
        fields = ["id", "name", "description", "icon", "sort_order", "is_active"]


class TicketCategorySerializer(serializers.ModelSerializer):
    modules = TicketCategoryModuleSerializer(many=True, required=False)

    class Meta:
        model = TicketCategory
        fields = [
            "id",
            "name",
            "description",
            "icon",
            "color",
            "sort_order",
            "is_active",
            "created_at",
            "updated_at",
            "modules",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_name(self, value: str) -> str:
        return _validate_unique_name(self, TicketCategory, value)

    def validate_color(self, value: str) -> str:
        return _validate_color(value)

    def create(self, validated_data):  # type: ignore[override]
        modules = validated_data.pop("modules", [])
        category = TicketCategory.objects.create(**validated_data)
        for module in modules:
            module.pop("id", None)
            TicketCategoryModule.objects.create(category=category, **module)
        return category

    def update(self, instance, validated_data):  # type: ignore[override]
        modules = validated_data.pop("modules", None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()

        if modules is not None:
            # Existing modules keep their ids so tickets filed under them stay linked.
            existing = {module.pk: module for module in instance.modules.all()}
            kept = set()
            for data in modules:
                module = existing.get(data.pop("id", None))
                if module is None:
                    module = TicketCategoryModule.objects.create(category=instance, **data)
                else:
                    for attr, value in data.items():
                        setattr(module, attr, value)
                    module.save()
                kept.add(module.pk)
            instance.modules.exclude(pk__in=kept).delete()
        return instance
