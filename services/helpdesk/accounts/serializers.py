"""Serializers for companies, customers and users."""
from __future__ import annotations

from typing import Any, Dict

from rest_framework import serializers

from .models import Company, Customer, User


def _company_id(serializer: serializers.Serializer) -> int:
    return serializer.context["request"].user.company_id


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    password = serializers.CharField(trim_whitespace=False)


class ProfileSerializer(serializers.ModelSerializer):
    company_id = serializers.IntegerField(read_only=True)
    customer_id = serializers.IntegerField(read_only=True, allow_null=True)
    company = serializers.CharField(source="company.name", read_only=True, default=None)
    customer = serializers.CharField(source="customer.name", read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "first_name",
            "last_name",
            "email",
            "phone",
            "role",
            "company_id",
            "company",
            "customer_id",
            "customer",
            "last_login",
        ]
        read_only_fields = fields


class CompanySettingsSerializer(serializers.ModelSerializer):
    has_pmo_api_key = serializers.SerializerMethodField()

    class Meta:
        model = Company
        fields = [
            "id",
            "name",
            "description",
            "email",
            "phone",
            "address",
            "city",
            "country",
            "postal_code",
            "website",
            "requires_pmo_integration",
            "send_email_notifications",
            "allow_file_attachments",
            "max_file_size_mb",
            "pmo_api_endpoint",
            "pmo_api_key",
            "has_pmo_api_key",
            "updated_at",
        ]
        read_only_fields = ["id", "updated_at"]
        extra_kwargs = {"pmo_api_key": {"write_only": True}}

    def get_has_pmo_api_key(self, obj: Company) -> bool:
        return bool(obj.pmo_api_key)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        instance = self.instance
        requires_pmo = attrs.get(
            "requires_pmo_integration",
            instance.requires_pmo_integration if instance else False,
        )
        endpoint = attrs.get("pmo_api_endpoint", instance.pmo_api_endpoint if instance else "")
        if requires_pmo and not endpoint:
            raise serializers.ValidationError(
                {"pmo_api_endpoint": "A PMO API endpoint is required when PMO integration is enabled."}
            )
        return attrs


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = [
            "id",
            "name",
            "description",
            "contact_email",
            "contact_phone",
            "contact_person",
            "address",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_contact_email(self, value: str) -> str:
        duplicates = Customer.objects.filter(
            company_id=_company_id(self), contact_email__iexact=value
        )
        if self.instance is not None:
            duplicates = duplicates.exclude(pk=self.instance.pk)
        if duplicates.exists():
            raise serializers.ValidationError("A customer with this contact email already exists.")
        return value


class UserSerializer(serializers.ModelSerializer):
    password = serializers.CharField(
        write_only=True, required=False, min_length=6, trim_whitespace=False
    )
    customer = serializers.PrimaryKeyRelatedField(
        queryset=Customer.objects.all(), allow_null=True, required=False
    )
    customer_name = serializers.CharField(source="customer.name", read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "password",
            "first_name",
            "last_name",
            "email",
            "phone",
            "role",
            "customer",
            "customer_name",
            "is_active",
            "last_login",
            "date_joined",
        ]
        read_only_fields = ["id", "last_login", "date_joined"]

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        instance = self.instance
        if instance is None and not attrs.get("password"):
            raise serializers.ValidationError({"password": "A password is required."})

        role = attrs.get("role", instance.role if instance else User.CUSTOMER)
        customer = attrs.get("customer", instance.customer if instance else None)
        if role == User.CUSTOMER:
            if customer is None:
                raise serializers.ValidationError({"customer": "Customer users must belong to a customer."})
            if customer.company_id != _company_id(self):
                raise serializers.ValidationError({"customer": "Customer not found."})
        else:
            attrs["customer"] = None
        return attrs

    def create(self, validated_data):  # type: ignore[override]
        password = validated_data.pop("password")
        user = User(**validated_data)
        user.set_password(password)
        user.save()
        return user

    def update(self, instance, validated_data):  # type: ignore[override]
        password = validated_data.pop("password", None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance
