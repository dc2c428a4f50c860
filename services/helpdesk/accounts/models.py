"""Database models for tenants, customers and users."""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class Company(models.Model):
    """A tenant. Every other record belongs to exactly one company."""

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True)
    address = models.CharField(max_length=500, blank=True)
    city = models.CharField(max_length=100, blank=True)
    country = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=20, blank=True)
    website = models.URLField(blank=True)
    is_active = models.BooleanField(default=True)

    requires_pmo_integration = models.BooleanField(default=False)
    send_email_notifications = models.BooleanField(default=True)
    allow_file_attachments = models.BooleanField(default=True)
    max_file_size_mb = models.PositiveIntegerField(
        default=10,
        validators=[MinValueValidator(1), MaxValueValidator(100)],
    )
    pmo_api_endpoint = models.URLField(max_length=500, blank=True)
    pmo_api_key = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name", "id"]
        verbose_name_plural = "companies"

    def __str__(self) -> str:
        return self.name

    @property
    def pmo_enabled(self) -> bool:
        return self.requires_pmo_integration and bool(self.pmo_api_endpoint)

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


class Customer(models.Model):
    """An organisation served by a company; customer users belong to one."""

    company = models.ForeignKey(Company, related_name="customers", on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    contact_email = models.EmailField()
    contact_phone = models.CharField(max_length=32, blank=True)
    contact_person = models.CharField(max_length=200, blank=True)
    address = models.CharField(max_length=500, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name", "id"]

    def __str__(self) -> str:
        return self.name


class User(AbstractUser):
    """A person signing in to the helpdesk, either staff or customer."""

    ADMIN = "admin"
    CUSTOMER = "customer"

    ROLE_CHOICES = [
        (ADMIN, "Administrator"),
        (CUSTOMER, "Customer"),
    ]

    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=CUSTOMER)
    phone = models.CharField(max_length=32, blank=True)
    company = models.ForeignKey(
        Company,
        related_name="users",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
    )
    customer = models.ForeignKey(
        Customer,
        related_name="users",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == self.ADMIN

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username
