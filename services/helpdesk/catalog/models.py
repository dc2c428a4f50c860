"""Database models for ticket types, their form fields and categories."""
from __future__ import annotations

from django.db import models


class TicketType(models.Model):
    """A kind of request, with the form customers fill in for it."""

    company = models.ForeignKey(
        "accounts.Company", related_name="ticket_types", on_delete=models.CASCADE
    )
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    icon = models.CharField(max_length=50, blank=True)
    color = models.CharField(max_length=7, default="#3b82f6")
    sort_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "name", "id"]

    def __str__(self) -> str:
        return self.name


class TicketFormField(models.Model):
    """A field of a ticket type's form."""

    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    EMAIL = "email"
    PHONE = "phone"
    DATE = "date"
    DATETIME = "datetime"
    SELECT = "select"
    MULTISELECT = "multiselect"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    URL = "url"

    FIELD_TYPES = [
        (TEXT, "Text"),
        (TEXTAREA, "Text Area"),
        (NUMBER, "Number"),
        (EMAIL, "Email"),
        (PHONE, "Phone"),
        (DATE, "Date"),
        (DATETIME, "Date & Time"),
        (SELECT, "Select"),
        (MULTISELECT, "Multi Select"),
        (RADIO, "Radio"),
        (CHECKBOX, "Checkbox"),
        (URL, "URL"),
    ]

    CHOICE_TYPES = {SELECT, MULTISELECT, RADIO}

    ticket_type = models.ForeignKey(TicketType, related_name="fields", on_delete=models.CASCADE)
    name = models.CharField(max_length=100)
    label = models.CharField(max_length=200)
    field_type = models.CharField(max_length=32, choices=FIELD_TYPES, default=TEXT)
    required = models.BooleanField(default=False)
    order = models.PositiveIntegerField(default=0)
    placeholder = models.CharField(max_length=200, blank=True)
    options = models.JSONField(default=list, blank=True)
    min_length = models.PositiveIntegerField(null=True, blank=True)
    max_length = models.PositiveIntegerField(null=True, blank=True)
    min_value = models.FloatField(null=True, blank=True)
    max_value = models.FloatField(null=True, blank=True)

    class Meta:
        ordering = ["order", "id"]
        unique_together = ("ticket_type", "name")

    def __str__(self) -> str:
        return f"{self.label} ({self.field_type})"

    @property
    def option_values(self) -> list:
        values = []
        for option in self.options or []:
            if isinstance(option, dict):
                values.append(str(option.get("value", option.get("label", ""))))
            else:
                values.append(str(option))
        return values


class TicketCategory(models.Model):
    """A functional area tickets are filed under, split into modules."""

    company = models.ForeignKey(
        "accounts.Company", related_name="ticket_categories", on_delete=models.CASCADE
    )
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    icon = models.CharField(max_length=50, blank=True)
    color = models.CharField(max_length=7, default="#6b7280")
    sort_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "name", "id"]
        verbose_name_plural = "ticket categories"

    def __str__(self) -> str:
        return self.name


class TicketCategoryModule(models.Model):
    category = models.ForeignKey(TicketCategory, related_name="modules", on_delete=models.CASCADE)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    icon = models.CharField(max_length=50, blank=True)
    sort_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["sort_order", "name", "id"]

    def __str__(self) -> str:
        return f"{self.category.name} / {self.name}"
