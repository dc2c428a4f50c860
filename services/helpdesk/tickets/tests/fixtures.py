"""Shared builders for ticket tests."""
from __future__ import annotations

from types import SimpleNamespace

from django.utils.text import slugify

from accounts.models import Company, Customer, User
from catalog.models import TicketCategory, TicketCategoryModule, TicketFormField, TicketType
from tickets.models import Ticket, TicketNumberSequence

PASSWORD = "correct-horse-battery"


class HelpdeskFixtures:
    def build_tenant(self, name: str = "Acme IT") -> SimpleNamespace:
        slug = slugify(name)
        company = Company.objects.create(name=name, email=f"support@{slug}.example.com")
        customer = Customer.objects.create(
            company=company,
            name=f"{name} Retail",
            contact_email=f"contact@{slug}-retail.example.com",
        )
        other_customer = Customer.objects.create(
            company=company,
            name=f"{name} Logistics",
            contact_email=f"contact@{slug}-logistics.example.com",
        )
        admin = User.objects.create_user(
            username=f"{slug}-admin",
            password=PASSWORD,
            email=f"admin@{slug}.example.com",
            first_name="Ada",
            last_name="Admin",
            role=User.ADMIN,
            company=company,
        )
        requester = User.objects.create_user(
            username=f"{slug}-requester",
            password=PASSWORD,
            email=f"requester@{slug}-retail.example.com",
            first_name="Rita",
            last_name="Requester",
            role=User.CUSTOMER,
            company=company,
            customer=customer,
        )
        other_requester = User.objects.create_user(
            username=f"{slug}-other",
            password=PASSWORD,
            role=User.CUSTOMER,
            company=company,
            customer=other_customer,
        )
        ticket_type = TicketType.objects.create(company=company, name="Access Request", color="#8b5cf6")
        TicketFormField.objects.create(
            ticket_type=ticket_type,
            name="system",
            label="System",
            field_type=TicketFormField.SELECT,
            required=True,
            order=0,
            options=["ERP", "CRM"],
        )
        TicketFormField.objects.create(
            ticket_type=ticket_type,
            name="users_affected",
            label="Users affected",
            field_type=TicketFormField.NUMBER,
            order=1,
            min_value=1,
            max_value=500,
        )
        category = TicketCategory.objects.create(company=company, name="Applications")
        module = TicketCategoryModule.objects.create(category=category, name="Finance")
        return SimpleNamespace(
            company=company,
            customer=customer,
            other_customer=other_customer,
            admin=admin,
            requester=requester,
            other_requester=other_requester,
            ticket_type=ticket_type,
            category=category,
            module=module,
        )

    def make_ticket(self, tenant: SimpleNamespace, status: str = Ticket.UNDER_REVIEW, **overrides) -> Ticket:
        values = {
            "company": tenant.company,
            "customer": tenant.customer,
            "ticket_type": tenant.ticket_type,
            "category": tenant.category,
            "created_by": tenant.requester,
            "ticket_number": TicketNumberSequence.next_number(tenant.company.id),
            "title": "Cannot reach the ERP",
            "description": "Login page times out.",
            "form_data": {"system": "ERP", "users_affected": 3},
        }
        values.update(overrides)
        ticket = Ticket.objects.create(**values)
        self.advance(ticket, tenant.admin, status)
        return ticket

    def advance(self, ticket: Ticket, actor: User, status: str) -> Ticket:
        """Drive a fresh ticket to ``status`` through the lifecycle operations."""

        if status == Ticket.UNDER_REVIEW:
            return ticket
        if status == Ticket.REJECTED:
            ticket.reject(actor.pk, "Duplicate request")
            return ticket
        ticket.approve(actor.pk)
        if status == Ticket.IN_PROGRESS:
            return ticket
        ticket.resolve(actor.pk, "Fixed")
        if status == Ticket.RESOLVED:
            return ticket
        ticket.close(actor.pk)
        return ticket
