"""Create a company together with its first administrator."""
from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from accounts.models import Company, User


class Command(BaseCommand):
    help = "Create a company and its first administrator account"

    def add_arguments(self, parser) -> None:
        parser.add_argument("name", help="Company name")
        parser.add_argument("--username", required=True)
        parser.add_argument("--password", required=True)
        parser.add_argument("--email", default="")
        parser.add_argument("--first-name", default="")
        parser.add_argument("--last-name", default="")

    def handle(self, *args, **options):
        if User.objects.filter(username__iexact=options["username"]).exists():
            raise CommandError(f"User '{options['username']}' already exists")

        with transaction.atomic():
            company = Company.objects.create(name=options["name"], email=options["email"])
            admin = User(
                username=options["username"],
                email=options["email"],
                first_name=options["first_name"],
                last_name=options["last_name"],
                role=User.ADMIN,
                company=company,
            )
            admin.set_password(options["password"])
            admin.save()

        self.stdout.write(
            self.style.SUCCESS(f"Created company {company.id} with administrator '{admin.username}'")
        )
