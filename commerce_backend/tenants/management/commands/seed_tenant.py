# tenants/management/commands/seed_tenant.py

"""
PATH: tenants/management/commands/seed_tenant.py

Bootstrap a company and one staff account per role.

- Idempotent: the tenant is looked up by code, users by email.
- Re-running fixes role/tenant drift on existing users.
- Passwords are only set on create unless --force-password is given.
"""

from __future__ import annotations

from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from permissions.roles import (
    ROLE_ACCOUNTANT,
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_PURCHASING,
    ROLE_SALES,
    ROLE_WAREHOUSE,
)
from tenants.models import Tenant


@dataclass(frozen=True)
class SeedUser:
    label: str
    role: str


SEED_USERS = [
    SeedUser("Admin", ROLE_ADMIN),
    SeedUser("Manager", ROLE_MANAGER),
    SeedUser("Accountant", ROLE_ACCOUNTANT),
    SeedUser("Sales", ROLE_SALES),
    SeedUser("Purchasing", ROLE_PURCHASING),
    SeedUser("Warehouse", ROLE_WAREHOUSE),
]


def _seed_email(role: str, code: str, domain: str) -> str:
    return f"{role}.{code.lower()}@{domain}"


def _upsert_user(*, User, tenant, seed: SeedUser, email: str, password: str, force_password: bool):
    user = User.objects.filter(email=email).first()
    if user is None:
        user = User.objects.create_user(
            email=email,
            password=password,
            role=seed.role,
            tenant=tenant,
            first_name=seed.label,
            is_staff=seed.role == ROLE_ADMIN,
        )
        return user, True

    fields = []
    if user.role != seed.role:
        user.role = seed.role
        fields.append("role")
    if user.tenant_id != tenant.id:
        user.tenant = tenant
        fields.append("tenant")
    if force_password:
        user.set_password(password)
        fields.append("password")

    if fields:
        user.save(update_fields=fields)
    return user, False


class Command(BaseCommand):
    help = "Seed a tenant and one staff user per role (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--code", type=str, default="DEMO", help="Tenant code (default: DEMO)")
        parser.add_argument("--name", type=str, default="", help="Tenant name (default: derived from code)")
        parser.add_argument("--currency", type=str, default="TND", help="Tenant currency (default: TND)")
        parser.add_argument(
            "--domain",
            type=str,
            default="example.com",
            help="Email domain for seeded users (default: example.com)",
        )
        parser.add_argument(
            "--password",
            type=str,
            default="Pass1234!",
            help="Password for seeded users (default: Pass1234!)",
        )
        parser.add_argument(
            "--force-password",
            action="store_true",
            help="If set, resets password for existing seeded users too.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        code = (options.get("code") or "").strip().upper()
        password = options.get("password") or ""
        domain = (options.get("domain") or "").strip().lower()
        force_password = bool(options.get("force_password"))

        if not code:
            raise CommandError("--code must not be empty.")
        if not domain:
            raise CommandError("--domain must not be empty.")
        if len(password) < 6:
            raise CommandError("--password must be at least 6 characters.")

        tenant, tenant_created = Tenant.objects.get_or_create(
            code=code,
            defaults={
                "name": (options.get("name") or "").strip() or f"{code.title()} Company",
                "currency": (options.get("currency") or "TND").strip().upper(),
            },
        )
        if tenant_created:
            self.stdout.write(f"created tenant: {tenant}")
        else:
            self.stdout.write(f"tenant exists:  {tenant}")

        User = get_user_model()
        created_count = 0

        for seed in SEED_USERS:
            email = _seed_email(seed.role, code, domain)
            _, created = _upsert_user(
                User=User,
                tenant=tenant,
                seed=seed,
                email=email,
                password=password,
                force_password=force_password,
            )
            if created:
                created_count += 1
                self.stdout.write(f"created: {email} ({seed.role})")
            else:
                self.stdout.write(f"exists:  {email} ({seed.role})")

        self.stdout.write("\n--- Summary ---")
        self.stdout.write(f"Created users: {created_count}")
        if force_password:
            self.stdout.write("Passwords reset for existing users.")
