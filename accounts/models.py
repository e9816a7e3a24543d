"""Database models for the identity service."""
from __future__ import annotations

from django.db import models
from django.utils import timezone


class Account(models.Model):
    """Profile and role record for one identity held by the auth provider."""

    ADMIN = "admin"
    USER = "user"
    # Stored by older dashboard builds; grants nothing.
    SUPER = "super"

    ROLE_CHOICES = [
        (ADMIN, "Administrator"),
        (USER, "User"),
        (SUPER, "Super (legacy)"),
    ]

    uid = models.CharField(max_length=128, primary_key=True)
    username = models.CharField(max_length=255)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=32, choices=ROLE_CHOICES, default=USER)
    is_active = models.BooleanField(default=True)
    phone = models.CharField(max_length=64, blank=True)
    company = models.CharField(max_length=255, blank=True)
    connection = models.JSONField(null=True, blank=True)
    created_from = models.UUIDField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(auto_now=True)
    last_login = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["username", "email"]
        indexes = [models.Index(fields=["role"], name="accounts_account_role_idx")]

    def __str__(self) -> str:
        return f"{self.username} <{self.email}>"

    @property
    def is_admin(self) -> bool:
        return self.role == self.ADMIN


class BootstrapClaim(models.Model):
    """Row lock held while the first administrator is being provisioned."""

    ADMIN = "admin"

    key = models.CharField(max_length=32, unique=True)
    claimed_at = models.DateTimeField(default=timezone.now)

    def __str__(self) -> str:
        return f"{self.key} claimed at {self.claimed_at:%Y-%m-%d %H:%M:%S}"
