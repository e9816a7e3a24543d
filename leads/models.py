"""Database models for captured leads."""
from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone


class Submission(models.Model):
    """A contact-form lead that may be promoted to an account."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    email = models.EmailField()
    phone = models.CharField(max_length=64, blank=True)
    company = models.CharField(max_length=255, blank=True)
    message = models.TextField(blank=True)
    timestamp = models.DateTimeField(default=timezone.now)
    converted = models.BooleanField(default=False)

    class Meta:
        ordering = ["-timestamp"]
        indexes = [models.Index(fields=["converted"], name="leads_submission_conv_idx")]

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"
