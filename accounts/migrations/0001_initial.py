# Generated manually for initial schema.
from __future__ import annotations

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Account",
            fields=[
                ("uid", models.CharField(max_length=128, primary_key=True, serialize=False)),
                ("username", models.CharField(max_length=255)),
                ("email", models.EmailField(max_length=254, unique=True)),
                (
                    "role",
                    models.CharField(
                        choices=[("admin", "Administrator"), ("user", "User"), ("super", "Super (legacy)")],
                        default="user",
                        max_length=32,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("phone", models.CharField(blank=True, max_length=64)),
                ("company", models.CharField(blank=True, max_length=255)),
                ("connection", models.JSONField(blank=True, null=True)),
                ("created_from", models.UUIDField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("last_login", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["username", "email"],
                "indexes": [models.Index(fields=["role"], name="accounts_account_role_idx")],
            },
        ),
        migrations.CreateModel(
            name="BootstrapClaim",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=32, unique=True)),
                ("claimed_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
        ),
    ]
