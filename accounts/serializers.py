"""Serializers for identity records."""
from __future__ import annotations

from rest_framework import serializers

from .models import Account

ASSIGNABLE_ROLES = [(Account.ADMIN, "Administrator"), (Account.USER, "User")]


class ConnectionSerializer(serializers.Serializer):
    street = serializers.CharField(required=False, allow_blank=True, default="")
    city = serializers.CharField(required=False, allow_blank=True, default="")
    apartment = serializers.CharField(required=False, allow_blank=True, default="")


class AccountSerializer(serializers.ModelSerializer):
    class Meta:
        model = Account
        fields = [
            "uid",
            "username",
            "email",
            "role",
            "is_active",
            "phone",
            "company",
            "connection",
            "created_from",
            "created_at",
            "updated_at",
            "last_login",
        ]
        read_only_fields = fields


class AccountCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)
    username = serializers.CharField(max_length=255)
    role = serializers.ChoiceField(choices=ASSIGNABLE_ROLES, default=Account.USER)
    is_active = serializers.BooleanField(default=True)
    phone = serializers.CharField(max_length=64, required=False, allow_blank=True)
    company = serializers.CharField(max_length=255, required=False, allow_blank=True)


class AccountUpdateSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=255, required=False)
    email = serializers.EmailField(required=False)
    role = serializers.ChoiceField(choices=ASSIGNABLE_ROLES, required=False)
    is_active = serializers.BooleanField(required=False)
    phone = serializers.CharField(max_length=64, required=False, allow_blank=True)
    company = serializers.CharField(max_length=255, required=False, allow_blank=True)
    connection = ConnectionSerializer(required=False, allow_null=True)


class OrphanRetrySerializer(serializers.Serializer):
    username = serializers.CharField(max_length=255)
    role = serializers.ChoiceField(choices=ASSIGNABLE_ROLES, default=Account.USER)
    is_active = serializers.BooleanField(default=True)


class BootstrapSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)
    username = serializers.CharField(max_length=255, default="Admin")


class SignInSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class IdentitySerializer(serializers.Serializer):
    uid = serializers.CharField()
    email = serializers.EmailField()
    username = serializers.CharField()
    role = serializers.CharField()
    is_active = serializers.BooleanField()
