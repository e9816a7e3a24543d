"""Serializers for captured leads."""
from __future__ import annotations

from rest_framework import serializers

from accounts.serializers import ASSIGNABLE_ROLES

from .models import Submission


class SubmissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Submission
        fields = [
            "id",
            "name",
            "email",
            "phone",
            "company",
            "message",
            "timestamp",
            "converted",
        ]
        read_only_fields = ["id", "timestamp", "converted"]


class ConversionRequestSerializer(serializers.Serializer):
    password = serializers.CharField(write_only=True, trim_whitespace=False)
    email = serializers.EmailField(required=False)
    username = serializers.CharField(max_length=255, required=False)
    role = serializers.ChoiceField(choices=ASSIGNABLE_ROLES, required=False)
