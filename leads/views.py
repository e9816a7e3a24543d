"""API views for captured leads."""
from __future__ import annotations

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from accounts import policy
from accounts.serializers import AccountSerializer
from accounts.services import build_provisioner
from accounts.stores import DjangoProfileStore

from .conversion import SubmissionConverter
from .models import Submission
from .serializers import ConversionRequestSerializer, SubmissionSerializer
from .stores import DjangoSubmissionStore


class SubmissionViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Submission.objects.all()
    serializer_class = SubmissionSerializer
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["name", "email", "company", "message"]
    ordering_fields = ["timestamp", "name"]
    ordering = ["-timestamp"]

    def get_permissions(self):  # type: ignore[override]
        if self.action == "create":
            return [AllowAny()]
        return [IsAuthenticated()]

    def initial(self, request, *args, **kwargs):  # type: ignore[override]
        super().initial(request, *args, **kwargs)
        if self.action not in {"create", "convert"}:
            identity = request.user
            policy.require(
                identity.role,
                policy.MANAGE_SUBMISSIONS,
                actor_id=identity.uid,
                actor_active=identity.is_active,
            )

    @action(detail=True, methods=["post"], url_path="convert")
    def convert(self, request: Request, pk=None):  # type: ignore[override]
        """Create an account from this submission."""

        serializer = ConversionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        profiles = DjangoProfileStore()
        converter = SubmissionConverter(
            build_provisioner(request.identity_session.auth),
            DjangoSubmissionStore(),
            profiles,
        )
        uid = converter.convert(
            request.user.role, pk, serializer.validated_data, requester_id=request.user.uid
        )
        return Response(AccountSerializer(profiles.get(uid)).data, status=status.HTTP_201_CREATED)
