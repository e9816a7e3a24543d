"""API views for the identity service."""
from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import api_view
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from . import policy
from .bootstrap import admin_exists
from .serializers import (
    AccountCreateSerializer,
    AccountSerializer,
    AccountUpdateSerializer,
    BootstrapSerializer,
    IdentitySerializer,
    OrphanRetrySerializer,
    SignInSerializer,
)
from .services import build_auth_provider, build_provisioner, build_session, get_directory
from .stores import DjangoProfileStore

STALE_RETRY_AFTER_SECONDS = 30


def _require_admin(request: Request, action: str) -> None:
    identity = request.user
    policy.require(identity.role, action, actor_id=identity.uid, actor_active=identity.is_active)


class BootstrapView(APIView):
    permission_classes = [AllowAny]

    def get(self, request: Request) -> Response:
        return Response({"admin_exists": admin_exists(DjangoProfileStore())})

    def post(self, request: Request) -> Response:
        serializer = BootstrapSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        provisioner = build_provisioner(build_auth_provider())
        uid = provisioner.bootstrap_admin(**serializer.validated_data)
        return Response({"uid": uid}, status=status.HTTP_201_CREATED)


class SessionView(APIView):
    def get_permissions(self):  # type: ignore[override]
        if self.request.method == "POST":
            return [AllowAny()]
        return [IsAuthenticated()]

    def post(self, request: Request) -> Response:
        """Sign in with email and password."""

        serializer = SignInSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        auth = build_auth_provider()
        identity = build_session(auth).sign_in(**serializer.validated_data)
        return Response(
            {"token": auth.current_session().token, "identity": IdentitySerializer(identity).data}
        )

    def get(self, request: Request) -> Response:
        return Response(IdentitySerializer(request.user).data)

    def delete(self, request: Request) -> Response:
        request.identity_session.sign_out()
        return Response(status=status.HTTP_204_NO_CONTENT)


class AccountViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]
    lookup_field = "uid"

    def list(self, request: Request) -> Response:
        listing = get_directory().list(request.user)
        response = Response(AccountSerializer(listing.accounts, many=True).data)
        if listing.stale:
            response["X-Directory-Stale"] = "true"
            response["Retry-After"] = str(STALE_RETRY_AFTER_SECONDS)
        return response

    def retrieve(self, request: Request, uid: str = None) -> Response:
        account = get_directory().get(request.user, uid)
        return Response(AccountSerializer(account).data)

    def create(self, request: Request) -> Response:
        serializer = AccountCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        provisioner = build_provisioner(request.identity_session.auth)
        uid = provisioner.create_user(
            request.user.role, serializer.validated_data, requester_id=request.user.uid
        )
        account = DjangoProfileStore().get(uid)
        return Response(AccountSerializer(account).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request: Request, uid: str = None) -> Response:
        serializer = AccountUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        account = get_directory().update(
            request.user, request.identity_session.auth, uid, serializer.validated_data
        )
        return Response(AccountSerializer(account).data)

    def destroy(self, request: Request, uid: str = None) -> Response:
        get_directory().delete(request.user, request.identity_session.auth, uid)
        return Response(status=status.HTTP_204_NO_CONTENT)


class OrphanedCredentialView(APIView):
    """Settle a credential left without a profile by a failed provisioning."""

    permission_classes = [IsAuthenticated]

    def post(self, request: Request, uid: str) -> Response:
        _require_admin(request, policy.CREATE_USER)
        serializer = OrphanRetrySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        provisioner = build_provisioner(request.identity_session.auth)
        provisioner.retry_orphan(uid, serializer.validated_data)
        account = DjangoProfileStore().get(uid)
        return Response(AccountSerializer(account).data, status=status.HTTP_201_CREATED)

    def delete(self, request: Request, uid: str) -> Response:
        _require_admin(request, policy.CREATE_USER)
        build_provisioner(request.identity_session.auth).discard_orphan(uid)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(["GET"])
def health(request):  # type: ignore[override]
    """Readiness endpoint for orchestration tooling."""

    return Response({"status": "ok"})
