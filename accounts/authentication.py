"""DRF authentication through the session resolver."""
from __future__ import annotations

from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework.exceptions import AuthenticationFailed

from .exceptions import InvalidCredentials, ProfileNotFound
from .services import build_auth_provider, build_session


class IdentityTokenAuthentication(BaseAuthentication):
    """``Authorization: Bearer <token>``, restored through a fresh resolver.

    The resolver is attached to the request as ``request.identity_session``
    so views act on the same provider session.
    """

    keyword = b"bearer"

    def authenticate(self, request):
        header = get_authorization_header(request).split()
        if not header or header[0].lower() != self.keyword:
            return None
        if len(header) != 2:
            raise AuthenticationFailed("Invalid bearer header.")

        try:
            token = header[1].decode()
        except UnicodeError as exc:
            raise AuthenticationFailed("Invalid bearer token characters.") from exc

        session = build_session(build_auth_provider())
        try:
            identity = session.restore(token)
        except (InvalidCredentials, ProfileNotFound) as exc:
            raise AuthenticationFailed(str(exc.detail)) from exc

        request._request.identity_session = session
        return identity, token

    def authenticate_header(self, request) -> str:
        return "Bearer"
