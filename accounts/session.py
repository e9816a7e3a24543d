"""
Per-client session resolution.

A ``SessionResolver`` listens to one auth provider session and binds each
credential event to the identity's profile record:

    signed_out -> authenticating -> resolving -> resolved
                                              -> invalid

A credential without a profile is never trusted: the resolver moves to
``invalid``, signs the credential out and clears the current identity.
Observers registered with ``subscribe`` are called on every transition.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from django.utils import timezone

from .auth_providers import SIGNED_IN, SIGNED_OUT, AuthProvider, CredentialEvent
from .exceptions import AccountError, ProfileNotFound, StoreUnreachable
from .models import Account

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    SIGNED_OUT = "signed_out"
    AUTHENTICATING = "authenticating"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    INVALID = "invalid"


@dataclass(frozen=True)
class Identity:
    """Credential facts merged with the profile record."""

    uid: str
    email: str
    username: str
    role: str
    is_active: bool
    profile: Dict[str, Any] = field(default_factory=dict, compare=False)

    # Lets DRF treat the identity as ``request.user``.
    is_authenticated = True

    @classmethod
    def from_profile(cls, uid: str, email: str, account: Account) -> "Identity":
        return cls(
            uid=uid,
            email=email or account.email,
            username=account.username,
            role=account.role,
            is_active=account.is_active,
            profile={
                "phone": account.phone,
                "company": account.company,
                "connection": account.connection,
                "created_from": account.created_from,
                "created_at": account.created_at,
                "last_login": account.last_login,
            },
        )


SessionObserver = Callable[[SessionState, Optional[Identity]], None]


class SessionResolver:
    def __init__(
        self,
        auth: AuthProvider,
        profiles,
        clock: Callable[[], Any] = timezone.now,
    ) -> None:
        self.auth = auth
        self.profiles = profiles
        self.clock = clock
        self.state = SessionState.SIGNED_OUT
        self.identity: Optional[Identity] = None
        self.last_error: Optional[AccountError] = None
        self._observers: List[SessionObserver] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    def start(self) -> "SessionResolver":
        if self._unsubscribe is None:
            self._unsubscribe = self.auth.on_credential_state_change(self.handle)
        return self

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def subscribe(self, observer: SessionObserver) -> Callable[[], None]:
        """Register ``observer`` for every transition; returns an unsubscribe callable."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # Convenience wrappers; the provider events drive the actual transitions.

    def sign_in(self, email: str, password: str) -> Identity:
        self.start()
        self.auth.sign_in(email, password)
        return self._require_identity()

    def restore(self, token: str) -> Identity:
        self.start()
        self.auth.restore(token)
        return self._require_identity()

    def sign_out(self) -> None:
        self.start()
        self.auth.sign_out()
        if self.state is not SessionState.SIGNED_OUT:
            self._transition(SessionState.SIGNED_OUT, None)

    def _require_identity(self) -> Identity:
        if self.identity is None:
            raise self.last_error or ProfileNotFound()
        return self.identity

    def handle(self, event: CredentialEvent) -> None:
        if event.kind == SIGNED_OUT:
            self._transition(SessionState.SIGNED_OUT, None)
            return

        self.last_error = None
        self._transition(SessionState.AUTHENTICATING, None)
        self._transition(SessionState.RESOLVING, None)

        try:
            account = self.profiles.get(event.identity_id)
        except StoreUnreachable as exc:
            logger.warning("Could not load profile for %s: %s", event.identity_id, exc)
            self.last_error = exc
            self._transition(SessionState.SIGNED_OUT, None)
            return

        if account is None:
            self._invalidate(event.identity_id)
            return

        if event.kind == SIGNED_IN:
            self._stamp_login(account)
        self._transition(
            SessionState.RESOLVED, Identity.from_profile(event.identity_id, event.email, account)
        )

    def _invalidate(self, identity_id: Optional[str]) -> None:
        logger.warning(
            "Identity %s has a credential but no profile record; signing it out",
            identity_id,
            extra={"identity_id": identity_id},
        )
        self.last_error = ProfileNotFound()
        self._transition(SessionState.INVALID, None)
        with self.auth.suppressed_notifications():
            self.auth.sign_out()

    def _stamp_login(self, account: Account) -> None:
        try:
            updated = self.profiles.update(account.uid, {"last_login": self.clock()})
        except AccountError:
            logger.warning("Could not record last login for %s", account.uid, exc_info=True)
            return
        account.last_login = updated.last_login

    def _transition(self, state: SessionState, identity: Optional[Identity]) -> None:
        self.state = state
        self.identity = identity
        logger.debug("Session moved to %s", state.value)
        for observer in list(self._observers):
            observer(state, identity)
