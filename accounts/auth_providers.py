"""
External auth providers.

The provider is the system of record for credentials. Profile and role data
live in the profile store. Each provider instance represents one client
session: ``current_identity_id`` is whoever is signed in through it, and
credential state changes are pushed to ``on_credential_state_change``
listeners.

Providers:
- DjangoAuthProvider: credentials in ``django.contrib.auth``, tokens signed
  with ``django.core.signing``. ``auto_sign_in=True`` reproduces client SDKs
  that switch the session to a freshly created credential.
- FirebaseAuthProvider: Firebase Authentication through ``firebase-admin``
  plus the Identity Toolkit REST endpoint for password sign-in.
"""
from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

import firebase_admin
import requests
from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core import signing
from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone
from django.utils.crypto import constant_time_compare, salted_hmac
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials as firebase_credentials
from firebase_admin import exceptions as firebase_exceptions

from .exceptions import DuplicateEmail, InvalidCredentials, StoreUnreachable, WeakCredential

logger = logging.getLogger(__name__)

SIGNED_IN = "signed_in"
RESTORED = "restored"
SIGNED_OUT = "signed_out"


@dataclass(frozen=True)
class CredentialEvent:
    kind: str
    identity_id: Optional[str] = None
    email: str = ""


@dataclass(frozen=True)
class Credential:
    identity_id: str
    email: str


@dataclass(frozen=True)
class ProviderSession:
    identity_id: str
    email: str
    token: str


CredentialListener = Callable[[CredentialEvent], None]


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class AuthProvider:
    """Session bookkeeping shared by concrete providers."""

    auto_signs_in_on_create = False

    def __init__(self) -> None:
        self._listeners: List[CredentialListener] = []
        self._muted = 0
        self._session: Optional[ProviderSession] = None

    # -- credential management (subclasses) ------------------------------

    def create_credential(self, email: str, password: str) -> str:
        raise NotImplementedError

    def get_credential(self, identity_id: str) -> Optional[Credential]:
        raise NotImplementedError

    def delete_credential(self, identity_id: str) -> None:
        raise NotImplementedError

    def update_email(self, identity_id: str, email: str) -> None:
        raise NotImplementedError

    def _authenticate(self, email: str, password: str) -> ProviderSession:
        raise NotImplementedError

    def _verify_token(self, token: str) -> ProviderSession:
        raise NotImplementedError

    def _revoke(self, session: ProviderSession) -> None:
        """Invalidate server-side state for ``session``; no-op by default."""

    # -- session ----------------------------------------------------------

    @property
    def current_identity_id(self) -> Optional[str]:
        return self._session.identity_id if self._session else None

    def current_session(self) -> Optional[ProviderSession]:
        return self._session

    def sign_in(self, email: str, password: str) -> str:
        session = self._authenticate(normalize_email(email), password)
        self._switch(session, SIGNED_IN)
        return session.identity_id

    def restore(self, token: str) -> str:
        session = self._verify_token(token)
        self._switch(session, RESTORED)
        return session.identity_id

    def restore_session(self, session: ProviderSession) -> None:
        self._switch(session, RESTORED)

    def sign_out(self) -> None:
        session = self._session
        if session is None:
            return
        try:
            self._revoke(session)
        finally:
            self._session = None
            self._notify(CredentialEvent(SIGNED_OUT, session.identity_id, session.email))

    def _switch(self, session: ProviderSession, kind: str) -> None:
        self._session = session
        self._notify(CredentialEvent(kind, session.identity_id, session.email))

    # -- notifications ----------------------------------------------------

    def on_credential_state_change(self, callback: CredentialListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    @contextmanager
    def suppressed_notifications(self) -> Iterator[None]:
        """Drop credential events raised inside the block."""
        self._muted += 1
        try:
            yield
        finally:
            self._muted -= 1

    def _notify(self, event: CredentialEvent) -> None:
        if self._muted:
            logger.debug("Suppressed credential event %s for %s", event.kind, event.identity_id)
            return
        for listener in list(self._listeners):
            listener(event)


class DjangoAuthProvider(AuthProvider):
    """Credentials stored as ``django.contrib.auth`` users keyed by identity id.

    Tokens carry a fingerprint of the password hash and ``last_login``;
    signing out bumps ``last_login``, which revokes every token issued to
    the credential so far.
    """

    token_salt = "accounts.session"

    def __init__(self, auto_sign_in: Optional[bool] = None) -> None:
        super().__init__()
        if auto_sign_in is None:
            auto_sign_in = settings.IDENTITY_AUTO_SIGN_IN
        self.auto_signs_in_on_create = auto_sign_in
        self._users = get_user_model()

    def create_credential(self, email: str, password: str) -> str:
        email = normalize_email(email)
        try:
            validate_password(password)
        except ValidationError as exc:
            raise WeakCredential(exc.messages) from exc

        identity_id = uuid.uuid4().hex
        try:
            with transaction.atomic():
                if self._users.objects.filter(email__iexact=email).exists():
                    raise DuplicateEmail()
                user = self._users.objects.create_user(username=identity_id, email=email, password=password)
        except IntegrityError as exc:
            raise DuplicateEmail() from exc
        except DatabaseError as exc:
            raise StoreUnreachable() from exc

        logger.info("Created credential %s", identity_id)
        if self.auto_signs_in_on_create:
            self._switch(self._issue(user), SIGNED_IN)
        return identity_id

    def get_credential(self, identity_id: str) -> Optional[Credential]:
        try:
            user = self._users.objects.filter(username=identity_id).first()
        except DatabaseError as exc:
            raise StoreUnreachable() from exc
        if user is None:
            return None
        return Credential(identity_id=user.get_username(), email=user.email)

    def delete_credential(self, identity_id: str) -> None:
        try:
            self._users.objects.filter(username=identity_id).delete()
        except DatabaseError as exc:
            raise StoreUnreachable() from exc

    def update_email(self, identity_id: str, email: str) -> None:
        email = normalize_email(email)
        try:
            with transaction.atomic():
                if self._users.objects.filter(email__iexact=email).exclude(username=identity_id).exists():
                    raise DuplicateEmail()
                self._users.objects.filter(username=identity_id).update(email=email)
        except IntegrityError as exc:
            raise DuplicateEmail() from exc
        except DatabaseError as exc:
            raise StoreUnreachable() from exc

    def _fingerprint(self, user) -> str:
        revoked_at = "" if user.last_login is None else user.last_login.isoformat()
        value = f"{user.pk}{user.password}{revoked_at}"
        return salted_hmac(self.token_salt, value, algorithm="sha256").hexdigest()

    def _issue(self, user) -> ProviderSession:
        token = signing.dumps(
            {"uid": user.get_username(), "fp": self._fingerprint(user)}, salt=self.token_salt
        )
        return ProviderSession(identity_id=user.get_username(), email=user.email, token=token)

    def _authenticate(self, email: str, password: str) -> ProviderSession:
        user = self._users.objects.filter(email__iexact=email).first()
        if user is None or not user.check_password(password):
            raise InvalidCredentials()
        return self._issue(user)

    def _verify_token(self, token: str) -> ProviderSession:
        try:
            payload = signing.loads(token, salt=self.token_salt, max_age=settings.IDENTITY_TOKEN_MAX_AGE)
        except signing.BadSignature as exc:
            raise InvalidCredentials() from exc
        user = self._users.objects.filter(username=payload.get("uid")).first()
        if user is None or not constant_time_compare(payload.get("fp", ""), self._fingerprint(user)):
            raise InvalidCredentials()
        return ProviderSession(identity_id=user.get_username(), email=user.email, token=token)

    def _revoke(self, session: ProviderSession) -> None:
        try:
            self._users.objects.filter(username=session.identity_id).update(last_login=timezone.now())
        except DatabaseError as exc:
            raise StoreUnreachable() from exc


class FirebaseAuthProvider(AuthProvider):
    """Firebase Authentication, administered server-side.

    The Admin SDK never signs the caller in as the account it creates, so
    ``auto_signs_in_on_create`` stays False.
    """

    SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
    APP_NAME = "wivi-identity"

    def __init__(self, app: Optional[firebase_admin.App] = None) -> None:
        super().__init__()
        self._app = app

    @property
    def app(self) -> firebase_admin.App:
        if self._app is None:
            try:
                self._app = firebase_admin.get_app(self.APP_NAME)
            except ValueError:
                if settings.FIREBASE_CREDENTIALS:
                    credential = firebase_credentials.Certificate(settings.FIREBASE_CREDENTIALS)
                else:
                    credential = firebase_credentials.ApplicationDefault()
                self._app = firebase_admin.initialize_app(credential, name=self.APP_NAME)
        return self._app

    def create_credential(self, email: str, password: str) -> str:
        try:
            record = firebase_auth.create_user(
                email=normalize_email(email), password=password, app=self.app
            )
        except firebase_auth.EmailAlreadyExistsError as exc:
            raise DuplicateEmail() from exc
        except ValueError as exc:
            raise WeakCredential([str(exc)]) from exc
        except firebase_exceptions.FirebaseError as exc:
            raise StoreUnreachable() from exc
        logger.info("Created credential %s", record.uid)
        return record.uid

    def get_credential(self, identity_id: str) -> Optional[Credential]:
        try:
            record = firebase_auth.get_user(identity_id, app=self.app)
        except firebase_auth.UserNotFoundError:
            return None
        except firebase_exceptions.FirebaseError as exc:
            raise StoreUnreachable() from exc
        return Credential(identity_id=record.uid, email=record.email or "")

    def delete_credential(self, identity_id: str) -> None:
        try:
            firebase_auth.delete_user(identity_id, app=self.app)
        except firebase_auth.UserNotFoundError:
            logger.info("Credential %s was already gone", identity_id)
        except firebase_exceptions.FirebaseError as exc:
            raise StoreUnreachable() from exc

    def update_email(self, identity_id: str, email: str) -> None:
        try:
            firebase_auth.update_user(identity_id, email=normalize_email(email), app=self.app)
        except firebase_auth.EmailAlreadyExistsError as exc:
            raise DuplicateEmail() from exc
        except firebase_exceptions.FirebaseError as exc:
            raise StoreUnreachable() from exc

    def _authenticate(self, email: str, password: str) -> ProviderSession:
        try:
            response = requests.post(
                self.SIGN_IN_URL,
                params={"key": settings.FIREBASE_WEB_API_KEY},
                json={"email": email, "password": password, "returnSecureToken": True},
                timeout=settings.SERVICE_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise StoreUnreachable() from exc

        payload = _json_or_empty(response)
        if response.status_code != 200:
            message = str(payload.get("error", {}).get("message", ""))
            if response.status_code >= 500 or message.startswith("TOO_MANY_ATTEMPTS"):
                raise StoreUnreachable()
            raise InvalidCredentials()
        return ProviderSession(
            identity_id=payload["localId"],
            email=payload.get("email", email),
            token=payload["idToken"],
        )

    def _verify_token(self, token: str) -> ProviderSession:
        try:
            claims = firebase_auth.verify_id_token(token, app=self.app, check_revoked=True)
        except (firebase_auth.InvalidIdTokenError, firebase_auth.UserDisabledError, ValueError) as exc:
            raise InvalidCredentials() from exc
        except firebase_exceptions.FirebaseError as exc:
            raise StoreUnreachable() from exc
        return ProviderSession(identity_id=claims["uid"], email=claims.get("email", ""), token=token)

    def _revoke(self, session: ProviderSession) -> None:
        try:
            firebase_auth.revoke_refresh_tokens(session.identity_id, app=self.app)
        except firebase_auth.UserNotFoundError:
            pass
        except firebase_exceptions.FirebaseError:
            logger.exception("Could not revoke tokens for %s", session.identity_id)


def _json_or_empty(response: requests.Response) -> dict:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}
