"""
Account provisioning.

Creating an account touches two independent systems, the auth provider and
the profile store, with no shared transaction. Every path runs the same saga:

1. create the credential in the auth provider
2. undo the provider's auto sign-in, if it has one, so the acting session
   stays in place
3. write the profile record keyed by the new identity id

If step 3 fails the credential is orphaned. That surfaces as
``OrphanedCredential`` and can be settled with ``retry_orphan`` (write the
profile again) or ``discard_orphan`` (delete the credential).
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from django.utils import timezone

from . import policy
from .auth_providers import AuthProvider, ProviderSession, normalize_email
from .bootstrap import admin_exists, bootstrap_claim
from .exceptions import (
    AccountNotFound,
    AdminAlreadyExists,
    NotOrphaned,
    OrphanedCredential,
    SubmissionNotFound,
)
from .models import Account

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("username", "role", "is_active", "phone", "company", "connection")
RETRY_FIELDS = PROFILE_FIELDS + ("created_at", "created_from")


class AccountProvisioner:
    def __init__(
        self,
        auth: AuthProvider,
        profiles,
        submissions=None,
        clock: Callable[[], Any] = timezone.now,
    ) -> None:
        self.auth = auth
        self.profiles = profiles
        self.submissions = submissions
        self.clock = clock

    def bootstrap_admin(self, email: str, password: str, username: str = "Admin") -> str:
        """Create the first administrator; fails once any admin exists."""
        if admin_exists(self.profiles, strict=True):
            raise AdminAlreadyExists()

        with bootstrap_claim():
            if admin_exists(self.profiles, strict=True):
                raise AdminAlreadyExists()
            identity_id = self._provision(
                {"email": email, "password": password, "username": username, "role": Account.ADMIN}
            )

        logger.info("Bootstrapped admin account %s", identity_id)
        return identity_id

    def create_user(
        self,
        requester_role: str,
        fields: Dict[str, Any],
        requester_id: Optional[str] = None,
    ) -> str:
        """Create an account on behalf of an administrator."""
        policy.require(requester_role, policy.CREATE_USER, actor_id=requester_id)
        policy.require(requester_role, policy.SET_ROLE, actor_id=requester_id)
        identity_id = self._provision(fields)
        logger.info("Account %s created by %s", identity_id, requester_id or requester_role)
        return identity_id

    def convert_submission(
        self,
        requester_role: str,
        submission_id,
        fields: Dict[str, Any],
        requester_id: Optional[str] = None,
    ) -> str:
        """Create an account from a submission, then flag the submission converted."""
        policy.require(requester_role, policy.CONVERT_SUBMISSION, actor_id=requester_id)
        policy.require(requester_role, policy.SET_ROLE, actor_id=requester_id)
        if self.submissions.get(submission_id) is None:
            raise SubmissionNotFound()

        identity_id = self._provision(fields, created_from=submission_id)
        self.mark_converted(submission_id, identity_id)
        return identity_id

    def mark_converted(self, submission_id, identity_id: str) -> None:
        try:
            self.submissions.update(submission_id, {"converted": True})
        except Exception:
            logger.error(
                "Account %s was created from submission %s but the submission was not flagged",
                identity_id,
                submission_id,
            )
            raise
        logger.info("Submission %s converted to account %s", submission_id, identity_id)

    def retry_orphan(self, identity_id: str, profile: Dict[str, Any]) -> str:
        """Write the profile for an orphaned credential again.

        The email always comes from the credential, so the profile cannot
        drift from the auth provider.
        """
        self._require_orphan(identity_id)
        credential = self.auth.get_credential(identity_id)
        if credential is None:
            raise AccountNotFound("No credential exists for this identity.")

        profile = {key: value for key, value in profile.items() if key in RETRY_FIELDS}
        profile["email"] = normalize_email(credential.email)
        profile.setdefault("role", Account.USER)
        profile.setdefault("is_active", True)
        profile.setdefault("created_at", self.clock())
        self._write_profile(identity_id, profile)
        logger.info("Profile for orphaned credential %s written on retry", identity_id)
        return identity_id

    def discard_orphan(self, identity_id: str) -> None:
        """Delete a credential that has no profile record."""
        self._require_orphan(identity_id)
        self.auth.delete_credential(identity_id)
        logger.info("Discarded orphaned credential %s", identity_id)

    def _require_orphan(self, identity_id: str) -> None:
        if self.profiles.get(identity_id) is not None:
            raise NotOrphaned()

    def _provision(self, fields: Dict[str, Any], **extra: Any) -> str:
        fields = dict(fields)
        email = normalize_email(fields.pop("email"))
        password = fields.pop("password")

        actor_session = self.auth.current_session()
        with self.auth.suppressed_notifications():
            identity_id = self.auth.create_credential(email, password)
            self._undo_auto_sign_in(identity_id, actor_session)

        profile = {key: fields[key] for key in PROFILE_FIELDS if fields.get(key) is not None}
        profile.setdefault("role", Account.USER)
        profile.setdefault("is_active", True)
        profile.update(email=email, created_at=self.clock(), **extra)
        return self._write_profile(identity_id, profile)

    def _undo_auto_sign_in(self, identity_id: str, actor_session: Optional[ProviderSession]) -> None:
        if not self.auth.auto_signs_in_on_create:
            return
        if self.auth.current_identity_id != identity_id:
            return
        if actor_session is not None:
            self.auth.restore_session(actor_session)
        else:
            self.auth.sign_out()

    def _write_profile(self, identity_id: str, profile: Dict[str, Any]) -> str:
        try:
            self.profiles.set(identity_id, profile)
        except Exception as exc:
            logger.error(
                "Credential %s created but profile write failed: %s",
                identity_id,
                exc,
                exc_info=True,
                extra={"identity_id": identity_id},
            )
            raise OrphanedCredential(identity_id, profile) from exc
        return identity_id
