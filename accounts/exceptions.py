"""Error taxonomy for account operations.

Every error is a DRF ``APIException`` so views can let them propagate and
still answer with a meaningful status code.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from rest_framework import status
from rest_framework.exceptions import APIException


class AccountError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Account operation failed."
    default_code = "account_error"


class DuplicateEmail(AccountError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This email is already registered."
    default_code = "duplicate_email"


class WeakCredential(AccountError):
    default_detail = "The password does not meet the password policy."
    default_code = "weak_credential"

    def __init__(self, messages: Optional[Iterable[str]] = None) -> None:
        self.messages = list(messages or [])
        detail = " ".join(self.messages) or None
        super().__init__(detail)


class InvalidCredentials(AccountError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid email, password or session token."
    default_code = "invalid_credentials"


class AdminAlreadyExists(AccountError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "An admin account already exists."
    default_code = "admin_already_exists"


class OrphanedCredential(AccountError):
    """A credential was created but its profile record was not."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "The credential was created but the profile record was not."
    default_code = "orphaned_credential"

    def __init__(self, identity_id: str, profile: Optional[Dict[str, Any]] = None) -> None:
        self.identity_id = identity_id
        self.profile = dict(profile or {})
        super().__init__(
            {
                "detail": f"Credential {identity_id} has no profile record.",
                "identity_id": identity_id,
            }
        )


class Unauthorized(AccountError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not allowed to perform this action."
    default_code = "unauthorized"


class ProfileNotFound(AccountError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "No profile record exists for this identity."
    default_code = "profile_not_found"


class AccountNotFound(AccountError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Account not found."
    default_code = "account_not_found"


class StoreUnreachable(AccountError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "The identity store is temporarily unreachable."
    default_code = "store_unreachable"


class SubmissionNotFound(AccountError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Submission not found."
    default_code = "submission_not_found"


class AlreadyConverted(AccountError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This submission has already been converted to an account."
    default_code = "already_converted"


class NotOrphaned(AccountError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This credential has a profile record."
    default_code = "not_orphaned"
