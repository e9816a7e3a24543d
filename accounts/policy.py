"""
Role-based access policy for account operations.

``authorize`` is a pure function; ``require`` raises ``Unauthorized`` and is
what every mutating operation calls before touching a store.

Rules:
1. Only ``admin`` may create accounts, assign roles, (de)activate or delete
   accounts, and convert or manage submissions.
2. Nobody may change the role of, deactivate, or delete their own account.
3. ``user`` may read and update the profile fields of its own account only.
4. Inactive actors and unrecognised roles (``super`` included) may only read
   their own account.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from .exceptions import Unauthorized
from .models import Account

READ = "read"
LIST = "list"
UPDATE_PROFILE = "update_profile"
SET_ROLE = "set_role"
ACTIVATE = "activate"
DEACTIVATE = "deactivate"
DELETE = "delete"
CREATE_USER = "create_user"
CONVERT_SUBMISSION = "convert_submission"
MANAGE_SUBMISSIONS = "manage_submissions"

RECOGNISED_ROLES = frozenset({Account.ADMIN, Account.USER})

_SELF_FORBIDDEN = frozenset({SET_ROLE, DEACTIVATE, DELETE})
_USER_SELF_ALLOWED = frozenset({READ, UPDATE_PROFILE})


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"

    def __bool__(self) -> bool:
        return self is Decision.ALLOW


def _is_self(target: Optional[Account], actor_id: Optional[str]) -> bool:
    return target is not None and actor_id is not None and target.uid == actor_id


def authorize(
    actor_role: str,
    action: str,
    target: Optional[Account] = None,
    *,
    actor_id: Optional[str] = None,
    actor_active: bool = True,
) -> Decision:
    """Decide whether an actor holding ``actor_role`` may perform ``action``."""
    is_self = _is_self(target, actor_id)

    if actor_role not in RECOGNISED_ROLES or not actor_active:
        return Decision.ALLOW if action == READ and is_self else Decision.DENY

    if actor_role == Account.ADMIN:
        # Without an actor id a target cannot be ruled out as the actor's own.
        if action in _SELF_FORBIDDEN and target is not None and (is_self or actor_id is None):
            return Decision.DENY
        return Decision.ALLOW

    if is_self and action in _USER_SELF_ALLOWED:
        return Decision.ALLOW
    return Decision.DENY


def require(
    actor_role: str,
    action: str,
    target: Optional[Account] = None,
    *,
    actor_id: Optional[str] = None,
    actor_active: bool = True,
) -> None:
    """Raise ``Unauthorized`` unless ``authorize`` allows the action."""
    decision = authorize(
        actor_role, action, target, actor_id=actor_id, actor_active=actor_active
    )
    if decision is Decision.DENY:
        raise Unauthorized(f"Permission denied: {action}")
