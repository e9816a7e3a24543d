"""Role-gated reads and edits of existing accounts."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from . import policy
from .auth_providers import AuthProvider, normalize_email
from .exceptions import AccountError, AccountNotFound, StoreUnreachable
from .session import Identity
from .stores import DELETED

logger = logging.getLogger(__name__)


@dataclass
class Listing:
    accounts: List[Any]
    stale: bool = False


def _actions_for(account, changes: Dict[str, Any]) -> List[str]:
    actions = []
    for key, value in changes.items():
        if key == "role":
            if value != account.role:
                actions.append(policy.SET_ROLE)
        elif key == "is_active":
            if value != account.is_active:
                actions.append(policy.ACTIVATE if value else policy.DEACTIVATE)
        else:
            actions.append(policy.UPDATE_PROFILE)
    return actions or [policy.UPDATE_PROFILE]


class AccountDirectory:
    """Account listing with a snapshot cache kept live by the profile store.

    When the store is unreachable, ``list`` serves the last snapshot marked
    stale instead of failing. Writes never fall back.
    """

    def __init__(self, profiles) -> None:
        self.profiles = profiles
        self._snapshot: Dict[str, Any] = {}
        self._unsubscribe = None

    def start(self) -> "AccountDirectory":
        if self._unsubscribe is None:
            self._unsubscribe = self.profiles.subscribe(self._on_change)
        return self

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, kind: str, account) -> None:
        if kind == DELETED:
            self._snapshot.pop(account.uid, None)
        else:
            self._snapshot[account.uid] = account

    def list(self, actor: Identity) -> Listing:
        policy.require(actor.role, policy.LIST, actor_id=actor.uid, actor_active=actor.is_active)
        try:
            accounts = self.profiles.all()
        except StoreUnreachable:
            logger.warning("Serving %d cached accounts while the store is unreachable", len(self._snapshot))
            cached = sorted(list(self._snapshot.values()), key=lambda a: (a.username, a.email))
            return Listing(cached, stale=True)
        self._snapshot = {account.uid: account for account in accounts}
        return Listing(accounts)

    def get(self, actor: Identity, uid: str):
        account = self._load(uid)
        policy.require(actor.role, policy.READ, account, actor_id=actor.uid, actor_active=actor.is_active)
        return account

    def update(self, actor: Identity, auth: AuthProvider, uid: str, changes: Dict[str, Any]):
        account = self._load(uid)
        for action in _actions_for(account, changes):
            policy.require(actor.role, action, account, actor_id=actor.uid, actor_active=actor.is_active)

        changes = dict(changes)
        email_changed = False
        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
            email_changed = changes["email"] != account.email
            if email_changed:
                auth.update_email(uid, changes["email"])

        try:
            updated = self.profiles.update(uid, changes)
        except AccountError:
            if email_changed:
                auth.update_email(uid, account.email)
            raise
        logger.info("Account %s updated by %s: %s", uid, actor.uid, sorted(changes))
        return updated

    def delete(self, actor: Identity, auth: AuthProvider, uid: str) -> None:
        account = self._load(uid)
        policy.require(actor.role, policy.DELETE, account, actor_id=actor.uid, actor_active=actor.is_active)
        self.profiles.delete(uid)
        logger.info("Account %s deleted by %s", uid, actor.uid)
        try:
            auth.delete_credential(uid)
        except StoreUnreachable:
            logger.warning("Profile %s deleted but its credential could not be removed", uid)

    def _load(self, uid: str):
        account: Optional[Any] = self.profiles.get(uid)
        if account is None:
            raise AccountNotFound()
        return account
