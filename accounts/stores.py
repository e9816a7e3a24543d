"""Profile store backed by the ``Account`` table."""
from __future__ import annotations

import functools
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models.signals import post_delete, post_save

from .exceptions import AccountNotFound, DuplicateEmail, StoreUnreachable
from .models import Account

logger = logging.getLogger(__name__)

SAVED = "saved"
DELETED = "deleted"

ProfileListener = Callable[[str, Account], None]


def _store_call(func):
    """Translate database failures into the account error taxonomy."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except IntegrityError as exc:
            raise DuplicateEmail() from exc
        except DatabaseError as exc:
            logger.warning("Profile store call %s failed: %s", func.__name__, exc)
            raise StoreUnreachable() from exc

    return wrapper


class DjangoProfileStore:
    """Profile records keyed by the auth provider's identity id."""

    @_store_call
    def get(self, identity_id: str) -> Optional[Account]:
        return Account.objects.filter(uid=identity_id).first()

    @_store_call
    def set(self, identity_id: str, fields: Dict[str, Any]) -> Account:
        with transaction.atomic():
            account, _ = Account.objects.update_or_create(uid=identity_id, defaults=fields)
        return account

    @_store_call
    def update(self, identity_id: str, fields: Dict[str, Any]) -> Account:
        with transaction.atomic():
            account = Account.objects.select_for_update().filter(uid=identity_id).first()
            if account is None:
                raise AccountNotFound()
            for attr, value in fields.items():
                setattr(account, attr, value)
            account.save(update_fields=[*fields, "updated_at"])
        return account

    @_store_call
    def delete(self, identity_id: str) -> bool:
        account = Account.objects.filter(uid=identity_id).first()
        if account is None:
            return False
        account.delete()
        return True

    @_store_call
    def query_by_field(self, field: str, value: Any) -> List[Account]:
        return list(Account.objects.filter(**{field: value}))

    @_store_call
    def all(self) -> List[Account]:
        return list(Account.objects.all())

    def subscribe(self, callback: ProfileListener) -> Callable[[], None]:
        """Push ``(SAVED | DELETED, account)`` to ``callback`` on every change."""
        dispatch_uid = f"profile-store-{uuid.uuid4().hex}"

        def _on_save(sender, instance, **kwargs):
            callback(SAVED, instance)

        def _on_delete(sender, instance, **kwargs):
            callback(DELETED, instance)

        post_save.connect(_on_save, sender=Account, weak=False, dispatch_uid=f"{dispatch_uid}-save")
        post_delete.connect(_on_delete, sender=Account, weak=False, dispatch_uid=f"{dispatch_uid}-delete")

        def unsubscribe() -> None:
            post_save.disconnect(sender=Account, dispatch_uid=f"{dispatch_uid}-save")
            post_delete.disconnect(sender=Account, dispatch_uid=f"{dispatch_uid}-delete")

        return unsubscribe
