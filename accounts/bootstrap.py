"""Detection and guarding of the one-time admin bootstrap."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from .exceptions import AdminAlreadyExists, StoreUnreachable
from .models import Account, BootstrapClaim

logger = logging.getLogger(__name__)


def admin_exists(profiles, strict: bool = False) -> bool:
    """Return True if any profile holds the admin role.

    When the store cannot be reached the answer defaults to True so the
    bootstrap form is never offered on uncertain data. ``strict`` re-raises
    ``StoreUnreachable`` instead.
    """
    try:
        return bool(profiles.query_by_field("role", Account.ADMIN))
    except StoreUnreachable:
        if strict:
            raise
        logger.exception("Could not check for an existing admin; assuming one exists")
        return True


def _acquire() -> None:
    with transaction.atomic():
        BootstrapClaim.objects.create(key=BootstrapClaim.ADMIN)


@contextmanager
def bootstrap_claim() -> Iterator[None]:
    """Hold the unique bootstrap row for the duration of the block.

    A claim older than ``IDENTITY_BOOTSTRAP_CLAIM_TTL`` seconds is assumed to
    belong to a crashed bootstrap and is taken over.
    """
    try:
        try:
            _acquire()
        except IntegrityError:
            cutoff = timezone.now() - timedelta(seconds=settings.IDENTITY_BOOTSTRAP_CLAIM_TTL)
            stale, _ = BootstrapClaim.objects.filter(
                key=BootstrapClaim.ADMIN, claimed_at__lt=cutoff
            ).delete()
            if not stale:
                raise AdminAlreadyExists("An admin bootstrap is already in progress.")
            logger.warning("Took over a stale bootstrap claim")
            try:
                _acquire()
            except IntegrityError as exc:
                raise AdminAlreadyExists("An admin bootstrap is already in progress.") from exc
    except DatabaseError as exc:
        raise StoreUnreachable() from exc

    try:
        yield
    finally:
        BootstrapClaim.objects.filter(key=BootstrapClaim.ADMIN).delete()
