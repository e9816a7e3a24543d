"""Construction of the identity components from settings."""
from __future__ import annotations

import functools

from django.conf import settings
from django.utils.module_loading import import_string

from .auth_providers import AuthProvider
from .directory import AccountDirectory
from .provisioning import AccountProvisioner
from .session import SessionResolver
from .stores import DjangoProfileStore


def build_auth_provider() -> AuthProvider:
    """A fresh provider session; one per client request."""
    return import_string(settings.IDENTITY_AUTH_PROVIDER)()


def build_session(auth: AuthProvider) -> SessionResolver:
    return SessionResolver(auth, DjangoProfileStore()).start()


def build_provisioner(auth: AuthProvider) -> AccountProvisioner:
    from leads.stores import DjangoSubmissionStore

    return AccountProvisioner(auth, DjangoProfileStore(), DjangoSubmissionStore())


@functools.lru_cache(maxsize=None)
def get_directory() -> AccountDirectory:
    """Process-wide directory so its cached snapshot outlives a request."""
    return AccountDirectory(DjangoProfileStore()).start()
