"""Route registration for identity endpoints."""
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import AccountViewSet, BootstrapView, OrphanedCredentialView, SessionView, health

router = DefaultRouter()
router.register("accounts", AccountViewSet, basename="account")

urlpatterns = [
    path("healthz/", health, name="identity-health"),
    path("bootstrap/", BootstrapView.as_view(), name="identity-bootstrap"),
    path("session/", SessionView.as_view(), name="identity-session"),
    path(
        "accounts/orphans/<str:uid>/",
        OrphanedCredentialView.as_view(),
        name="account-orphan",
    ),
    path("", include(router.urls)),
]
