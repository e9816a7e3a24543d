from __future__ import annotations

import uuid
from unittest import mock

from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from accounts.auth_providers import DjangoAuthProvider
from accounts.exceptions import (
    AlreadyConverted,
    DuplicateEmail,
    StoreUnreachable,
    SubmissionNotFound,
    Unauthorized,
)
from accounts.models import Account
from accounts.provisioning import AccountProvisioner
from accounts.stores import DjangoProfileStore

from .conversion import SubmissionConverter
from .models import Submission
from .stores import DjangoSubmissionStore

FAST_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
PASSWORD = "Passw0rd!"


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class SubmissionConverterTests(TestCase):
    def setUp(self) -> None:
        self.profiles = DjangoProfileStore()
        self.submissions = DjangoSubmissionStore()
        self.provisioner = AccountProvisioner(
            DjangoAuthProvider(auto_sign_in=False), self.profiles, self.submissions
        )
        self.converter = SubmissionConverter(self.provisioner, self.submissions, self.profiles)
        self.admin_id = self.provisioner.bootstrap_admin("a@x.com", PASSWORD)
        self.submission = Submission.objects.create(
            name="Bob Builder",
            email="Bob@Example.com",
            phone="+92 300 0000000",
            company="Acme",
            message="Interested in WiVi.",
        )

    def _convert(self, **overrides) -> str:
        overrides.setdefault("password", PASSWORD)
        return self.converter.convert(
            Account.ADMIN, self.submission.id, overrides, requester_id=self.admin_id
        )

    def test_convert_creates_linked_account(self) -> None:
        uid = self._convert()

        self.submission.refresh_from_db()
        self.assertTrue(self.submission.converted)
        account = Account.objects.get(uid=uid)
        self.assertEqual(account.created_from, self.submission.id)
        self.assertEqual(account.email, "bob@example.com")
        self.assertEqual(account.username, "Bob Builder")
        self.assertEqual(account.company, "Acme")
        self.assertEqual(account.role, Account.USER)
        self.assertTrue(account.is_active)

    def test_overrides_replace_prefilled_fields(self) -> None:
        uid = self._convert(username="bob", role=Account.ADMIN, email=None)

        account = Account.objects.get(uid=uid)
        self.assertEqual(account.username, "bob")
        self.assertEqual(account.role, Account.ADMIN)
        self.assertEqual(account.email, "bob@example.com")

    def test_converted_submission_is_refused(self) -> None:
        self._convert()
        with self.assertRaises(AlreadyConverted):
            self._convert()
        self.assertEqual(Account.objects.filter(created_from=self.submission.id).count(), 1)

    def test_failed_account_creation_leaves_submission_open(self) -> None:
        self.provisioner.create_user(
            Account.ADMIN,
            {"email": "bob@example.com", "password": PASSWORD, "username": "existing"},
            requester_id=self.admin_id,
        )

        with self.assertRaises(DuplicateEmail):
            self._convert()

        self.submission.refresh_from_db()
        self.assertFalse(self.submission.converted)

    def test_retry_after_flag_failure_only_flags(self) -> None:
        with mock.patch.object(self.submissions, "update", side_effect=StoreUnreachable()):
            with self.assertLogs("accounts.provisioning", level="ERROR"):
                with self.assertRaises(StoreUnreachable):
                    self._convert()

        account = Account.objects.get(created_from=self.submission.id)
        self.submission.refresh_from_db()
        self.assertFalse(self.submission.converted)

        self.assertEqual(self._convert(), account.uid)
        self.submission.refresh_from_db()
        self.assertTrue(self.submission.converted)
        self.assertEqual(Account.objects.filter(created_from=self.submission.id).count(), 1)

    def test_only_admins_convert(self) -> None:
        with self.assertRaises(Unauthorized):
            self.converter.convert(
                Account.USER, self.submission.id, {"password": PASSWORD}, requester_id="someone"
            )

    def test_unknown_submission(self) -> None:
        with self.assertRaises(SubmissionNotFound):
            self.converter.convert(
                Account.ADMIN, uuid.uuid4(), {"password": PASSWORD}, requester_id=self.admin_id
            )


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class SubmissionApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()
        response = self.client.post(
            reverse("identity-bootstrap"), {"email": "a@x.com", "password": PASSWORD}, format="json"
        )
        self.assertEqual(response.status_code, 201)

    def _sign_in(self, email: str) -> None:
        response = self.client.post(
            reverse("identity-session"), {"email": email, "password": PASSWORD}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['token']}")

    def _submit(self) -> str:
        response = self.client.post(
            reverse("submission-list"),
            {"name": "Bob", "email": "bob@example.com", "company": "Acme", "message": "Hello"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertFalse(response.data["converted"])
        return response.data["id"]

    def test_public_intake_and_admin_review(self) -> None:
        self._submit()
        self.assertEqual(self.client.get(reverse("submission-list")).status_code, 401)

        self._sign_in("a@x.com")
        response = self.client.get(reverse("submission-list"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)

    def test_convert_endpoint(self) -> None:
        submission_id = self._submit()
        self._sign_in("a@x.com")

        response = self.client.post(
            reverse("submission-convert", args=[submission_id]), {"password": PASSWORD}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["email"], "bob@example.com")
        self.assertEqual(str(response.data["created_from"]), submission_id)

        response = self.client.post(
            reverse("submission-convert", args=[submission_id]), {"password": PASSWORD}, format="json"
        )
        self.assertEqual(response.status_code, 409)

    def test_users_cannot_see_submissions(self) -> None:
        self._submit()
        self._sign_in("a@x.com")
        self.client.post(
            reverse("account-list"),
            {"email": "c@x.com", "password": PASSWORD, "username": "carol"},
            format="json",
        )

        self._sign_in("c@x.com")
        self.assertEqual(self.client.get(reverse("submission-list")).status_code, 403)
