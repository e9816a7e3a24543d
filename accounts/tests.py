"""Tests for the identity service."""
from __future__ import annotations

from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from firebase_admin import auth as firebase_auth
from rest_framework.test import APIClient

from . import policy
from .auth_providers import SIGNED_IN, DjangoAuthProvider, FirebaseAuthProvider
from .bootstrap import admin_exists
from .directory import AccountDirectory
from .exceptions import (
    AccountNotFound,
    AdminAlreadyExists,
    DuplicateEmail,
    InvalidCredentials,
    NotOrphaned,
    OrphanedCredential,
    ProfileNotFound,
    StoreUnreachable,
    Unauthorized,
    WeakCredential,
)
from .models import Account, BootstrapClaim
from .provisioning import AccountProvisioner
from .session import Identity, SessionResolver, SessionState
from .stores import DjangoProfileStore

FAST_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
PASSWORD = "Passw0rd!"


def _account(uid: str, role: str = Account.USER, **kwargs) -> Account:
    return Account(uid=uid, username=uid, email=f"{uid}@x.com", role=role, **kwargs)


def _identity(account: Account) -> Identity:
    return Identity.from_profile(account.uid, account.email, account)


class AccessPolicyTests(SimpleTestCase):
    def setUp(self) -> None:
        self.me = _account("me")
        self.other = _account("other")

    def test_user_can_never_set_role(self) -> None:
        for target in (self.me, self.other, None):
            decision = policy.authorize(Account.USER, policy.SET_ROLE, target, actor_id="me")
            self.assertEqual(decision, policy.Decision.DENY)

    def test_admin_cannot_lock_themselves_out(self) -> None:
        for action in (policy.DEACTIVATE, policy.SET_ROLE, policy.DELETE):
            decision = policy.authorize(Account.ADMIN, action, self.me, actor_id="me")
            self.assertEqual(decision, policy.Decision.DENY, action)

    def test_admin_manages_other_accounts(self) -> None:
        for action in (policy.DEACTIVATE, policy.SET_ROLE, policy.DELETE, policy.UPDATE_PROFILE):
            decision = policy.authorize(Account.ADMIN, action, self.other, actor_id="me")
            self.assertEqual(decision, policy.Decision.ALLOW, action)
        self.assertTrue(policy.authorize(Account.ADMIN, policy.CREATE_USER, actor_id="me"))

    def test_user_updates_only_own_profile(self) -> None:
        self.assertTrue(policy.authorize(Account.USER, policy.UPDATE_PROFILE, self.me, actor_id="me"))
        self.assertTrue(policy.authorize(Account.USER, policy.READ, self.me, actor_id="me"))
        self.assertFalse(policy.authorize(Account.USER, policy.UPDATE_PROFILE, self.other, actor_id="me"))
        self.assertFalse(policy.authorize(Account.USER, policy.DEACTIVATE, self.me, actor_id="me"))
        self.assertFalse(policy.authorize(Account.USER, policy.LIST, actor_id="me"))

    def test_legacy_super_role_has_no_admin_powers(self) -> None:
        self.assertFalse(policy.authorize(Account.SUPER, policy.DELETE, self.other, actor_id="me"))
        self.assertFalse(policy.authorize(Account.SUPER, policy.CREATE_USER, actor_id="me"))
        self.assertTrue(policy.authorize(Account.SUPER, policy.READ, self.me, actor_id="me"))

    def test_inactive_admin_loses_privileges(self) -> None:
        decision = policy.authorize(
            Account.ADMIN, policy.DELETE, self.other, actor_id="me", actor_active=False
        )
        self.assertEqual(decision, policy.Decision.DENY)

    def test_require_raises_unauthorized(self) -> None:
        with self.assertRaises(Unauthorized):
            policy.require(Account.USER, policy.CREATE_USER, actor_id="me")

    def test_admin_self_protection_without_actor_id(self) -> None:
        for action in (policy.DEACTIVATE, policy.SET_ROLE, policy.DELETE):
            self.assertEqual(policy.authorize(Account.ADMIN, action, self.me), policy.Decision.DENY)
        self.assertTrue(policy.authorize(Account.ADMIN, policy.CREATE_USER))


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class BootstrapTests(TestCase):
    def setUp(self) -> None:
        self.profiles = DjangoProfileStore()
        self.auth = DjangoAuthProvider(auto_sign_in=False)
        self.provisioner = AccountProvisioner(self.auth, self.profiles)

    def test_bootstrap_once_on_empty_store(self) -> None:
        self.assertFalse(admin_exists(self.profiles))

        uid = self.provisioner.bootstrap_admin("a@x.com", PASSWORD)

        self.assertTrue(admin_exists(self.profiles))
        account = Account.objects.get(uid=uid)
        self.assertEqual(account.role, Account.ADMIN)
        self.assertEqual(account.username, "Admin")
        self.assertTrue(account.is_active)
        self.assertFalse(BootstrapClaim.objects.exists())
        with self.assertRaises(AdminAlreadyExists):
            self.provisioner.bootstrap_admin("b@x.com", PASSWORD)

    def test_concurrent_bootstrap_only_one_succeeds(self) -> None:
        rival = AccountProvisioner(DjangoAuthProvider(auto_sign_in=False), self.profiles)
        outcomes = []
        create_credential = self.auth.create_credential

        def create_while_rival_runs(email, password):
            try:
                outcomes.append(rival.bootstrap_admin("rival@x.com", PASSWORD))
            except AdminAlreadyExists as exc:
                outcomes.append(exc)
            return create_credential(email, password)

        with mock.patch.object(self.auth, "create_credential", side_effect=create_while_rival_runs):
            uid = self.provisioner.bootstrap_admin("a@x.com", PASSWORD)

        self.assertEqual(len(outcomes), 1)
        self.assertIsInstance(outcomes[0], AdminAlreadyExists)
        admins = list(Account.objects.filter(role=Account.ADMIN).values_list("uid", flat=True))
        self.assertEqual(admins, [uid])

    def test_bootstrap_refused_while_claim_is_held(self) -> None:
        BootstrapClaim.objects.create(key=BootstrapClaim.ADMIN)

        with self.assertRaises(AdminAlreadyExists):
            self.provisioner.bootstrap_admin("a@x.com", PASSWORD)
        self.assertFalse(get_user_model().objects.filter(email="a@x.com").exists())

    def test_failed_bootstrap_releases_claim(self) -> None:
        with self.assertRaises(WeakCredential):
            self.provisioner.bootstrap_admin("a@x.com", "12345")
        self.assertFalse(BootstrapClaim.objects.exists())

        self.provisioner.bootstrap_admin("a@x.com", PASSWORD)
        self.assertTrue(admin_exists(self.profiles))

    def test_admin_exists_assumes_true_when_store_unreachable(self) -> None:
        profiles = mock.Mock()
        profiles.query_by_field.side_effect = StoreUnreachable()

        with self.assertLogs("accounts.bootstrap", level="ERROR"):
            self.assertTrue(admin_exists(profiles))
        with self.assertRaises(StoreUnreachable):
            admin_exists(profiles, strict=True)

    def test_database_errors_become_store_unreachable(self) -> None:
        with mock.patch.object(Account.objects, "filter", side_effect=DatabaseError("down")):
            with self.assertRaises(StoreUnreachable):
                self.profiles.query_by_field("role", Account.ADMIN)


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class ProvisioningTests(TestCase):
    def setUp(self) -> None:
        self.profiles = DjangoProfileStore()
        self.auth = DjangoAuthProvider(auto_sign_in=False)
        self.provisioner = AccountProvisioner(self.auth, self.profiles)
        self.admin_id = self.provisioner.bootstrap_admin("a@x.com", PASSWORD)

    def _create(self, **overrides) -> str:
        fields = {"email": "b@x.com", "password": PASSWORD, "username": "bob", "role": Account.USER}
        fields.update(overrides)
        return self.provisioner.create_user(Account.ADMIN, fields, requester_id=self.admin_id)

    def test_created_user_is_active_by_default(self) -> None:
        uid = self._create()

        account = Account.objects.get(uid=uid)
        self.assertTrue(account.is_active)
        self.assertEqual(account.role, Account.USER)
        self.assertEqual(account.email, "b@x.com")
        self.assertIsNotNone(account.created_at)
        self.assertIsNone(account.last_login)

    def test_emails_stay_unique(self) -> None:
        self._create()
        with self.assertRaises(DuplicateEmail):
            self._create(email="B@X.com", username="bobby")
        with self.assertRaises(DuplicateEmail):
            self._create(email="a@x.com")
        self.assertEqual(Account.objects.filter(email="b@x.com").count(), 1)
        self.assertEqual(get_user_model().objects.filter(email="b@x.com").count(), 1)

    def test_weak_password_is_rejected(self) -> None:
        with self.assertRaises(WeakCredential):
            self._create(password="abc")
        self.assertFalse(Account.objects.filter(email="b@x.com").exists())

    def test_only_admins_create_accounts(self) -> None:
        with self.assertRaises(Unauthorized):
            self.provisioner.create_user(
                Account.USER,
                {"email": "b@x.com", "password": PASSWORD, "username": "bob"},
                requester_id="someone",
            )
        self.assertFalse(get_user_model().objects.filter(email="b@x.com").exists())

    def test_profile_failure_surfaces_orphaned_credential(self) -> None:
        with mock.patch.object(self.profiles, "set", side_effect=StoreUnreachable()):
            with self.assertLogs("accounts.provisioning", level="ERROR"):
                with self.assertRaises(OrphanedCredential) as ctx:
                    self._create()

        orphan = ctx.exception
        self.assertTrue(get_user_model().objects.filter(username=orphan.identity_id).exists())
        self.assertFalse(Account.objects.filter(uid=orphan.identity_id).exists())

        self.provisioner.retry_orphan(orphan.identity_id, {**orphan.profile, "email": "spoofed@x.com"})
        account = Account.objects.get(uid=orphan.identity_id)
        self.assertEqual(account.username, "bob")
        self.assertEqual(account.email, "b@x.com")

    def test_discard_orphan_removes_credential(self) -> None:
        with mock.patch.object(self.profiles, "set", side_effect=StoreUnreachable()):
            with self.assertLogs("accounts.provisioning", level="ERROR"):
                with self.assertRaises(OrphanedCredential) as ctx:
                    self._create()

        self.provisioner.discard_orphan(ctx.exception.identity_id)
        self.assertFalse(get_user_model().objects.filter(email="b@x.com").exists())
        with self.assertRaises(NotOrphaned):
            self.provisioner.discard_orphan(self.admin_id)

    def test_orphan_retry_only_settles_orphans(self) -> None:
        admin = Account.objects.get(uid=self.admin_id)

        with self.assertRaises(NotOrphaned):
            self.provisioner.retry_orphan(self.admin_id, {"username": "x", "role": Account.USER})
        with self.assertRaises(AccountNotFound):
            self.provisioner.retry_orphan("no-such-credential", {"username": "ghost"})

        self.assertEqual(Account.objects.get(uid=self.admin_id).created_at, admin.created_at)
        self.assertFalse(Account.objects.filter(uid="no-such-credential").exists())

    def test_auto_sign_in_does_not_displace_acting_admin(self) -> None:
        auth = DjangoAuthProvider(auto_sign_in=True)
        session = SessionResolver(auth, self.profiles).start()
        session.sign_in("a@x.com", PASSWORD)
        transitions = []
        session.subscribe(lambda state, identity: transitions.append(state))

        AccountProvisioner(auth, self.profiles).create_user(
            Account.ADMIN,
            {"email": "b@x.com", "password": PASSWORD, "username": "bob"},
            requester_id=self.admin_id,
        )

        self.assertEqual(auth.current_identity_id, self.admin_id)
        self.assertEqual(session.identity.uid, self.admin_id)
        self.assertEqual(transitions, [])

    def test_auto_sign_in_is_undone_when_nobody_was_signed_in(self) -> None:
        auth = DjangoAuthProvider(auto_sign_in=True)
        provisioner = AccountProvisioner(auth, self.profiles)

        provisioner.create_user(
            Account.ADMIN,
            {"email": "b@x.com", "password": PASSWORD, "username": "bob"},
            requester_id=self.admin_id,
        )

        self.assertIsNone(auth.current_identity_id)


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class SessionResolverTests(TestCase):
    def setUp(self) -> None:
        self.profiles = DjangoProfileStore()
        AccountProvisioner(DjangoAuthProvider(auto_sign_in=False), self.profiles).bootstrap_admin(
            "a@x.com", PASSWORD
        )
        self.auth = DjangoAuthProvider(auto_sign_in=False)
        self.session = SessionResolver(self.auth, self.profiles).start()
        self.transitions = []
        self.session.subscribe(lambda state, identity: self.transitions.append(state))

    def test_sign_in_resolves_identity(self) -> None:
        identity = self.session.sign_in("A@x.com", PASSWORD)

        self.assertEqual(
            self.transitions,
            [SessionState.AUTHENTICATING, SessionState.RESOLVING, SessionState.RESOLVED],
        )
        self.assertEqual(identity.email, "a@x.com")
        self.assertEqual(identity.role, Account.ADMIN)
        self.assertIsNotNone(Account.objects.get(uid=identity.uid).last_login)

    def test_token_restores_identity_in_new_session(self) -> None:
        identity = self.session.sign_in("a@x.com", PASSWORD)
        token = self.auth.current_session().token

        restored = SessionResolver(DjangoAuthProvider(auto_sign_in=False), self.profiles).restore(token)

        self.assertEqual(restored.uid, identity.uid)

    def test_credential_without_profile_is_invalidated(self) -> None:
        DjangoAuthProvider(auto_sign_in=False).create_credential("ghost@x.com", PASSWORD)

        with self.assertLogs("accounts.session", level="WARNING"):
            with self.assertRaises(ProfileNotFound):
                self.session.sign_in("ghost@x.com", PASSWORD)

        self.assertEqual(self.session.state, SessionState.INVALID)
        self.assertIsNone(self.session.identity)
        self.assertIsNone(self.auth.current_identity_id)
        self.assertEqual(self.transitions[-1], SessionState.INVALID)

    def test_sign_out(self) -> None:
        self.session.sign_in("a@x.com", PASSWORD)
        self.session.sign_out()

        self.assertEqual(self.session.state, SessionState.SIGNED_OUT)
        self.assertIsNone(self.session.identity)
        self.assertIsNone(self.auth.current_identity_id)

    def test_sign_out_revokes_token(self) -> None:
        self.session.sign_in("a@x.com", PASSWORD)
        token = self.auth.current_session().token
        self.session.sign_out()

        with self.assertRaises(InvalidCredentials):
            SessionResolver(DjangoAuthProvider(auto_sign_in=False), self.profiles).restore(token)

    def test_store_outage_keeps_credential(self) -> None:
        with mock.patch.object(self.profiles, "get", side_effect=StoreUnreachable()):
            with self.assertRaises(StoreUnreachable):
                self.session.sign_in("a@x.com", PASSWORD)

        self.assertEqual(self.session.state, SessionState.SIGNED_OUT)
        self.assertIsNotNone(self.auth.current_identity_id)

    def test_wrong_password(self) -> None:
        with self.assertRaises(InvalidCredentials):
            self.session.sign_in("a@x.com", "Wrong-pass1")
        self.assertEqual(self.transitions, [])


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class AccountDirectoryTests(TestCase):
    def setUp(self) -> None:
        self.profiles = DjangoProfileStore()
        self.auth = DjangoAuthProvider(auto_sign_in=False)
        self.provisioner = AccountProvisioner(self.auth, self.profiles)
        admin_id = self.provisioner.bootstrap_admin("a@x.com", PASSWORD)
        user_id = self.provisioner.create_user(
            Account.ADMIN,
            {"email": "b@x.com", "password": PASSWORD, "username": "bob"},
            requester_id=admin_id,
        )
        self.admin = _identity(Account.objects.get(uid=admin_id))
        self.user = _identity(Account.objects.get(uid=user_id))
        self.directory = AccountDirectory(self.profiles).start()
        self.addCleanup(self.directory.close)

    def test_only_admins_list_accounts(self) -> None:
        self.assertEqual(len(self.directory.list(self.admin).accounts), 2)
        with self.assertRaises(Unauthorized):
            self.directory.list(self.user)

    def test_list_serves_snapshot_when_store_unreachable(self) -> None:
        self.directory.list(self.admin)
        self.provisioner.create_user(
            Account.ADMIN,
            {"email": "c@x.com", "password": PASSWORD, "username": "carol"},
            requester_id=self.admin.uid,
        )

        with mock.patch.object(self.profiles, "all", side_effect=StoreUnreachable()):
            listing = self.directory.list(self.admin)

        self.assertTrue(listing.stale)
        self.assertEqual(
            sorted(account.email for account in listing.accounts),
            ["a@x.com", "b@x.com", "c@x.com"],
        )

    def test_self_lockout_is_refused(self) -> None:
        with self.assertRaises(Unauthorized):
            self.directory.update(self.admin, self.auth, self.admin.uid, {"is_active": False})
        with self.assertRaises(Unauthorized):
            self.directory.update(self.user, self.auth, self.user.uid, {"role": Account.ADMIN})

    def test_admin_deactivates_other_account(self) -> None:
        account = self.directory.update(self.admin, self.auth, self.user.uid, {"is_active": False})
        self.assertFalse(account.is_active)

    def test_user_edits_own_profile(self) -> None:
        connection = {"street": "1 Main St", "city": "Lahore", "apartment": "4B"}
        account = self.directory.update(
            self.user, self.auth, self.user.uid, {"username": "robert", "connection": connection}
        )
        self.assertEqual(account.username, "robert")
        self.assertEqual(Account.objects.get(uid=self.user.uid).connection, connection)
        with self.assertRaises(Unauthorized):
            self.directory.update(self.user, self.auth, self.admin.uid, {"username": "x"})

    def test_email_change_updates_credential(self) -> None:
        self.directory.update(self.admin, self.auth, self.user.uid, {"email": "Bob@New.com"})

        self.assertEqual(Account.objects.get(uid=self.user.uid).email, "bob@new.com")
        self.assertEqual(get_user_model().objects.get(username=self.user.uid).email, "bob@new.com")
        with self.assertRaises(DuplicateEmail):
            self.directory.update(self.admin, self.auth, self.user.uid, {"email": "a@x.com"})

    def test_delete_removes_profile_and_credential(self) -> None:
        self.directory.delete(self.admin, self.auth, self.user.uid)

        self.assertFalse(Account.objects.filter(uid=self.user.uid).exists())
        self.assertFalse(get_user_model().objects.filter(username=self.user.uid).exists())
        with self.assertRaises(Unauthorized):
            self.directory.delete(self.admin, self.auth, self.admin.uid)

    def test_credential_outage_after_delete_is_logged(self) -> None:
        with mock.patch.object(get_user_model().objects, "filter", side_effect=DatabaseError("down")):
            with self.assertLogs("accounts.directory", level="WARNING"):
                self.directory.delete(self.admin, self.auth, self.user.uid)

        self.assertFalse(Account.objects.filter(uid=self.user.uid).exists())

    def test_credential_outage_blocks_email_change(self) -> None:
        with mock.patch.object(get_user_model().objects, "filter", side_effect=DatabaseError("down")):
            with self.assertRaises(StoreUnreachable):
                self.directory.update(self.admin, self.auth, self.user.uid, {"email": "new@x.com"})

        self.assertEqual(Account.objects.get(uid=self.user.uid).email, "b@x.com")


@override_settings(FIREBASE_WEB_API_KEY="web-key")
class FirebaseAuthProviderTests(SimpleTestCase):
    def setUp(self) -> None:
        self.provider = FirebaseAuthProvider(app=mock.Mock())

    @mock.patch("accounts.auth_providers.firebase_auth.create_user")
    def test_existing_email_is_duplicate(self, create_user: mock.Mock) -> None:
        create_user.side_effect = firebase_auth.EmailAlreadyExistsError("exists", None, None)
        with self.assertRaises(DuplicateEmail):
            self.provider.create_credential("a@x.com", PASSWORD)

    @mock.patch("accounts.auth_providers.firebase_auth.create_user")
    def test_short_password_is_weak(self, create_user: mock.Mock) -> None:
        create_user.side_effect = ValueError("Password must be at least 6 characters long.")
        with self.assertRaises(WeakCredential):
            self.provider.create_credential("a@x.com", "abc")

    @mock.patch("accounts.auth_providers.requests.post")
    def test_password_sign_in(self, post: mock.Mock) -> None:
        post.return_value = mock.Mock(
            status_code=200,
            json=mock.Mock(return_value={"localId": "fb-1", "email": "a@x.com", "idToken": "tok"}),
        )
        events = []
        self.provider.on_credential_state_change(events.append)

        self.assertEqual(self.provider.sign_in("a@x.com", PASSWORD), "fb-1")

        self.assertEqual(events[0].kind, SIGNED_IN)
        self.assertEqual(self.provider.current_session().token, "tok")
        self.assertEqual(post.call_args.kwargs["params"], {"key": "web-key"})

    @mock.patch("accounts.auth_providers.requests.post")
    def test_rejected_sign_in(self, post: mock.Mock) -> None:
        post.return_value = mock.Mock(
            status_code=400,
            json=mock.Mock(return_value={"error": {"message": "INVALID_LOGIN_CREDENTIALS"}}),
        )
        with self.assertRaises(InvalidCredentials):
            self.provider.sign_in("a@x.com", "nope")
        self.assertIsNone(self.provider.current_identity_id)

    @mock.patch("accounts.auth_providers.firebase_auth.verify_id_token")
    def test_revoked_token_is_rejected(self, verify: mock.Mock) -> None:
        verify.side_effect = firebase_auth.RevokedIdTokenError("revoked")
        with self.assertRaises(InvalidCredentials):
            self.provider.restore("tok")

    @mock.patch("accounts.auth_providers.firebase_auth.get_user")
    def test_missing_credential_lookup(self, get_user: mock.Mock) -> None:
        get_user.side_effect = firebase_auth.UserNotFoundError("gone")
        self.assertIsNone(self.provider.get_credential("fb-1"))


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class IdentityApiTests(TestCase):
    def setUp(self) -> None:
        self.client = APIClient()

    def _bootstrap(self) -> None:
        response = self.client.post(
            reverse("identity-bootstrap"), {"email": "a@x.com", "password": PASSWORD}, format="json"
        )
        self.assertEqual(response.status_code, 201)

    def _sign_in(self, email: str) -> dict:
        response = self.client.post(
            reverse("identity-session"), {"email": email, "password": PASSWORD}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['token']}")
        return response.data["identity"]

    def test_health(self) -> None:
        response = self.client.get(reverse("identity-health"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "ok")

    def test_bootstrap_flow(self) -> None:
        self.assertFalse(self.client.get(reverse("identity-bootstrap")).data["admin_exists"])
        self._bootstrap()
        self.assertTrue(self.client.get(reverse("identity-bootstrap")).data["admin_exists"])

        response = self.client.post(
            reverse("identity-bootstrap"), {"email": "b@x.com", "password": PASSWORD}, format="json"
        )
        self.assertEqual(response.status_code, 409)

    def test_admin_manages_accounts(self) -> None:
        self._bootstrap()
        admin = self._sign_in("a@x.com")

        response = self.client.post(
            reverse("account-list"),
            {"email": "b@x.com", "password": PASSWORD, "username": "bob"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data["is_active"])
        self.assertEqual(response.data["role"], Account.USER)

        response = self.client.get(reverse("account-list"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 2)

        response = self.client.patch(
            reverse("account-detail", args=[admin["uid"]]), {"is_active": False}, format="json"
        )
        self.assertEqual(response.status_code, 403)

        response = self.client.post(
            reverse("account-list"),
            {"email": "b@x.com", "password": PASSWORD, "username": "bob"},
            format="json",
        )
        self.assertEqual(response.status_code, 409)

        self.assertEqual(self.client.get(reverse("identity-session")).data["uid"], admin["uid"])
        self.assertEqual(self.client.delete(reverse("identity-session")).status_code, 204)

    def test_user_cannot_list_accounts(self) -> None:
        self._bootstrap()
        admin_uid = self._sign_in("a@x.com")["uid"]
        self.client.post(
            reverse("account-list"),
            {"email": "b@x.com", "password": PASSWORD, "username": "bob"},
            format="json",
        )

        user = self._sign_in("b@x.com")

        self.assertEqual(self.client.get(reverse("account-list")).status_code, 403)
        self.assertEqual(self.client.get(reverse("account-detail", args=[user["uid"]])).status_code, 200)
        self.assertEqual(self.client.get(reverse("account-detail", args=[admin_uid])).status_code, 403)

    def test_requests_without_token_are_rejected(self) -> None:
        self.assertEqual(self.client.get(reverse("account-list")).status_code, 401)
        self.client.credentials(HTTP_AUTHORIZATION="Bearer not-a-token")
        self.assertEqual(self.client.get(reverse("account-list")).status_code, 401)

    def test_wrong_password_is_unauthorized(self) -> None:
        self._bootstrap()
        response = self.client.post(
            reverse("identity-session"), {"email": "a@x.com", "password": "Wrong-pass1"}, format="json"
        )
        self.assertEqual(response.status_code, 401)

    def test_non_utf8_token_is_unauthorized(self) -> None:
        self.client.credentials(HTTP_AUTHORIZATION="Bearer \xff\xfe")
        self.assertEqual(self.client.get(reverse("identity-session")).status_code, 401)

    def test_token_stops_working_after_sign_out(self) -> None:
        self._bootstrap()
        self._sign_in("a@x.com")

        self.assertEqual(self.client.delete(reverse("identity-session")).status_code, 204)
        self.assertEqual(self.client.get(reverse("identity-session")).status_code, 401)

        self._sign_in("a@x.com")
        self.assertEqual(self.client.get(reverse("identity-session")).status_code, 200)

    def test_orphan_retry_refuses_live_account(self) -> None:
        self._bootstrap()
        admin = self._sign_in("a@x.com")
        before = Account.objects.get(uid=admin["uid"])

        response = self.client.post(
            reverse("account-orphan", args=[admin["uid"]]),
            {"email": "other@x.com", "username": "x", "role": Account.USER},
            format="json",
        )

        self.assertEqual(response.status_code, 409)
        after = Account.objects.get(uid=admin["uid"])
        self.assertEqual(after.role, Account.ADMIN)
        self.assertEqual(after.email, "a@x.com")
        self.assertEqual(after.created_at, before.created_at)

    def test_orphan_retry_requires_credential(self) -> None:
        self._bootstrap()
        self._sign_in("a@x.com")

        response = self.client.post(
            reverse("account-orphan", args=["no-such-credential"]),
            {"username": "ghost", "role": Account.ADMIN},
            format="json",
        )

        self.assertEqual(response.status_code, 404)
        self.assertFalse(Account.objects.filter(uid="no-such-credential").exists())

    def test_orphan_retry_writes_profile_from_credential(self) -> None:
        self._bootstrap()
        self._sign_in("a@x.com")
        orphan_id = DjangoAuthProvider(auto_sign_in=False).create_credential("c@x.com", PASSWORD)

        response = self.client.post(
            reverse("account-orphan", args=[orphan_id]),
            {"email": "spoofed@x.com", "username": "carol"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["email"], "c@x.com")
        self.assertEqual(response.data["role"], Account.USER)
        self.assertEqual(
            self.client.delete(reverse("account-orphan", args=[orphan_id])).status_code, 409
        )
