import re

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.views import (
    PasswordOtpRequestView,
    PasswordOtpVerifyView,
    PasswordResetView,
    RegisterView,
    UserViewSet,
)
from common.auth_views import EmailTokenObtainPairView

User = get_user_model()


class RegisterAndLoginTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()

    def _register(self, **data):
        payload = {"name": "Alice", "email": "Alice@Example.com", "password": "s3cret-pass"}
        payload.update(data)
        request = self.factory.post("/api/v1/auth/register", payload, format="json")
        return RegisterView.as_view()(request)

    def _login(self, email, password):
        request = self.factory.post("/api/v1/auth/token/", {"email": email, "password": password}, format="json")
        return EmailTokenObtainPairView.as_view()(request)

    def test_register_returns_tokens(self):
        resp = self._register()
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["user"]["email"], "alice@example.com")
        self.assertEqual(resp.data["user"]["name"], "Alice")
        self.assertIn("access", resp.data)
        self.assertIn("refresh", resp.data)
        self.assertTrue(User.objects.filter(username="alice@example.com").exists())

    def test_duplicate_email_is_rejected(self):
        self.assertEqual(self._register().status_code, 201)
        resp = self._register(email="ALICE@example.com")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["email"], ["User already exists"])

    def test_short_password_is_rejected(self):
        resp = self._register(password="abc")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("password", resp.data)

    def test_login_with_email_any_case(self):
        self._register()
        resp = self._login("ALICE@example.com", "s3cret-pass")
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertIn("access", resp.data)
        self.assertEqual(resp.data["user"]["email"], "alice@example.com")

    def test_login_with_wrong_password(self):
        self._register()
        resp = self._login("alice@example.com", "nope-nope")
        self.assertEqual(resp.status_code, 401)


class PasswordResetFlowTests(TestCase):
    def setUp(self):
        cache.clear()
        self.factory = APIRequestFactory()
        self.user = User.objects.create_user(
            username="alice@example.com",
            email="alice@example.com",
            password="old-secret",
        )

    def _post(self, view, path, data, **extra):
        request = self.factory.post(path, data, format="json", **extra)
        return view.as_view()(request)

    def _request_code(self, email="alice@example.com"):
        return self._post(PasswordOtpRequestView, "/api/v1/auth/password/otp", {"email": email})

    def _last_code(self):
        return re.search(r"\b(\d{6})\b", mail.outbox[-1].body).group(1)

    def _verify(self, code):
        return self._post(
            PasswordOtpVerifyView,
            "/api/v1/auth/password/verify-otp",
            {"email": "alice@example.com", "otp": code},
        )

    def test_full_reset_flow(self):
        resp = self._request_code()
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(mail.outbox[-1].to, ["alice@example.com"])

        resp = self._verify(self._last_code())
        self.assertEqual(resp.status_code, 200, resp.data)
        token = resp.data["token"]

        resp = self._post(
            PasswordResetView,
            "/api/v1/auth/password/reset",
            {"token": token, "new_password": "new-secret"},
        )
        self.assertEqual(resp.status_code, 200, resp.data)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("new-secret"))

        # the token is spent once the password changed
        resp = self._post(
            PasswordResetView,
            "/api/v1/auth/password/reset",
            {"token": token, "new_password": "third-secret"},
        )
        self.assertEqual(resp.status_code, 400)

    def test_reset_token_in_authorization_header(self):
        self._request_code()
        token = self._verify(self._last_code()).data["token"]
        resp = self._post(
            PasswordResetView,
            "/api/v1/auth/password/reset",
            {"new_password": "new-secret"},
            HTTP_AUTHORIZATION=f"Bearer {token}",
        )
        self.assertEqual(resp.status_code, 200, resp.data)

    def test_reset_without_token(self):
        resp = self._post(PasswordResetView, "/api/v1/auth/password/reset", {"new_password": "new-secret"})
        self.assertEqual(resp.status_code, 401)

    def test_reset_token_is_not_an_access_token(self):
        self._request_code()
        token = self._verify(self._last_code()).data["token"]
        request = self.factory.get("/api/v1/users/", HTTP_AUTHORIZATION=f"Bearer {token}")
        resp = UserViewSet.as_view({"get": "list"})(request)
        self.assertEqual(resp.status_code, 401)

    def test_unknown_email(self):
        resp = self._request_code("ghost@example.com")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(len(mail.outbox), 0)

    def test_wrong_code(self):
        self._request_code()
        code = self._last_code()
        wrong = "000000" if code != "000000" else "111111"
        resp = self._verify(wrong)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["detail"], "Invalid OTP.")

    def test_code_is_single_use(self):
        self._request_code()
        code = self._last_code()
        self.assertEqual(self._verify(code).status_code, 200)
        resp = self._verify(code)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["detail"], "OTP not sent or expired.")

    def test_request_rate_limited(self):
        for _ in range(3):
            self.assertEqual(self._request_code().status_code, 200)
        resp = self._request_code()
        self.assertEqual(resp.status_code, 429)


class UserViewSetTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.staff = User.objects.create_user(
            username="admin@example.com", email="admin@example.com", password="pw-admin", is_staff=True
        )
        self.alice = User.objects.create_user(
            username="alice@example.com", email="alice@example.com", password="pw-alice", first_name="Alice"
        )
        self.bob = User.objects.create_user(
            username="bob@example.com", email="bob@example.com", password="pw-bob", first_name="Bob"
        )

    def _call(self, action, method, user, pk=None, data=None, params=None):
        path = "/api/v1/users/" + (f"{pk}/" if pk else "")
        if method == "get":
            request = self.factory.get(path, params)
        else:
            request = getattr(self.factory, method)(path, data, format="json")
        force_authenticate(request, user=user)
        kwargs = {"pk": pk} if pk else {}
        return UserViewSet.as_view({method: action})(request, **kwargs)

    def test_list_is_paginated_and_searchable(self):
        resp = self._call("list", "get", self.staff, params={"page_size": 2})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["count"], 3)
        self.assertEqual(len(resp.data["results"]), 2)

        resp = self._call("list", "get", self.staff, params={"search": "bob"})
        self.assertEqual([u["email"] for u in resp.data["results"]], ["bob@example.com"])

    def test_user_can_rename_self(self):
        resp = self._call("partial_update", "patch", self.alice, pk=self.alice.pk, data={"name": "Alicia"})
        self.assertEqual(resp.status_code, 200, resp.data)
        self.alice.refresh_from_db()
        self.assertEqual(self.alice.first_name, "Alicia")

    def test_user_cannot_change_someone_else(self):
        resp = self._call("partial_update", "patch", self.alice, pk=self.bob.pk, data={"name": "Robert"})
        self.assertEqual(resp.status_code, 403)

    def test_email_change_keeps_username_in_sync(self):
        resp = self._call("partial_update", "patch", self.staff, pk=self.bob.pk, data={"email": "Robert@Example.com"})
        self.assertEqual(resp.status_code, 200, resp.data)
        self.bob.refresh_from_db()
        self.assertEqual(self.bob.email, "robert@example.com")
        self.assertEqual(self.bob.username, "robert@example.com")

    def test_email_taken_by_other_user(self):
        resp = self._call("partial_update", "patch", self.staff, pk=self.bob.pk, data={"email": "alice@example.com"})
        self.assertEqual(resp.status_code, 400)

    def test_staff_can_delete(self):
        resp = self._call("destroy", "delete", self.staff, pk=self.bob.pk)
        self.assertEqual(resp.status_code, 204)
        self.assertFalse(User.objects.filter(pk=self.bob.pk).exists())

    def test_non_staff_cannot_list_users(self):
        resp = self._call("list", "get", self.alice)
        self.assertEqual(resp.status_code, 403)

    def test_non_staff_cannot_delete_even_self(self):
        for pk in (self.alice.pk, self.bob.pk):
            with self.subTest(pk=pk):
                resp = self._call("destroy", "delete", self.alice, pk=pk)
                self.assertEqual(resp.status_code, 403)
        self.assertEqual(User.objects.count(), 3)

    def test_user_can_read_self_but_not_others(self):
        resp = self._call("retrieve", "get", self.alice, pk=self.alice.pk)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["email"], "alice@example.com")

        resp = self._call("retrieve", "get", self.alice, pk=self.bob.pk)
        self.assertEqual(resp.status_code, 403)
