import re
from datetime import timedelta

from django.core import mail
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIRequestFactory

from otp.models import OtpAudit, OtpRequest
from otp.services import generate_otp, verify_otp
from otp.views import OtpRequestView, OtpVerifyView


class OtpServiceTests(TestCase):
    def setUp(self):
        cache.clear()

    def _code(self):
        return re.search(r"\b(\d{6})\b", mail.outbox[-1].body).group(1)

    def test_generate_stores_only_a_hash(self):
        otp = generate_otp("Bob@Example.com", OtpRequest.PURPOSE_LOGIN)
        code = self._code()
        self.assertEqual(otp.email, "bob@example.com")
        self.assertNotIn(code, otp.code_hash)
        self.assertEqual(mail.outbox[-1].subject, "Your sign-in code")

    def test_new_code_supersedes_previous(self):
        first = generate_otp("bob@example.com", OtpRequest.PURPOSE_LOGIN)
        second = generate_otp("bob@example.com", OtpRequest.PURPOSE_LOGIN)

        first.refresh_from_db()
        self.assertTrue(first.is_used)
        open_codes = OtpRequest.objects.filter(email="bob@example.com", is_used=False)
        self.assertEqual(list(open_codes), [second])

    def test_wrong_code_counts_attempts_and_audits(self):
        otp = generate_otp("bob@example.com", OtpRequest.PURPOSE_LOGIN)
        code = self._code()
        wrong = "000000" if code != "000000" else "111111"

        result = verify_otp("bob@example.com", OtpRequest.PURPOSE_LOGIN, wrong)
        self.assertFalse(result.ok)
        self.assertEqual(result.status_code, 400)
        otp.refresh_from_db()
        self.assertEqual(otp.attempts, 1)
        self.assertTrue(OtpAudit.objects.filter(email="bob@example.com", reason="invalid_code").exists())

        self.assertTrue(verify_otp("bob@example.com", OtpRequest.PURPOSE_LOGIN, code).ok)

    def test_expired_code(self):
        otp = generate_otp("bob@example.com", OtpRequest.PURPOSE_LOGIN)
        OtpRequest.objects.filter(pk=otp.pk).update(expires_at=timezone.now() - timedelta(seconds=1))
        result = verify_otp("bob@example.com", OtpRequest.PURPOSE_LOGIN, self._code())
        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "OTP not sent or expired.")

    @override_settings(OTP_RATE_VERIFY_PER_EMAIL=2)
    def test_verify_rate_limit(self):
        generate_otp("bob@example.com", OtpRequest.PURPOSE_LOGIN)
        for _ in range(2):
            verify_otp("bob@example.com", OtpRequest.PURPOSE_LOGIN, "999999x")
        result = verify_otp("bob@example.com", OtpRequest.PURPOSE_LOGIN, "999999x")
        self.assertEqual(result.status_code, 429)

    @override_settings(OTP_RATE_SEND_PER_EMAIL=1)
    def test_send_rate_limit(self):
        generate_otp("bob@example.com", OtpRequest.PURPOSE_LOGIN)
        with self.assertRaises(ValueError):
            generate_otp("bob@example.com", OtpRequest.PURPOSE_LOGIN)


class OtpViewTests(TestCase):
    def setUp(self):
        cache.clear()
        self.factory = APIRequestFactory()

    def test_request_and_verify(self):
        request = self.factory.post(
            "/api/v1/otp/request", {"email": "bob@example.com", "purpose": "login"}, format="json"
        )
        resp = OtpRequestView.as_view()(request)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(OtpRequest.objects.filter(email="bob@example.com").count(), 1)

        code = re.search(r"\b(\d{6})\b", mail.outbox[-1].body).group(1)
        request = self.factory.post(
            "/api/v1/otp/verify",
            {"email": "bob@example.com", "purpose": "login", "code": code},
            format="json",
        )
        resp = OtpVerifyView.as_view()(request)
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data["ok"])

    def test_unknown_purpose(self):
        request = self.factory.post(
            "/api/v1/otp/request", {"email": "bob@example.com", "purpose": "signup"}, format="json"
        )
        resp = OtpRequestView.as_view()(request)
        self.assertEqual(resp.status_code, 400)
        self.assertIn("purpose", resp.data)
