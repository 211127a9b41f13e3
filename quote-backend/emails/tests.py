from unittest import mock

from django.core import mail
from django.test import TestCase

from emails.models import EmailLog, EmailTemplate
from emails.services import send_templated_email


class SendTemplatedEmailTests(TestCase):
    def test_default_templates_are_seeded(self):
        names = set(EmailTemplate.objects.values_list("name", flat=True))
        self.assertTrue({"password_reset_otp", "login_otp", "welcome_user"} <= names)

    def test_sends_and_logs_without_secrets(self):
        log = send_templated_email("password_reset_otp", "bob@example.com", {"code": "123456", "expires_minutes": 10})
        self.assertEqual(log.status, EmailLog.STATUS_SENT)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("123456", mail.outbox[0].body)
        self.assertEqual(mail.outbox[0].alternatives[0][1], "text/html")
        self.assertEqual(log.payload["context"]["code"], "***")

    def test_missing_template_is_logged_not_raised(self):
        with self.assertLogs("emails.services", level="ERROR"):
            log = send_templated_email("no_such_template", "bob@example.com", {})
        self.assertEqual(log.status, EmailLog.STATUS_FAILED)
        self.assertEqual(len(mail.outbox), 0)

    def test_delivery_failure_is_recorded(self):
        with mock.patch("emails.services.EmailMultiAlternatives.send", side_effect=OSError("smtp down")), \
                self.assertLogs("emails.services", level="ERROR"):
            log = send_templated_email("welcome_user", "bob@example.com", {"name": "Bob", "email": "bob@example.com"})
        log.refresh_from_db()
        self.assertEqual(log.status, EmailLog.STATUS_FAILED)
        self.assertTrue(log.error_message)
