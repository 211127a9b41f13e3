from django.db import models
from django.utils import timezone


class OtpRequest(models.Model):
    """
    One issued one-time code. Only a salted hash is stored; rows expire on
    their own (expires_at) and are swept when a new code is issued.
    """
    PURPOSE_PASSWORD_RESET = "password_reset"
    PURPOSE_LOGIN = "login"

    PURPOSE_CHOICES = [
        (PURPOSE_PASSWORD_RESET, "Password reset"),
        (PURPOSE_LOGIN, "Login"),
    ]

    email = models.EmailField()
    purpose = models.CharField(max_length=32, choices=PURPOSE_CHOICES)
    code_hash = models.CharField(max_length=128)
    salt = models.CharField(max_length=32)
    expires_at = models.DateTimeField()
    attempts = models.IntegerField(default=0)
    max_attempts = models.IntegerField(default=5)
    is_used = models.BooleanField(default=False)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=["email", "purpose"], name="otprequest_email_purpose_idx"),
            models.Index(fields=["expires_at"], name="otprequest_expires_idx"),
        ]
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.email} [{self.purpose}]"


class OtpConfig(models.Model):
    """
    Admin-configurable OTP rate limits. The first active row wins;
    without one the OTP_RATE_* settings apply.
    """
    is_active = models.BooleanField(default=True)

    send_per_email = models.PositiveIntegerField(default=3)
    send_email_window = models.PositiveIntegerField(default=300, help_text="Seconds")
    send_per_ip = models.PositiveIntegerField(default=10)
    send_ip_window = models.PositiveIntegerField(default=900, help_text="Seconds")
    verify_per_email = models.PositiveIntegerField(default=5)
    verify_email_window = models.PositiveIntegerField(default=300, help_text="Seconds")

    class Meta:
        ordering = ["-is_active", "id"]

    def __str__(self):
        return f"OTP config #{self.pk} ({'active' if self.is_active else 'inactive'})"


class OtpAudit(models.Model):
    ACTION_CHOICES = [
        ("verify_failed", "Verify failed"),
    ]

    email = models.EmailField()
    purpose = models.CharField(max_length=32)
    action = models.CharField(max_length=32, choices=ACTION_CHOICES)
    reason = models.CharField(max_length=120, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["email", "purpose"], name="otpaudit_email_purpose_idx"),
        ]

    def __str__(self):
        return f"{self.email}:{self.action}"
