from django.db import models
from django.utils import timezone


class EmailTemplate(models.Model):
    """
    Named transactional templates (e.g. 'password_reset_otp', 'welcome_user').
    Bodies are Django template strings rendered with the send-time context.
    """
    name = models.CharField(max_length=100, unique=True)
    subject = models.CharField(max_length=200)
    html_body = models.TextField()
    locale = models.CharField(max_length=8, default="en")
    version = models.IntegerField(default=1)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name", "-version"]

    def __str__(self):
        return f"{self.name} (v{self.version}, {self.locale})"


class EmailLog(models.Model):
    STATUS_QUEUED = "queued"
    STATUS_SENT = "sent"
    STATUS_FAILED = "failed"

    to_address = models.EmailField()
    subject = models.CharField(max_length=200)
    template = models.ForeignKey(EmailTemplate, null=True, blank=True, on_delete=models.SET_NULL)
    # context without secrets (OTP codes are masked before logging)
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(
        max_length=20,
        choices=[
            (STATUS_QUEUED, "Queued"),
            (STATUS_SENT, "Sent"),
            (STATUS_FAILED, "Failed"),
        ],
        default=STATUS_QUEUED,
    )
    error_message = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["to_address"], name="emaillog_to_address_idx"),
            models.Index(fields=["status"], name="emaillog_status_idx"),
        ]

    def __str__(self):
        return f"{self.to_address} [{self.subject}] ({self.status})"
