import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="OtpRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("email", models.EmailField(max_length=254)),
                (
                    "purpose",
                    models.CharField(
                        choices=[("password_reset", "Password reset"), ("login", "Login")],
                        max_length=32,
                    ),
                ),
                ("code_hash", models.CharField(max_length=128)),
                ("salt", models.CharField(max_length=32)),
                ("expires_at", models.DateTimeField()),
                ("attempts", models.IntegerField(default=0)),
                ("max_attempts", models.IntegerField(default=5)),
                ("is_used", models.BooleanField(default=False)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["email", "purpose"], name="otprequest_email_purpose_idx"),
                    models.Index(fields=["expires_at"], name="otprequest_expires_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OtpConfig",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True)),
                ("send_per_email", models.PositiveIntegerField(default=3)),
                ("send_email_window", models.PositiveIntegerField(default=300, help_text="Seconds")),
                ("send_per_ip", models.PositiveIntegerField(default=10)),
                ("send_ip_window", models.PositiveIntegerField(default=900, help_text="Seconds")),
                ("verify_per_email", models.PositiveIntegerField(default=5)),
                ("verify_email_window", models.PositiveIntegerField(default=300, help_text="Seconds")),
            ],
            options={
                "ordering": ["-is_active", "id"],
            },
        ),
        migrations.CreateModel(
            name="OtpAudit",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("email", models.EmailField(max_length=254)),
                ("purpose", models.CharField(max_length=32)),
                ("action", models.CharField(choices=[("verify_failed", "Verify failed")], max_length=32)),
                ("reason", models.CharField(blank=True, max_length=120)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["email", "purpose"], name="otpaudit_email_purpose_idx"),
                ],
            },
        ),
    ]
