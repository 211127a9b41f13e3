from django.apps import AppConfig
from django.db.models.signals import post_migrate


class EmailsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "emails"
    verbose_name = "Emails"

    def ready(self):
        def seed_templates(sender, **kwargs):
            from emails.models import EmailTemplate

            EmailTemplate.objects.update_or_create(
                name="password_reset_otp",
                defaults={
                    "subject": "Your OTP for password reset",
                    "html_body": """
                        <h2>Your OTP: <strong style="font-size: 24px;">{{ code }}</strong></h2>
                        <p>It is valid for {{ expires_minutes }} minutes.</p>
                        <p>If you did not ask to reset your password, you can ignore this email.</p>
                    """,
                    "locale": "en",
                    "version": 1,
                    "is_active": True,
                },
            )

            EmailTemplate.objects.update_or_create(
                name="login_otp",
                defaults={
                    "subject": "Your sign-in code",
                    "html_body": """
                        <p>Hello,</p>
                        <p>Your sign-in code is <strong>{{ code }}</strong>.</p>
                        <p>It expires in {{ expires_minutes }} minutes.</p>
                    """,
                    "locale": "en",
                    "version": 1,
                    "is_active": True,
                },
            )

            EmailTemplate.objects.update_or_create(
                name="welcome_user",
                defaults={
                    "subject": "Welcome to Quotations",
                    "html_body": """
                        <div style="font-family: Arial, sans-serif; color: #111; padding: 16px;">
                          <h2 style="color: #111;">Welcome, {{ name }}</h2>
                          <p>Your account <strong>{{ email }}</strong> is ready.</p>
                          <p>You can now sign in and start creating quotations.</p>
                        </div>
                    """,
                    "locale": "en",
                    "version": 1,
                    "is_active": True,
                },
            )

        post_migrate.connect(seed_templates, sender=self)
