import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template import Context, Template
from django.utils import timezone
from django.utils.html import strip_tags

from .models import EmailLog, EmailTemplate

logger = logging.getLogger(__name__)

SECRET_CONTEXT_KEYS = ("code", "token")


def render_template(template: EmailTemplate, context: dict) -> str:
    return Template(template.html_body).render(Context(context))


def _loggable(context: dict) -> dict:
    return {k: ("***" if k in SECRET_CONTEXT_KEYS else v) for k, v in context.items()}


def send_templated_email(name: str, to: str, context: dict, locale: str = "en") -> EmailLog:
    """
    Render and send a named template. Every attempt is written to EmailLog;
    delivery failures are logged and recorded, never raised.
    """
    template = (
        EmailTemplate.objects.filter(name=name, locale=locale, is_active=True)
        .order_by("-version")
        .first()
    )
    if not template:
        logger.error("Email template %s (%s) not found", name, locale)
        return EmailLog.objects.create(
            to_address=to,
            subject=f"[MISSING TEMPLATE] {name}",
            status=EmailLog.STATUS_FAILED,
            payload={"context": _loggable(context)},
        )

    html_body = render_template(template, context)
    log = EmailLog.objects.create(
        to_address=to,
        subject=template.subject,
        template=template,
        status=EmailLog.STATUS_QUEUED,
        payload={"context": _loggable(context)},
    )

    try:
        msg = EmailMultiAlternatives(
            subject=template.subject,
            body=strip_tags(html_body).strip(),
            from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
            to=[to],
        )
        msg.attach_alternative(html_body, "text/html")
        msg.send(fail_silently=False)

        log.status = EmailLog.STATUS_SENT
        log.sent_at = timezone.now()
        log.save(update_fields=["status", "sent_at"])
    except Exception as exc:
        logger.exception("Failed to send email to %s", to)
        log.status = EmailLog.STATUS_FAILED
        log.error_message = str(exc)
        log.save(update_fields=["status", "error_message"])

    return log
