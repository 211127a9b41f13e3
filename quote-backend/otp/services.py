import hashlib
import hmac
import logging
import secrets
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.utils import timezone

from emails.services import send_templated_email
from .models import OtpAudit, OtpConfig, OtpRequest

logger = logging.getLogger(__name__)

OTP_TTL_MINUTES = 10
OTP_CODE_LENGTH = 6
OTP_MAX_ATTEMPTS = 5

OTP_TEMPLATES = {
    OtpRequest.PURPOSE_PASSWORD_RESET: "password_reset_otp",
    OtpRequest.PURPOSE_LOGIN: "login_otp",
}


def _hash_code(code: str, salt: str) -> str:
    return hashlib.sha256((code + salt).encode("utf-8")).hexdigest()


def _rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """Returns True if over limit."""
    if cache.add(key, 1, timeout=window_seconds):
        return False
    try:
        current = cache.incr(key)
    except ValueError:
        # key expired between add() and incr()
        cache.set(key, 1, timeout=window_seconds)
        return False
    return current > limit


def _get_config() -> dict:
    cfg = OtpConfig.objects.filter(is_active=True).first()
    return {
        "send_per_email": cfg.send_per_email if cfg else getattr(settings, "OTP_RATE_SEND_PER_EMAIL", 3),
        "send_email_window": cfg.send_email_window if cfg else getattr(settings, "OTP_RATE_SEND_EMAIL_WINDOW", 300),
        "send_per_ip": cfg.send_per_ip if cfg else getattr(settings, "OTP_RATE_SEND_PER_IP", 10),
        "send_ip_window": cfg.send_ip_window if cfg else getattr(settings, "OTP_RATE_SEND_IP_WINDOW", 900),
        "verify_per_email": cfg.verify_per_email if cfg else getattr(settings, "OTP_RATE_VERIFY_PER_EMAIL", 5),
        "verify_email_window": cfg.verify_email_window if cfg else getattr(settings, "OTP_RATE_VERIFY_EMAIL_WINDOW", 300),
    }


def generate_otp(email: str, purpose: str, ip: Optional[str] = None, ua: Optional[str] = None) -> OtpRequest:
    """
    Issue a new code for (email, purpose) and mail it.
    Raises ValueError when the email or IP is over its send limit.
    """
    email = email.strip().lower()
    cfg = _get_config()
    if _rate_limit(f"otp:send:email:{email}", cfg["send_per_email"], cfg["send_email_window"]):
        raise ValueError("Too many OTP requests for this email. Please wait a few minutes.")
    if ip and _rate_limit(f"otp:send:ip:{ip}", cfg["send_per_ip"], cfg["send_ip_window"]):
        raise ValueError("Too many OTP requests from this IP. Please wait a few minutes.")

    code = f"{secrets.randbelow(10**OTP_CODE_LENGTH):0{OTP_CODE_LENGTH}d}"
    salt = secrets.token_hex(8)
    now = timezone.now()

    with transaction.atomic():
        # expired rows and any still-open code for the same purpose are superseded
        OtpRequest.objects.filter(email=email, purpose=purpose, expires_at__lt=now).delete()
        OtpRequest.objects.filter(email=email, purpose=purpose, is_used=False).update(is_used=True)

        otp = OtpRequest.objects.create(
            email=email,
            purpose=purpose,
            code_hash=_hash_code(code, salt),
            salt=salt,
            expires_at=now + timedelta(minutes=OTP_TTL_MINUTES),
            max_attempts=OTP_MAX_ATTEMPTS,
            ip_address=ip,
            user_agent=(ua or "")[:255],
        )

    send_templated_email(
        name=OTP_TEMPLATES.get(purpose, "password_reset_otp"),
        to=email,
        context={"code": code, "expires_minutes": OTP_TTL_MINUTES},
    )
    logger.info("Issued %s OTP for %s", purpose, email)
    return otp


class OtpVerificationResult:
    def __init__(self, ok: bool, reason: Optional[str] = None, status_code: int = 400):
        self.ok = ok
        self.reason = reason
        self.status_code = status_code


def _fail(email: str, purpose: str, reason: str, message: str, status_code: int = 400) -> OtpVerificationResult:
    OtpAudit.objects.create(email=email, purpose=purpose, action="verify_failed", reason=reason)
    return OtpVerificationResult(False, message, status_code=status_code)


def verify_otp(email: str, purpose: str, code: str) -> OtpVerificationResult:
    email = email.strip().lower()
    cfg = _get_config()
    if _rate_limit(f"otp:verify:email:{email}", cfg["verify_per_email"], cfg["verify_email_window"]):
        return _fail(email, purpose, "rate_limited", "Too many attempts. Please request a new code.", 429)

    otp = (
        OtpRequest.objects.filter(
            email=email,
            purpose=purpose,
            is_used=False,
            expires_at__gte=timezone.now(),
        )
        .order_by("-created_at")
        .first()
    )
    if not otp:
        return _fail(email, purpose, "not_found_or_expired", "OTP not sent or expired.")

    if otp.attempts >= otp.max_attempts:
        return _fail(email, purpose, "attempts_exceeded", "Too many attempts. Please request a new code.")

    if not hmac.compare_digest(otp.code_hash, _hash_code(code.strip(), otp.salt)):
        otp.attempts += 1
        otp.save(update_fields=["attempts"])
        return _fail(email, purpose, "invalid_code", "Invalid OTP.")

    otp.is_used = True
    otp.save(update_fields=["is_used"])
    return OtpVerificationResult(True, status_code=200)
