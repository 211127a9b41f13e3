# accounts/services.py
import hashlib
import logging
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import RefreshToken

from common.auth_tokens import PasswordResetToken
from emails.services import send_templated_email

logger = logging.getLogger(__name__)
User = get_user_model()


def tokens_for_user(user) -> dict:
    refresh = RefreshToken.for_user(user)
    refresh["name"] = user.first_name
    refresh["email"] = user.email
    return {"refresh": str(refresh), "access": str(refresh.access_token)}


def find_user_by_email(email: str) -> Optional[User]:
    return User.objects.filter(email__iexact=(email or "").strip()).order_by("id").first()


def register_user(serializer) -> User:
    with transaction.atomic():
        user = serializer.save()
    send_templated_email(
        name="welcome_user",
        to=user.email,
        context={"name": user.first_name, "email": user.email},
    )
    logger.info("Registered user %s (id=%s)", user.email, user.id)
    return user


def _password_fingerprint(user) -> str:
    return hashlib.sha256((user.password or "").encode("utf-8")).hexdigest()[:16]


def issue_password_reset_token(user) -> str:
    token = PasswordResetToken.for_user(user)
    # changes once the password is reset, so the token works only once
    token["pwd"] = _password_fingerprint(user)
    return str(token)


def user_from_reset_token(raw: str) -> Optional[User]:
    """Returns None for a bad, expired or wrong-type token."""
    try:
        token = PasswordResetToken(raw)
    except TokenError:
        return None
    user_id = token.get(api_settings.USER_ID_CLAIM)
    if user_id is None:
        return None
    user = User.objects.filter(**{api_settings.USER_ID_FIELD: user_id, "is_active": True}).first()
    if user is None or token.get("pwd") != _password_fingerprint(user):
        return None
    return user


def reset_password(user, new_password: str) -> None:
    user.set_password(new_password)
    user.save(update_fields=["password"])
    logger.info("Password reset for user id=%s", user.id)
