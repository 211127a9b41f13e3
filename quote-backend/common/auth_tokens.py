# common/auth_tokens.py
from datetime import timedelta

from django.conf import settings
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.tokens import Token


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Login with email + password (see accounts.backends.EmailBackend).
    Embeds the display name in the tokens and returns a small user profile.
    """
    username_field = "email"

    def validate(self, attrs):
        attrs[self.username_field] = (attrs.get(self.username_field) or "").strip().lower()
        data = super().validate(attrs)

        refresh = self.get_token(self.user)
        refresh["name"] = self.user.get_full_name() or self.user.first_name
        refresh["email"] = self.user.email

        data["refresh"] = str(refresh)
        data["access"] = str(refresh.access_token)
        data["user"] = {
            "id": self.user.id,
            "name": self.user.first_name,
            "email": self.user.email,
            "is_staff": self.user.is_staff,
        }
        return data


class PasswordResetToken(Token):
    """
    Short-lived token handed out after a password-reset OTP is verified.
    Its token_type is not "access", so JWTAuthentication never accepts it
    as a login.
    """
    token_type = "password_reset"
    lifetime = timedelta(minutes=getattr(settings, "PASSWORD_RESET_TOKEN_MINUTES", 15))
