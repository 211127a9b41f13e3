# accounts/backends.py
from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()


class EmailBackend(ModelBackend):
    """Authenticate with a case-insensitive email instead of a username."""

    def authenticate(self, request, email=None, password=None, **kwargs):
        if not email or password is None:
            return None
        user = User.objects.filter(email__iexact=email.strip()).order_by("id").first()
        if user is None:
            # run the hasher anyway so timing does not reveal unknown emails
            User().set_password(password)
            return None
        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
