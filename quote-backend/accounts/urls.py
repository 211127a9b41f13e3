# accounts/urls.py
from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView, TokenVerifyView

from common.auth_views import EmailTokenObtainPairView
from .views import (
    PasswordOtpRequestView,
    PasswordOtpVerifyView,
    PasswordResetView,
    RegisterView,
)

urlpatterns = [
    path("auth/register", RegisterView.as_view(), name="auth-register"),
    path("auth/token/", EmailTokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("auth/verify/", TokenVerifyView.as_view(), name="token_verify"),
    path("auth/password/otp", PasswordOtpRequestView.as_view(), name="password-otp"),
    path("auth/password/verify-otp", PasswordOtpVerifyView.as_view(), name="password-verify-otp"),
    path("auth/password/reset", PasswordResetView.as_view(), name="password-reset"),
]
