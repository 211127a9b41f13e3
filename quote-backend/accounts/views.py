# accounts/views.py
from django.contrib.auth import get_user_model
from rest_framework import generics, mixins, permissions, status, viewsets
from rest_framework.filters import OrderingFilter, SearchFilter
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework.response import Response

from common.api_mixins import PageListMixin
from common.permissions import IsStaffOrSelf
from otp.models import OtpRequest
from otp.services import generate_otp, verify_otp
from otp.views import client_meta

from .serializers import (
    PasswordOtpRequestSerializer,
    PasswordOtpVerifySerializer,
    PasswordResetSerializer,
    RegisterSerializer,
    UserSerializer,
)
from .services import (
    find_user_by_email,
    issue_password_reset_token,
    register_user,
    reset_password,
    tokens_for_user,
    user_from_reset_token,
)

User = get_user_model()


class RegisterView(generics.GenericAPIView):
    """
    POST /api/v1/auth/register  {name, email, password}
    """
    serializer_class = RegisterSerializer
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = register_user(serializer)
        return Response(
            {"user": UserSerializer(user).data, **tokens_for_user(user)},
            status=status.HTTP_201_CREATED,
        )


class UserViewSet(
    PageListMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    GET    /api/v1/users/?search=&is_active=&ordering=
    GET    /api/v1/users/<id>/
    PATCH  /api/v1/users/<id>/   {name?, email?}
    DELETE /api/v1/users/<id>/
    """
    queryset = User.objects.all()
    serializer_class = UserSerializer
    permission_classes = [IsStaffOrSelf]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ["is_active", "is_staff"]
    search_fields = ["first_name", "email"]
    ordering = ["id"]
    ordering_fields = ["id", "first_name", "email", "date_joined"]
    http_method_names = ["get", "put", "patch", "delete", "head", "options"]


class PasswordOtpRequestView(generics.GenericAPIView):
    """
    POST /api/v1/auth/password/otp  {email}
    """
    serializer_class = PasswordOtpRequestSerializer
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data["email"]

        if not find_user_by_email(email):
            return Response({"ok": False, "detail": "User not found"}, status=status.HTTP_404_NOT_FOUND)

        ip, ua = client_meta(request)
        try:
            generate_otp(email=email, purpose=OtpRequest.PURPOSE_PASSWORD_RESET, ip=ip, ua=ua)
        except ValueError as exc:
            return Response({"ok": False, "detail": str(exc)}, status=status.HTTP_429_TOO_MANY_REQUESTS)
        return Response({"ok": True, "detail": "OTP sent to email"})


class PasswordOtpVerifyView(generics.GenericAPIView):
    """
    POST /api/v1/auth/password/verify-otp  {email, code}  -> {token}
    """
    serializer_class = PasswordOtpVerifySerializer
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data["email"]

        result = verify_otp(
            email=email,
            purpose=OtpRequest.PURPOSE_PASSWORD_RESET,
            code=serializer.validated_data["code"],
        )
        if not result.ok:
            return Response({"ok": False, "detail": result.reason}, status=result.status_code)

        user = find_user_by_email(email)
        if not user:
            return Response({"ok": False, "detail": "User not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response({"ok": True, "detail": "OTP verified", "token": issue_password_reset_token(user)})


class PasswordResetView(generics.GenericAPIView):
    """
    POST /api/v1/auth/password/reset  {new_password, token?}
    The reset token may also be sent as "Authorization: Bearer <token>".
    """
    serializer_class = PasswordResetSerializer
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        raw = serializer.validated_data.get("token")
        if not raw:
            header = request.headers.get("Authorization", "")
            scheme, _, value = header.partition(" ")
            raw = value.strip() if scheme.lower() == "bearer" else ""
        if not raw:
            return Response({"ok": False, "detail": "No token provided"}, status=status.HTTP_401_UNAUTHORIZED)

        user = user_from_reset_token(raw)
        if user is None:
            return Response({"ok": False, "detail": "Invalid or expired token"}, status=status.HTTP_400_BAD_REQUEST)

        reset_password(user, serializer.validated_data["new_password"])
        return Response({"ok": True, "detail": "Password reset successfully"})
