from rest_framework import generics, status, permissions
from rest_framework.response import Response

from .serializers import OtpRequestSerializer, OtpVerifySerializer
from .services import generate_otp, verify_otp, OtpVerificationResult


def client_meta(request):
    return request.META.get("REMOTE_ADDR"), request.META.get("HTTP_USER_AGENT")


class OtpRequestView(generics.GenericAPIView):
    serializer_class = OtpRequestSerializer
    authentication_classes = []  # public
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ip, ua = client_meta(request)

        try:
            generate_otp(
                email=serializer.validated_data["email"],
                purpose=serializer.validated_data["purpose"],
                ip=ip,
                ua=ua,
            )
        except ValueError as exc:
            return Response({"ok": False, "detail": str(exc)}, status=status.HTTP_429_TOO_MANY_REQUESTS)

        return Response({"ok": True})


class OtpVerifyView(generics.GenericAPIView):
    serializer_class = OtpVerifySerializer
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result: OtpVerificationResult = verify_otp(
            email=serializer.validated_data["email"],
            purpose=serializer.validated_data["purpose"],
            code=serializer.validated_data["code"],
        )
        if not result.ok:
            return Response({"ok": False, "detail": result.reason}, status=result.status_code)
        return Response({"ok": True})
