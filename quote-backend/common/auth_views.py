# common/auth_views.py
from rest_framework_simplejwt.views import TokenObtainPairView
from .auth_tokens import EmailTokenObtainPairSerializer


class EmailTokenObtainPairView(TokenObtainPairView):
    serializer_class = EmailTokenObtainPairSerializer
