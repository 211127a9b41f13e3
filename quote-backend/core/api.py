# core/api.py
from rest_framework.routers import DefaultRouter

from accounts.views import UserViewSet

router = DefaultRouter()
router.register(r"users", UserViewSet, basename="user")
