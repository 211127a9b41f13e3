from rest_framework import serializers

from .models import OtpRequest

PURPOSES = [p for p, _ in OtpRequest.PURPOSE_CHOICES]


class OtpRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()
    purpose = serializers.ChoiceField(choices=PURPOSES)


class OtpVerifySerializer(serializers.Serializer):
    email = serializers.EmailField()
    purpose = serializers.ChoiceField(choices=PURPOSES)
    code = serializers.CharField(max_length=8)
