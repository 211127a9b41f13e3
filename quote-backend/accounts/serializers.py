# accounts/serializers.py
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source="first_name", max_length=150, required=False)

    class Meta:
        model = User
        fields = ["id", "name", "email", "is_staff", "is_active", "date_joined", "last_login"]
        read_only_fields = ["id", "is_staff", "is_active", "date_joined", "last_login"]

    def validate_email(self, value):
        email = value.strip().lower()
        qs = User.objects.filter(email__iexact=email)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("User already exists")
        return email

    def update(self, instance, validated_data):
        email = validated_data.get("email")
        if email:
            instance.email = email
            instance.username = email
        if "first_name" in validated_data:
            instance.first_name = validated_data["first_name"]
        instance.save()
        return instance


class RegisterSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate_email(self, value):
        email = value.strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise serializers.ValidationError("User already exists")
        return email

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        return User.objects.create_user(
            username=validated_data["email"],
            email=validated_data["email"],
            password=validated_data["password"],
            first_name=validated_data["name"].strip(),
        )


class PasswordOtpRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()


class PasswordOtpVerifySerializer(serializers.Serializer):
    email = serializers.EmailField()
    # the web client posts "otp"
    code = serializers.CharField(max_length=8, required=False)
    otp = serializers.CharField(max_length=8, required=False, write_only=True)

    def validate(self, attrs):
        code = attrs.get("code") or attrs.pop("otp", None)
        if not code:
            raise serializers.ValidationError({"code": ["This field is required."]})
        attrs["code"] = code
        return attrs


class PasswordResetSerializer(serializers.Serializer):
    token = serializers.CharField(required=False)
    new_password = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate_new_password(self, value):
        validate_password(value)
        return value
