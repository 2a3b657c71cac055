from django.contrib.auth import password_validation
from rest_framework import serializers

from taskhub.users.models import User


class UserSummarySerializer(serializers.ModelSerializer[User]):
    """Compact representation embedded in other resources."""

    class Meta:
        model = User
        fields = ["id", "username", "name", "email", "is_online"]
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer[User]):
    full_name = serializers.CharField(source="name", read_only=True)
    id = serializers.IntegerField(read_only=True)

    # Identity and privilege fields only change through dedicated endpoints
    username = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)
    role = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "first_name",
            "last_name",
            "full_name",
            "email",
            "role",
            "is_active",
            "is_online",
            "last_seen",
            "email_notifications",
            "digest_frequency",
            "created_at",
        ]
        read_only_fields = ["is_active", "is_online", "last_seen", "created_at"]

    def update(self, instance, validated_data):
        locked = ("username", "email", "role", "is_active")
        forbidden = {k for k in locked if k in self.initial_data}
        if forbidden:
            errors = {f: "This field cannot be changed here." for f in forbidden}
            raise serializers.ValidationError(errors)
        return super().update(instance, validated_data)


class RegisterSerializer(serializers.ModelSerializer[User]):
    password = serializers.CharField(write_only=True, trim_whitespace=False)

    class Meta:
        model = User
        fields = ["username", "email", "password", "first_name", "last_name"]

    def validate_email(self, value: str) -> str:
        if User.objects.filter(email__iexact=value).exists():
            msg = "A user with this email already exists."
            raise serializers.ValidationError(msg)
        return value.lower()

    def validate(self, attrs):
        candidate = User(
            username=attrs.get("username"),
            email=attrs.get("email"),
            first_name=attrs.get("first_name", ""),
            last_name=attrs.get("last_name", ""),
        )
        password_validation.validate_password(attrs["password"], candidate)
        return attrs

    def create(self, validated_data):
        return User.objects.create_user(**validated_data)


class RoleChangeSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=User.Role.choices)
