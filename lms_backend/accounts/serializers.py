from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone
from rest_framework import serializers

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """Current user / public user representation."""
    tenant_id = serializers.UUIDField(read_only=True, allow_null=True)
    role = serializers.SerializerMethodField()
    roles = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'tenant_id', 'email', 'first_name', 'last_name',
            'role', 'roles', 'is_active', 'last_login', 'created_at',
        ]
        read_only_fields = fields

    def get_role(self, obj):
        role = obj.primary_role
        return role.value if role else None

    def get_roles(self, obj):
        return sorted(role.value for role in obj.roles)


class ProfileSerializer(serializers.ModelSerializer):
    role = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'role',
            'phone', 'date_of_birth', 'gender', 'bio', 'avatar_url',
            'timezone', 'language', 'email_notifications',
            'last_login', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'email', 'role', 'last_login', 'created_at', 'updated_at']

    def get_role(self, obj):
        role = obj.primary_role
        return role.value if role else None

    def validate_date_of_birth(self, value):
        if value and value >= timezone.localdate():
            raise serializers.ValidationError('The date of birth must be a date before today.')
        return value


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(trim_whitespace=False)
    tenant_id = serializers.CharField(required=False, allow_blank=True)


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=254)
    password = serializers.CharField(write_only=True, trim_whitespace=False)
    password_confirmation = serializers.CharField(write_only=True, trim_whitespace=False)
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirmation']:
            raise serializers.ValidationError({'password_confirmation': ['The password confirmation does not match.']})
        candidate = User(
            email=attrs['email'], first_name=attrs['first_name'], last_name=attrs['last_name'],
        )
        try:
            validate_password(attrs['password'], user=candidate)
        except DjangoValidationError as exc:
            raise serializers.ValidationError({'password': list(exc.messages)})
        return attrs


class RefreshSerializer(serializers.Serializer):
    refresh_token = serializers.CharField()


class ImpersonateSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(min_value=1)


class PasswordChangeSerializer(serializers.Serializer):
    current_password = serializers.CharField(trim_whitespace=False)
    password = serializers.CharField(trim_whitespace=False)
    password_confirmation = serializers.CharField(trim_whitespace=False)

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirmation']:
            raise serializers.ValidationError({'password_confirmation': ['The password confirmation does not match.']})
        try:
            validate_password(attrs['password'], user=self.context['request'].user)
        except DjangoValidationError as exc:
            raise serializers.ValidationError({'password': list(exc.messages)})
        return attrs
