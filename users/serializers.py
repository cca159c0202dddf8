from django.contrib.auth import get_user_model
from rest_framework import serializers

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    role = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'full_name', 'phone_number', 'role', 'is_active', 'date_joined']
        read_only_fields = ['id', 'is_active', 'date_joined']


class PasswordChangeMixin:
    """
    Validates the optional ``current_password``/``new_password`` pair and applies it on save.
    """

    def validate_password_change(self, attrs, user):
        new_password = attrs.get('new_password')
        current_password = attrs.get('current_password')
        if not new_password and not current_password:
            return attrs
        if not new_password or not current_password:
            raise serializers.ValidationError(
                {'new_password': 'Both current_password and new_password are required to change the password.'}
            )
        if not user.check_password(current_password):
            raise serializers.ValidationError({'current_password': 'Current password is incorrect.'})
        return attrs

    def apply_password_change(self, user, validated_data):
        new_password = validated_data.pop('new_password', None)
        validated_data.pop('current_password', None)
        if new_password:
            user.set_password(new_password)
            return True
        return False


# ================= Admin =================
class AdminRegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=6)
    email = serializers.EmailField(required=False, allow_null=True, allow_blank=True)

    class Meta:
        model = User
        fields = ['username', 'password', 'full_name', 'email']

    def validate_username(self, value):
        if User.objects.filter(username__iexact=value).exists():
            raise serializers.ValidationError('Username already exists.')
        return value

    def validate_email(self, value):
        if value and User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('Email already exists.')
        return value or None

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, is_staff=True, **validated_data)


class AdminLoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)


class AdminProfileSerializer(PasswordChangeMixin, serializers.ModelSerializer):
    current_password = serializers.CharField(write_only=True, required=False)
    new_password = serializers.CharField(write_only=True, required=False, min_length=6)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'full_name', 'current_password', 'new_password', 'date_joined', 'updated_at']
        read_only_fields = ['id', 'date_joined', 'updated_at']
        extra_kwargs = {'username': {'required': False}}

    def validate_username(self, value):
        if User.objects.filter(username__iexact=value).exclude(pk=self.instance.pk).exists():
            raise serializers.ValidationError('Username already exists.')
        return value

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('No changes were provided.')
        return self.validate_password_change(attrs, self.instance)

    def update(self, instance, validated_data):
        self.apply_password_change(instance, validated_data)
        for field, value in validated_data.items():
            setattr(instance, field, value)
        instance.save()
        return instance


# ================= Client =================
class ClientRegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    full_name = serializers.CharField(max_length=255)
    password = serializers.CharField(write_only=True, min_length=6)

    def validate_email(self, value):
        value = value.lower()
        if User.objects.filter(email__iexact=value).exists() or User.objects.filter(username__iexact=value).exists():
            raise serializers.ValidationError('Email already registered.')
        return value


class ClientLoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class LogoutSerializer(serializers.Serializer):
    refresh = serializers.CharField()
