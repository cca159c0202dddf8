from rest_framework import serializers

from users.models import User
from users.serializers import PasswordChangeMixin

from .models import ClientProfile
from .services import create_client, send_generated_password


class ClientProfileSerializer(serializers.ModelSerializer):
    """Client record as managed from the back-office."""

    user_id = serializers.IntegerField(source='user.id', read_only=True)
    email = serializers.EmailField(source='user.email', required=False, allow_null=True)
    full_name = serializers.CharField(source='user.full_name', required=False, allow_blank=True, max_length=255)
    phone = serializers.CharField(source='user.phone_number', required=False, allow_blank=True, max_length=20)
    age = serializers.SerializerMethodField()

    class Meta:
        model = ClientProfile
        fields = [
            'id',
            'user_id',
            'email',
            'full_name',
            'phone',
            'google_id',
            'avatar_url',
            'gender',
            'birth_date',
            'age',
            'status',
            'receive_email_notifications',
            'receive_push_notifications',
            'receive_sms_notifications',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_age(self, obj):
        return obj.age()

    def validate_email(self, value):
        if not value:
            return None
        value = value.lower()
        users = User.objects.filter(email__iexact=value)
        if self.instance is not None:
            users = users.exclude(pk=self.instance.user_id)
        if users.exists():
            raise serializers.ValidationError('Email already exists.')
        return value

    def validate_google_id(self, value):
        if not value:
            return None
        profiles = ClientProfile.objects.filter(google_id=value)
        if self.instance is not None:
            profiles = profiles.exclude(pk=self.instance.pk)
        if profiles.exists():
            raise serializers.ValidationError('Google ID already exists.')
        return value

    def validate(self, attrs):
        if self.instance is None:
            email = attrs.get('user', {}).get('email')
            if not email and not attrs.get('google_id'):
                raise serializers.ValidationError('Either email or google_id is required.')
        return attrs

    def create(self, validated_data):
        user_data = validated_data.pop('user', {})
        profile, password = create_client(
            email=user_data.get('email'),
            full_name=user_data.get('full_name', ''),
            phone_number=user_data.get('phone_number', ''),
            **validated_data,
        )
        if profile.user.email:
            send_generated_password(profile.user, password)
        return profile

    def update(self, instance, validated_data):
        user_data = validated_data.pop('user', {})
        user = instance.user
        for field, value in user_data.items():
            setattr(user, field, value)
        if user_data:
            user.save()
        for field, value in validated_data.items():
            setattr(instance, field, value)
        instance.save()
        return instance


class ClientSelfProfileSerializer(PasswordChangeMixin, ClientProfileSerializer):
    """Profile as seen and edited by the client themselves."""

    email = serializers.EmailField(source='user.email', read_only=True)
    current_password = serializers.CharField(write_only=True, required=False)
    new_password = serializers.CharField(write_only=True, required=False, min_length=6)

    class Meta(ClientProfileSerializer.Meta):
        fields = ClientProfileSerializer.Meta.fields + ['current_password', 'new_password']
        read_only_fields = ['id', 'google_id', 'status', 'created_at', 'updated_at']

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('No changes were provided.')
        return self.validate_password_change(attrs, self.instance.user)

    def update(self, instance, validated_data):
        if self.apply_password_change(instance.user, validated_data):
            instance.user.save(update_fields=['password'])
        return super().update(instance, validated_data)
