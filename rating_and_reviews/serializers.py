from rest_framework import serializers

from .models import Review


class ReviewSerializer(serializers.ModelSerializer):
    appointment_id = serializers.ReadOnlyField(source='appointment.id')
    client_id = serializers.ReadOnlyField(source='client.id')
    customer_name = serializers.ReadOnlyField(source='client.full_name')
    appointment_time = serializers.ReadOnlyField(source='appointment.scheduled_at')
    session_number = serializers.ReadOnlyField(source='appointment.session_number')
    service_id = serializers.ReadOnlyField(source='appointment.order.service.id')
    service_name = serializers.ReadOnlyField(source='appointment.order.service.name')
    expert_id = serializers.ReadOnlyField(source='appointment.order.doctor.id')
    expert_name = serializers.ReadOnlyField(source='appointment.order.doctor.full_name')
    short_comment = serializers.SerializerMethodField()

    class Meta:
        model = Review
        fields = [
            'id',
            'appointment_id',
            'client_id',
            'customer_name',
            'appointment_time',
            'session_number',
            'service_id',
            'service_name',
            'expert_id',
            'expert_name',
            'rating',
            'comment',
            'short_comment',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_short_comment(self, obj):
        if obj.comment:
            return obj.comment[:50] + "..." if len(obj.comment) > 50 else obj.comment
        return ""


class ReviewCreateSerializer(serializers.Serializer):
    appointment_id = serializers.IntegerField(min_value=1)
    client_id = serializers.IntegerField(min_value=1, required=False)
    rating = serializers.IntegerField()
    comment = serializers.CharField(required=False, allow_blank=True)

    def validate_rating(self, value):
        if not 1 <= value <= 5:
            raise serializers.ValidationError("Rating must be between 1 and 5.")
        return value


class ReviewUpdateSerializer(serializers.ModelSerializer):
    rating = serializers.IntegerField(required=False)

    class Meta:
        model = Review
        fields = ['rating', 'comment']

    def validate_rating(self, value):
        if not 1 <= value <= 5:
            raise serializers.ValidationError("Rating must be between 1 and 5.")
        return value

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError({'detail': 'No fields to update.'})
        return attrs


class ReviewFilterSerializer(serializers.Serializer):
    search = serializers.CharField(required=False, allow_blank=True)
    expert = serializers.IntegerField(required=False, min_value=1)
    service = serializers.IntegerField(required=False, min_value=1)
