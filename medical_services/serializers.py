from rest_framework import serializers

from doctors.models import Doctor

from .models import Service


class ServiceDoctorSerializer(serializers.ModelSerializer):
    class Meta:
        model = Doctor
        fields = ['id', 'full_name', 'specialty', 'profile_picture', 'status']


class ServiceSerializer(serializers.ModelSerializer):
    doctors = ServiceDoctorSerializer(many=True, read_only=True)
    doctor_ids = serializers.PrimaryKeyRelatedField(
        source='doctors',
        queryset=Doctor.objects.all(),
        many=True,
        write_only=True,
        required=False,
    )
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    number_of_sessions = serializers.IntegerField(min_value=1)

    class Meta:
        model = Service
        fields = [
            'id',
            'name',
            'description',
            'price',
            'number_of_sessions',
            'article_content',
            'image',
            'doctors',
            'doctor_ids',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class AssignDoctorSerializer(serializers.Serializer):
    doctor_id = serializers.IntegerField()
