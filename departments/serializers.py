from rest_framework import serializers

from .models import Department


class DepartmentSerializer(serializers.ModelSerializer):
    doctor_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Department
        fields = ['id', 'name', 'description', 'doctor_count', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']
