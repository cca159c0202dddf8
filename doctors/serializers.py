from rest_framework import serializers

from .models import Doctor, Experience, Qualification


class QualificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Qualification
        fields = ['id', 'doctor', 'degree', 'major', 'completion_year', 'institution', 'created_at']
        read_only_fields = ['id', 'doctor', 'created_at']


class ExperienceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Experience
        fields = ['id', 'doctor', 'position', 'start_date', 'end_date', 'workplace', 'description', 'created_at']
        read_only_fields = ['id', 'doctor', 'created_at']

    def validate(self, attrs):
        start_date = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': 'end_date cannot be before start_date.'})
        return attrs


class DoctorSerializer(serializers.ModelSerializer):
    department_name = serializers.ReadOnlyField(source='department.name')
    average_rating = serializers.SerializerMethodField()
    review_count = serializers.SerializerMethodField()

    class Meta:
        model = Doctor
        fields = [
            'id',
            'full_name',
            'email',
            'phone',
            'specialty',
            'bio',
            'profile_picture',
            'status',
            'department',
            'department_name',
            'address',
            'average_rating',
            'review_count',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_average_rating(self, obj):
        value = getattr(obj, 'average_rating', None)
        return round(float(value), 1) if value is not None else 0

    def get_review_count(self, obj):
        return getattr(obj, 'review_count', 0) or 0


class DoctorDetailSerializer(DoctorSerializer):
    qualifications = QualificationSerializer(many=True, read_only=True)
    experiences = ExperienceSerializer(many=True, read_only=True)
    services = serializers.SerializerMethodField()

    class Meta(DoctorSerializer.Meta):
        fields = DoctorSerializer.Meta.fields + ['services', 'qualifications', 'experiences']

    def get_services(self, obj):
        return list(obj.services.order_by('name').values('id', 'name', 'price', 'number_of_sessions'))
