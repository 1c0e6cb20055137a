from rest_framework import serializers

from .models import Enrollment


class EnrollmentCourseSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    title = serializers.CharField()
    slug = serializers.CharField()
    thumbnail_url = serializers.CharField()
    level = serializers.CharField()


class EnrollmentSerializer(serializers.ModelSerializer):
    course = EnrollmentCourseSerializer(read_only=True)
    user_id = serializers.IntegerField(read_only=True)
    days_remaining = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Enrollment
        fields = [
            'id', 'user_id', 'course', 'status',
            'progress_percentage', 'completed_chapters', 'total_chapters', 'time_spent_minutes',
            'final_grade', 'certificate_issued', 'certificate_id', 'certificate_issued_at',
            'enrolled_at', 'started_at', 'last_accessed_at', 'completed_at',
            'expires_at', 'expired_at', 'cancelled_at', 'suspended_at', 'days_remaining',
        ]
        read_only_fields = fields


class ProgressSerializer(serializers.Serializer):
    percentage = serializers.DecimalField(max_digits=7, decimal_places=2, required=False, allow_null=True)
    chapter_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)

    def validate(self, attrs):
        if attrs.get('percentage') is None and attrs.get('chapter_id') is None:
            raise serializers.ValidationError({'percentage': ['Give a percentage or a chapter_id.']})
        return attrs
