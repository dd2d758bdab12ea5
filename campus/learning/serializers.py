from django.db import transaction
from django.utils.crypto import get_random_string
from rest_framework import serializers

from campus.core.models import User
from .models import Attendance, Course, SessionInstance, SessionParticipant, Student, TrainingSession

TEMPORARY_PASSWORD_LENGTH = 12


class CourseSerializer(serializers.ModelSerializer):
    lectures_count = serializers.SerializerMethodField()

    class Meta:
        model = Course
        fields = ['id', 'uuid', 'title', 'description', 'image', 'is_published', 'lectures_count', 'created_at', 'updated_at']
        read_only_fields = ['uuid', 'created_at', 'updated_at']

    def get_lectures_count(self, obj):
        return obj.lectures.count()


class StudentSerializer(serializers.ModelSerializer):
    """
    Learner profile. ``email`` lives on the linked user account, which is
    created with the learner role and a random temporary password.
    """
    email = serializers.EmailField(source='user.email')
    user_id = serializers.IntegerField(read_only=True)
    full_name = serializers.CharField(read_only=True)
    courses = serializers.SerializerMethodField()

    class Meta:
        model = Student
        fields = [
            'id', 'uuid', 'user_id', 'email', 'first_name', 'last_name', 'full_name', 'phone',
            'address', 'postal_code', 'city', 'notes', 'status', 'courses', 'created_at', 'updated_at'
        ]
        read_only_fields = ['uuid', 'created_at', 'updated_at']

    def get_courses(self, obj):
        return [
            {'id': enrollment.course_id, 'title': enrollment.course.title, 'status': enrollment.status}
            for enrollment in obj.user.enrollments.select_related('course')
        ]

    def validate_email(self, value):
        users = User.objects.filter(email__iexact=value)
        if self.instance is not None:
            users = users.exclude(pk=self.instance.user_id)
        if users.exists():
            raise serializers.ValidationError('A user with this email already exists.')
        return value.lower()

    def create(self, validated_data):
        email = validated_data.pop('user')['email']
        organization = validated_data['organization']
        with transaction.atomic():
            user = User(
                username=email,
                email=email,
                first_name=validated_data.get('first_name', ''),
                last_name=validated_data.get('last_name', ''),
                phone=validated_data.get('phone') or None,
                role='learner',
                organization=organization,
            )
            user.set_password(get_random_string(TEMPORARY_PASSWORD_LENGTH))
            user.save()
            return Student.objects.create(user=user, **validated_data)

    def update(self, instance, validated_data):
        user_data = validated_data.pop('user', None)
        with transaction.atomic():
            student = super().update(instance, validated_data)
            user = student.user
            if user_data and 'email' in user_data:
                user.email = user_data['email']
                user.username = user_data['email']
            user.first_name = student.first_name
            user.last_name = student.last_name
            user.is_active = student.status == 'active'
            user.save()
        return student


class TrainingSessionSerializer(serializers.ModelSerializer):
    course = serializers.PrimaryKeyRelatedField(queryset=Course.objects.all(), required=False, allow_null=True)
    trainer = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), required=False, allow_null=True)
    course_title = serializers.CharField(source='course.title', read_only=True, default=None)
    trainer_name = serializers.CharField(source='trainer.display_name', read_only=True, default=None)
    participants_count = serializers.SerializerMethodField()
    instances_count = serializers.SerializerMethodField()

    class Meta:
        model = TrainingSession
        fields = [
            'id', 'title', 'course', 'course_title', 'trainer', 'trainer_name', 'start_date', 'end_date',
            'participants_count', 'instances_count', 'created_at'
        ]
        read_only_fields = ['created_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        organization = self.context.get('organization')
        if organization is not None:
            self.fields['course'].queryset = Course.objects.filter(organization=organization)
            self.fields['trainer'].queryset = User.objects.filter(organization=organization)

    def get_participants_count(self, obj):
        return obj.participants.count()

    def get_instances_count(self, obj):
        return obj.instances.count()

    def validate(self, attrs):
        start_date = attrs.get('start_date')
        end_date = attrs.get('end_date')
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({'end_date': 'End date must be on or after the start date.'})
        return attrs


class SessionInstanceSerializer(serializers.ModelSerializer):
    class Meta:
        model = SessionInstance
        fields = ['id', 'session', 'title', 'start_date', 'end_date', 'location', 'status']
        read_only_fields = ['session']

    def validate(self, attrs):
        if attrs['end_date'] <= attrs['start_date']:
            raise serializers.ValidationError({'end_date': 'End must be after the start.'})
        return attrs


class SessionParticipantSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)
    name = serializers.CharField(source='user.display_name', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = SessionParticipant
        fields = ['id', 'user_id', 'name', 'email', 'status', 'enrolled_at']
        read_only_fields = fields


class AddParticipantsSerializer(serializers.Serializer):
    user_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    status = serializers.ChoiceField(choices=SessionParticipant.STATUS_CHOICES, default='enrolled')


class AttendanceEntrySerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    present = serializers.BooleanField()


class RecordAttendanceSerializer(serializers.Serializer):
    attendances = AttendanceEntrySerializer(many=True, allow_empty=False)


class AttendanceSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)
    name = serializers.CharField(source='user.display_name', read_only=True)

    class Meta:
        model = Attendance
        fields = ['id', 'user_id', 'name', 'present', 'recorded_at']
        read_only_fields = fields
