import logging

from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from campus.core.permissions import IsTrainingManager
from campus.core.utils import create_audit_log, get_request_organization, paginate_queryset, parse_date_param
from campus.notifications.utils import notify_users
from . import dashboard
from .models import Attendance, Course, SessionInstance, SessionParticipant, Student, TrainingSession
from .serializers import (
    AddParticipantsSerializer, AttendanceSerializer, CourseSerializer, RecordAttendanceSerializer,
    SessionInstanceSerializer, SessionParticipantSerializer, StudentSerializer, TrainingSessionSerializer,
)

logger = logging.getLogger('campus.learning')

DETAILED_PERIODS = ('week', 'month', 'quarter', 'today', 'all')
DETAILED_TYPES = ('all', 'attendance', 'learning_time', 'activity', 'chart')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTrainingManager])
def course_list_create(request):
    organization = get_request_organization(request)

    if request.method == 'GET':
        queryset = Course.objects.filter(organization=organization)
        search = request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(title__icontains=search)
        return Response(paginate_queryset(request, queryset, CourseSerializer, default_page_size=15))

    serializer = CourseSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    course = serializer.save(organization=organization, created_by=request.user)
    create_audit_log(request=request, action='create', model_name='Course', object_id=course.id, object_name=course.title)
    return Response(CourseSerializer(course).data, status=status.HTTP_201_CREATED)


def student_queryset(organization):
    return Student.objects.filter(organization=organization).select_related('user')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTrainingManager])
def student_list_create(request):
    """List the organization's learners or create a learner with its user account"""
    organization = get_request_organization(request)

    if request.method == 'GET':
        queryset = student_queryset(organization)
        search = request.query_params.get('search', None)
        student_status = request.query_params.get('status', None)
        course_id = request.query_params.get('course_id', None)
        date_from = parse_date_param(request.query_params.get('date_from'), 'date_from')
        date_to = parse_date_param(request.query_params.get('date_to'), 'date_to')

        if search:
            queryset = queryset.filter(
                Q(first_name__icontains=search) |
                Q(last_name__icontains=search) |
                Q(user__email__icontains=search) |
                Q(phone__icontains=search)
            )
        if student_status:
            queryset = queryset.filter(status=student_status)
        if course_id:
            queryset = queryset.filter(user__enrollments__course_id=course_id).distinct()
        if date_from:
            queryset = queryset.filter(created_at__date__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__date__lte=date_to)

        queryset = queryset.order_by('-created_at')
        return Response(paginate_queryset(request, queryset, StudentSerializer, default_page_size=15))

    serializer = StudentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    student = serializer.save(organization=organization)
    logger.info(f"Learner account {student.user.email} created by {request.user.username}")
    create_audit_log(
        request=request,
        action='create',
        model_name='Student',
        object_id=student.id,
        object_name=student.full_name,
        changes={'email': student.user.email},
    )
    return Response(StudentSerializer(student).data, status=status.HTTP_201_CREATED)


def _has_learning_history(user):
    return (
        user.quiz_attempts.exists()
        or user.assignment_submissions.exists()
        or user.attendances.exists()
    )


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTrainingManager])
def student_detail(request, pk):
    """
    Retrieve, update or delete a learner.

    A learner with quiz attempts, submissions or attendance records is
    deactivated instead of deleted.
    """
    organization = get_request_organization(request)
    student = get_object_or_404(student_queryset(organization), pk=pk)

    if request.method == 'GET':
        return Response(StudentSerializer(student).data)

    if request.method in ('PUT', 'PATCH'):
        serializer = StudentSerializer(student, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
        student = serializer.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='Student',
            object_id=student.id,
            object_name=student.full_name,
            changes=dict(request.data.items()) if hasattr(request.data, 'items') else {},
        )
        return Response(StudentSerializer(student).data)

    user = student.user
    name = student.full_name
    if _has_learning_history(user):
        with transaction.atomic():
            student.status = 'inactive'
            student.save(update_fields=['status', 'updated_at'])
            user.is_active = False
            user.save(update_fields=['is_active'])
        create_audit_log(request=request, action='status_change', model_name='Student', object_id=pk,
                         object_name=name, changes={'status': 'inactive'})
        return Response({'message': 'Learner has activity history and was deactivated', 'deactivated': True})

    with transaction.atomic():
        student.delete()
        user.delete()
    create_audit_log(request=request, action='delete', model_name='Student', object_id=pk, object_name=name)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTrainingManager])
def session_list_create(request):
    organization = get_request_organization(request)
    context = {'request': request, 'organization': organization}

    if request.method == 'GET':
        queryset = TrainingSession.objects.filter(organization=organization).select_related('course', 'trainer')
        course_id = request.query_params.get('course_id', None)
        trainer_id = request.query_params.get('trainer_id', None)
        search = request.query_params.get('search', None)
        if course_id:
            queryset = queryset.filter(course_id=course_id)
        if trainer_id:
            queryset = queryset.filter(trainer_id=trainer_id)
        if search:
            queryset = queryset.filter(title__icontains=search)
        return Response(paginate_queryset(request, queryset, TrainingSessionSerializer, context=context))

    serializer = TrainingSessionSerializer(data=request.data, context=context)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    session = serializer.save(organization=organization)
    create_audit_log(request=request, action='create', model_name='TrainingSession',
                     object_id=session.id, object_name=session.title)
    return Response(TrainingSessionSerializer(session, context=context).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTrainingManager])
def session_instance_list_create(request, pk):
    """Dated occurrences of a training session"""
    organization = get_request_organization(request)
    session = get_object_or_404(TrainingSession, pk=pk, organization=organization)

    if request.method == 'GET':
        queryset = session.instances.all()
        instance_status = request.query_params.get('status', None)
        if instance_status:
            queryset = queryset.filter(status=instance_status)
        return Response(SessionInstanceSerializer(queryset, many=True).data)

    serializer = SessionInstanceSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    instance = serializer.save(session=session)

    participants = [
        participant.user for participant in
        session.participants.filter(status__in=SessionParticipant.ONGOING_STATUSES).select_related('user')
    ]
    notify_users(
        participants,
        f"Nouvelle séance planifiée: {instance.title or session.title} le {dashboard.french_datetime(instance.start_date)}",
        sender=request.user,
        organization=organization,
    )
    return Response(SessionInstanceSerializer(instance).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTrainingManager])
def session_participants(request, pk):
    """List a session's participants or add organization users to it"""
    organization = get_request_organization(request)
    session = get_object_or_404(TrainingSession, pk=pk, organization=organization)

    if request.method == 'GET':
        participants = session.participants.select_related('user').order_by('user__last_name', 'user__first_name')
        return Response(SessionParticipantSerializer(participants, many=True).data)

    serializer = AddParticipantsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    user_ids = set(serializer.validated_data['user_ids'])
    users = list(organization.users.filter(pk__in=user_ids))
    if len(users) != len(user_ids):
        return Response(
            {'user_ids': ['Every participant must belong to the organization.']},
            status=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    added = []
    with transaction.atomic():
        for user in users:
            participant, created = SessionParticipant.objects.get_or_create(
                session=session,
                user=user,
                defaults={'status': serializer.validated_data['status']},
            )
            if created:
                added.append(participant)

    notify_users(
        [participant.user for participant in added],
        f"Vous avez été inscrit à la session {session.title}",
        sender=request.user,
        organization=organization,
    )
    return Response(
        {
            'added': SessionParticipantSerializer(added, many=True).data,
            'participants_count': session.participants.count(),
        },
        status=status.HTTP_201_CREATED if added else status.HTTP_200_OK,
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTrainingManager])
def instance_attendance(request, pk):
    """Read or record presence for one session instance"""
    organization = get_request_organization(request)
    instance = get_object_or_404(SessionInstance, pk=pk, session__organization=organization)

    if request.method == 'POST':
        serializer = RecordAttendanceSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

        entries = serializer.validated_data['attendances']
        participant_ids = set(instance.session.participants.values_list('user_id', flat=True))
        unknown = sorted({entry['user_id'] for entry in entries} - participant_ids)
        if unknown:
            return Response(
                {'attendances': [f'Users {unknown} are not participants of this session.']},
                status=status.HTTP_422_UNPROCESSABLE_ENTITY,
            )
        with transaction.atomic():
            for entry in entries:
                Attendance.objects.update_or_create(
                    instance=instance,
                    user_id=entry['user_id'],
                    defaults={'present': entry['present']},
                )

    attendances = instance.attendances.select_related('user').order_by('user__last_name')
    return Response(AttendanceSerializer(attendances, many=True).data)


def get_student(request):
    student = Student.objects.filter(user=request.user).first()
    if student is None:
        raise NotFound('Profil apprenant non trouvé')
    return student


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def learner_dashboard_stats(request):
    student = get_student(request)
    return Response(dashboard.dashboard_stats(student.user))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def learner_dashboard_detailed_stats(request):
    """
    One slice of the dashboard. ``period`` narrows the activity chart,
    ``type`` picks the block (attendance, learning_time, activity, chart).
    """
    student = get_student(request)
    period = request.query_params.get('period', 'all')
    stats_type = request.query_params.get('type', 'all')
    if period not in DETAILED_PERIODS:
        return Response({'period': [f'Must be one of {", ".join(DETAILED_PERIODS)}.']},
                        status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    if stats_type not in DETAILED_TYPES:
        return Response({'type': [f'Must be one of {", ".join(DETAILED_TYPES)}.']},
                        status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    user = student.user
    data = {'period': period, 'type': stats_type}
    if stats_type in ('all', 'attendance'):
        data['attendance_rate'] = dashboard.attendance_rate(user)
    if stats_type in ('all', 'learning_time'):
        data['learning_time'] = dashboard.learning_time_stats(user)
    if stats_type in ('all', 'activity'):
        data['activity'] = dashboard.activity_stats(user)
    if stats_type in ('all', 'chart'):
        data['activity_chart'] = dashboard.activity_chart(user, period)
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def learner_recent_activities(request):
    student = get_student(request)
    try:
        limit = max(1, min(int(request.query_params.get('limit', 3)), 20))
    except (TypeError, ValueError):
        return Response({'limit': ['Must be an integer.']}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)
    return Response({'activities': dashboard.recent_activities(student.user, limit)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def learner_upcoming_deadlines(request):
    student = get_student(request)
    return Response({'deadlines': dashboard.upcoming_deadlines(student.user, 5)})
