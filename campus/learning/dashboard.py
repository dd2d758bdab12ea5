"""
Learner dashboard aggregates: attendance, learning time, activity counters
and charts, last activity and upcoming deadlines.
"""
from datetime import timedelta

from django.db.models import Sum
from django.utils import timezone

from .models import (
    Assignment, AssignmentSubmission, Attendance, ConnectionLog, LectureView, QuizAttempt,
    SessionInstance, SessionParticipant,
)

WEEK_DAYS = ['Lun', 'Mar', 'Mer', 'Jeu', 'Ven', 'Sam', 'Dim']
FRENCH_MONTHS = [
    'janvier', 'février', 'mars', 'avril', 'mai', 'juin',
    'juillet', 'août', 'septembre', 'octobre', 'novembre', 'décembre',
]
CHART_PERIODS = ('week', 'month', 'quarter', 'today')


def french_datetime(value):
    """'5 mars 2026 à 14:30'"""
    value = timezone.localtime(value)
    return f"{value.day} {FRENCH_MONTHS[value.month - 1]} {value.year} à {value:%H:%M}"


def attendance_rate(user):
    """Share of recorded attendances marked present, in percent"""
    records = Attendance.objects.filter(user=user)
    recorded = records.count()
    if not recorded:
        return 0.0
    return round(records.filter(present=True).count() / recorded * 100, 1)


def activity_stats(user):
    content_readings = LectureView.objects.filter(user=user).count()
    videos_watched = LectureView.objects.filter(user=user, lecture__type='video').count()
    assignments_completed = AssignmentSubmission.objects.filter(user=user).count()
    quizzes_completed = QuizAttempt.objects.filter(user=user).count()
    return {
        'total_activities': content_readings + videos_watched + assignments_completed + quizzes_completed,
        'content_readings': content_readings,
        'videos_watched': videos_watched,
        'assignments_completed': assignments_completed,
        'quizzes_completed': quizzes_completed,
    }


def learning_time_stats(user):
    """
    Hours spent learning: connection logs when there are any, otherwise the
    duration of the videos the user opened.
    """
    minutes = ConnectionLog.objects.filter(
        user=user, session_duration__isnull=False
    ).aggregate(total=Sum('session_duration'))['total'] or 0
    total_hours = round(minutes / 60, 1)

    if total_hours == 0:
        seconds = LectureView.objects.filter(
            user=user, lecture__type='video', lecture__duration_seconds__isnull=False
        ).aggregate(total=Sum('lecture__duration_seconds'))['total'] or 0
        total_hours = round(seconds / 3600, 1)

    stats = activity_stats(user)
    stats.pop('total_activities')
    return {'total_hours': total_hours, **stats}


def _activity_timestamps(user, since):
    """Local datetimes of every learning action since ``since``"""
    stamps = list(LectureView.objects.filter(user=user, created_at__gte=since).values_list('created_at', flat=True))
    stamps += AssignmentSubmission.objects.filter(user=user, updated_at__gte=since).values_list('updated_at', flat=True)
    stamps += QuizAttempt.objects.filter(user=user, updated_at__gte=since).values_list('updated_at', flat=True)
    return [timezone.localtime(stamp) for stamp in stamps]


def _count_between(stamps, start, end):
    return sum(1 for stamp in stamps if start <= stamp < end)


def _start_of_day(value):
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def activity_chart(user, period='all'):
    """
    Activity counts bucketed for charts.

    week: last 7 days labelled Lun..Dim, month: last 30 days labelled 1..30,
    quarter: last 12 weeks (Monday based) labelled 'Sem n', today: last 24
    hours labelled 'HHh'. ``all`` returns every series.
    """
    periods = CHART_PERIODS if period not in CHART_PERIODS else (period,)
    now = timezone.localtime()
    today = _start_of_day(now)
    current_week = today - timedelta(days=today.weekday())
    stamps = _activity_timestamps(user, current_week - timedelta(weeks=11))
    data = {}

    if 'week' in periods:
        data['week_data'] = []
        for offset in range(6, -1, -1):
            day = today - timedelta(days=offset)
            data['week_data'].append({
                'day': WEEK_DAYS[day.weekday()],
                'value': _count_between(stamps, day, day + timedelta(days=1)),
            })

    if 'month' in periods:
        data['month_data'] = []
        for index in range(30):
            day = today - timedelta(days=29 - index)
            data['month_data'].append({
                'day': str(index + 1),
                'value': _count_between(stamps, day, day + timedelta(days=1)),
            })

    if 'quarter' in periods:
        data['quarter_data'] = []
        for index in range(12):
            week_start = current_week - timedelta(weeks=11 - index)
            data['quarter_data'].append({
                'day': f'Sem {index + 1}',
                'value': _count_between(stamps, week_start, week_start + timedelta(weeks=1)),
            })

    if 'today' in periods:
        data['today_data'] = []
        current_hour = now.replace(minute=0, second=0, microsecond=0)
        for index in range(24):
            hour_start = current_hour - timedelta(hours=23 - index)
            data['today_data'].append({
                'hour': f'{hour_start:%H}h',
                'value': _count_between(stamps, hour_start, hour_start + timedelta(hours=1)),
            })

    return data


def _quiz_activity(attempt):
    course = attempt.quiz.course
    return {
        'id': attempt.id,
        'type': 'quiz',
        'title': attempt.quiz.title or 'Quiz',
        'course_name': course.title,
        'completed_at': attempt.updated_at,
        'image_url': course.image_url,
    }


def _assignment_activity(submission):
    course = submission.assignment.course
    return {
        'id': submission.id,
        'type': 'assignment',
        'title': submission.assignment.title or 'Devoir',
        'course_name': course.title,
        'completed_at': submission.updated_at,
        'image_url': course.image_url,
    }


def _lecture_activity(view):
    course = view.lecture.course
    return {
        'id': view.id,
        'type': 'content',
        'title': view.lecture.title or 'Contenu',
        'course_name': course.title,
        'completed_at': view.created_at,
        'image_url': course.image_url,
    }


def last_activity(user):
    """Latest quiz, else latest assignment, else latest lecture viewed"""
    attempt = QuizAttempt.objects.filter(user=user).select_related('quiz__course').order_by('-updated_at').first()
    if attempt is not None:
        return _quiz_activity(attempt)
    submission = (
        AssignmentSubmission.objects.filter(user=user)
        .select_related('assignment__course').order_by('-updated_at').first()
    )
    if submission is not None:
        return _assignment_activity(submission)
    view = LectureView.objects.filter(user=user).select_related('lecture__course').order_by('-created_at').first()
    if view is not None:
        return _lecture_activity(view)
    return None


def recent_activities(user, limit=3):
    """Latest quizzes and assignments, newest first"""
    attempts = QuizAttempt.objects.filter(user=user).select_related('quiz__course').order_by('-updated_at')[:limit]
    submissions = (
        AssignmentSubmission.objects.filter(user=user)
        .select_related('assignment__course').order_by('-updated_at')[:limit]
    )
    activities = [_quiz_activity(attempt) for attempt in attempts]
    activities += [_assignment_activity(submission) for submission in submissions]
    activities.sort(key=lambda activity: activity['completed_at'], reverse=True)
    return activities[:limit]


def _days_remaining(now, date):
    return max(0, (date - now).days)


def upcoming_deadlines(user, limit=5):
    """
    Next scheduled session instances of the user's ongoing sessions and due
    dates of published assignments in actively enrolled courses, soonest first.
    """
    now = timezone.now()
    deadlines = []

    instances = (
        SessionInstance.objects.filter(
            session__participants__user=user,
            session__participants__status__in=SessionParticipant.ONGOING_STATUSES,
            status='scheduled',
            start_date__gte=now,
        )
        .select_related('session__course', 'session__trainer')
        .order_by('start_date')[:limit * 2]
    )
    for instance in instances:
        session = instance.session
        course = session.course
        trainer = session.trainer
        deadlines.append({
            'id': instance.id,
            'type': 'session',
            'title': instance.title or session.title or 'Cours',
            'date': instance.start_date,
            'formatted_date': french_datetime(instance.start_date),
            'instructor': trainer.display_name if trainer else None,
            'days_remaining': _days_remaining(now, instance.start_date),
            'course_name': course.title if course else '',
            'image_url': course.image_url if course else None,
        })

    assignments = (
        Assignment.objects.filter(
            course__enrollments__user=user,
            course__enrollments__status='active',
            is_published=True,
            due_date__gte=now,
        )
        .select_related('course')
        .order_by('due_date')[:limit * 2]
    )
    for assignment in assignments:
        deadlines.append({
            'id': assignment.id,
            'type': 'assignment',
            'title': assignment.title or 'Devoir',
            'date': assignment.due_date,
            'formatted_date': french_datetime(assignment.due_date),
            'days_remaining': _days_remaining(now, assignment.due_date),
            'course_name': assignment.course.title,
            'image_url': assignment.course.image_url,
        })

    deadlines.sort(key=lambda deadline: deadline['date'])
    return deadlines[:limit]


def dashboard_stats(user):
    return {
        'attendance_rate': attendance_rate(user),
        'learning_time': learning_time_stats(user),
        'activity': activity_stats(user),
        'activity_chart': activity_chart(user),
        'last_activity': last_activity(user),
        'upcoming_deadlines': upcoming_deadlines(user, 5),
    }
