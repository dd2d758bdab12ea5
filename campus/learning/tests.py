"""
Tests for learners, training sessions, attendance and the learner dashboard
"""
from datetime import datetime, timedelta, timezone as dt_timezone

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from campus.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from campus.learning import dashboard
from campus.learning.models import (
    Assignment, AssignmentSubmission, Attendance, ConnectionLog, Enrollment, Lecture, LectureView, Quiz,
    QuizAttempt, SessionInstance, SessionParticipant, Student,
)
from campus.notifications.models import Notification

User = get_user_model()


class StudentAPITests(TestCase):
    """Test learner management"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.manager = TestDataFactory.create_user(organization=self.organization)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_create_student_creates_learner_account(self):
        data = {'email': 'Jeanne.Martin@Example.com', 'first_name': 'Jeanne', 'last_name': 'Martin'}
        response = self.client.post('/api/v1/students/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['email'], 'jeanne.martin@example.com')
        self.assertEqual(response.data['full_name'], 'Jeanne Martin')
        user = User.objects.get(email='jeanne.martin@example.com')
        self.assertEqual(user.role, 'learner')
        self.assertEqual(user.organization, self.organization)
        self.assertTrue(user.has_usable_password())

    def test_duplicate_email_is_422(self):
        TestDataFactory.create_student(self.organization, email='deja@example.com')
        data = {'email': 'DEJA@example.com', 'first_name': 'A', 'last_name': 'B'}
        response = self.client.post('/api/v1/students/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('email', response.data)

    def test_list_filters(self):
        TestDataFactory.create_student(self.organization, first_name='Jeanne')
        inactive = TestDataFactory.create_student(self.organization, first_name='Paul', status='inactive')
        TestDataFactory.create_student(TestDataFactory.create_organization(), first_name='Jeanne')

        response = self.client.get('/api/v1/students/')
        self.assertEqual(response.data['count'], 2)
        response = self.client.get('/api/v1/students/', {'search': 'jeanne'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/students/', {'status': 'inactive'})
        self.assertEqual(response.data['results'][0]['id'], inactive.id)

    def test_filter_by_course(self):
        course = TestDataFactory.create_course(self.organization)
        enrolled = TestDataFactory.create_student(self.organization)
        TestDataFactory.create_student(self.organization)
        Enrollment.objects.create(user=enrolled.user, course=course)
        response = self.client.get('/api/v1/students/', {'course_id': course.id})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['courses'][0]['title'], course.title)

    def test_update_syncs_user_account(self):
        student = TestDataFactory.create_student(self.organization)
        response = self.client.patch(f'/api/v1/students/{student.id}/',
                                     {'last_name': 'Durand', 'status': 'inactive'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        student.user.refresh_from_db()
        self.assertEqual(student.user.last_name, 'Durand')
        self.assertFalse(student.user.is_active)

    def test_delete_without_history_removes_account(self):
        student = TestDataFactory.create_student(self.organization)
        response = self.client.delete(f'/api/v1/students/{student.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=student.user_id).exists())

    def test_delete_with_history_deactivates(self):
        student = TestDataFactory.create_student(self.organization)
        session = TestDataFactory.create_training_session(self.organization)
        instance = SessionInstance.objects.create(session=session, start_date=timezone.now(),
                                                  end_date=timezone.now() + timedelta(hours=3))
        Attendance.objects.create(instance=instance, user=student.user, present=True)

        response = self.client.delete(f'/api/v1/students/{student.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['deactivated'])
        student.refresh_from_db()
        self.assertEqual(student.status, 'inactive')
        self.assertFalse(User.objects.get(pk=student.user_id).is_active)

    def test_learner_cannot_manage_students(self):
        learner = TestDataFactory.create_student(self.organization).user
        self.client.authenticate_user(learner)
        response = self.client.get('/api/v1/students/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_course(self):
        response = self.client.post('/api/v1/courses/', {'title': 'Excel avancé'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['lectures_count'], 0)


class TrainingSessionAPITests(TestCase):
    """Test sessions, their instances, participants and attendance"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.manager = TestDataFactory.create_user(organization=self.organization, first_name='Marc', last_name='Leroy')
        self.course = TestDataFactory.create_course(self.organization, title='Excel')
        self.session = TestDataFactory.create_training_session(self.organization, course=self.course,
                                                               trainer=self.manager, title='Excel Mars')
        self.student = TestDataFactory.create_student(self.organization)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_create_session(self):
        data = {'title': 'Excel Avril', 'course': self.course.id, 'trainer': self.manager.id,
                'start_date': '2026-04-01', 'end_date': '2026-04-30'}
        response = self.client.post('/api/v1/training-sessions/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['course_title'], 'Excel')
        self.assertEqual(response.data['trainer_name'], 'Marc Leroy')

    def test_session_dates_must_be_ordered(self):
        data = {'title': 'Excel Avril', 'start_date': '2026-04-30', 'end_date': '2026-04-01'}
        response = self.client.post('/api/v1/training-sessions/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('end_date', response.data)

    def test_course_of_other_organization_is_rejected(self):
        foreign = TestDataFactory.create_course(TestDataFactory.create_organization())
        response = self.client.post('/api/v1/training-sessions/', {'title': 'X', 'course': foreign.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('course', response.data)

    def test_add_participants(self):
        url = f'/api/v1/training-sessions/{self.session.id}/participants/'
        response = self.client.post(url, {'user_ids': [self.student.user_id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['participants_count'], 1)
        self.assertTrue(Notification.objects.filter(user=self.student.user, text__contains='Excel Mars').exists())

        response = self.client.post(url, {'user_ids': [self.student.user_id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['added'], [])

    def test_participants_must_belong_to_organization(self):
        outsider = TestDataFactory.create_user()
        response = self.client.post(f'/api/v1/training-sessions/{self.session.id}/participants/',
                                    {'user_ids': [outsider.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_new_instance_notifies_ongoing_participants(self):
        SessionParticipant.objects.create(session=self.session, user=self.student.user)
        cancelled = TestDataFactory.create_student(self.organization, first_name='Paul')
        SessionParticipant.objects.create(session=self.session, user=cancelled.user, status='cancelled')

        data = {'title': 'Séance 1', 'start_date': '2026-03-05T13:30:00Z', 'end_date': '2026-03-05T16:30:00Z'}
        response = self.client.post(f'/api/v1/training-sessions/{self.session.id}/instances/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        notification = Notification.objects.get(user=self.student.user)
        self.assertEqual(notification.text, 'Nouvelle séance planifiée: Séance 1 le 5 mars 2026 à 14:30')
        self.assertFalse(Notification.objects.filter(user=cancelled.user).exists())

    def test_instance_end_must_follow_start(self):
        data = {'start_date': '2026-03-05T16:30:00Z', 'end_date': '2026-03-05T13:30:00Z'}
        response = self.client.post(f'/api/v1/training-sessions/{self.session.id}/instances/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_record_attendance(self):
        SessionParticipant.objects.create(session=self.session, user=self.student.user)
        instance = SessionInstance.objects.create(session=self.session, start_date=timezone.now(),
                                                  end_date=timezone.now() + timedelta(hours=2))
        url = f'/api/v1/session-instances/{instance.id}/attendance/'

        response = self.client.post(url, {'attendances': [{'user_id': self.student.user_id, 'present': False}]},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post(url, {'attendances': [{'user_id': self.student.user_id, 'present': True}]},
                                    format='json')
        self.assertEqual(len(response.data), 1)
        self.assertTrue(response.data[0]['present'])
        self.assertEqual(Attendance.objects.count(), 1)

    def test_attendance_for_non_participant_is_422(self):
        instance = SessionInstance.objects.create(session=self.session, start_date=timezone.now(),
                                                  end_date=timezone.now() + timedelta(hours=2))
        response = self.client.post(f'/api/v1/session-instances/{instance.id}/attendance/',
                                    {'attendances': [{'user_id': self.student.user_id, 'present': True}]},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)


class LearnerDashboardTests(TestCase):
    """Test the learner dashboard aggregates and endpoints"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.trainer = TestDataFactory.create_user(organization=self.organization, first_name='Marc', last_name='Leroy')
        self.student = TestDataFactory.create_student(self.organization)
        self.user = self.student.user
        self.course = TestDataFactory.create_course(self.organization, title='Excel')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _instance(self, session, start):
        return SessionInstance.objects.create(session=session, start_date=start, end_date=start + timedelta(hours=2))

    def test_french_datetime(self):
        value = datetime(2026, 3, 5, 13, 30, tzinfo=dt_timezone.utc)
        self.assertEqual(dashboard.french_datetime(value), '5 mars 2026 à 14:30')

    def test_attendance_rate(self):
        self.assertEqual(dashboard.attendance_rate(self.user), 0.0)
        session = TestDataFactory.create_training_session(self.organization)
        for present in (True, True, False):
            instance = self._instance(session, timezone.now())
            Attendance.objects.create(instance=instance, user=self.user, present=present)
        self.assertEqual(dashboard.attendance_rate(self.user), 66.7)

    def test_learning_time_prefers_connection_logs(self):
        video = Lecture.objects.create(course=self.course, title='Intro', type='video', duration_seconds=5400)
        LectureView.objects.create(user=self.user, lecture=video)
        self.assertEqual(dashboard.learning_time_stats(self.user)['total_hours'], 1.5)

        ConnectionLog.objects.create(user=self.user, login_at=timezone.now(), session_duration=30)
        stats = dashboard.learning_time_stats(self.user)
        self.assertEqual(stats['total_hours'], 0.5)
        self.assertEqual(stats['videos_watched'], 1)
        self.assertNotIn('total_activities', stats)

    def test_activity_stats_and_chart(self):
        video = Lecture.objects.create(course=self.course, title='Intro', type='video')
        text = Lecture.objects.create(course=self.course, title='Lecture', type='text')
        LectureView.objects.create(user=self.user, lecture=video)
        LectureView.objects.create(user=self.user, lecture=text)
        quiz = Quiz.objects.create(course=self.course, title='Quiz 1')
        QuizAttempt.objects.create(quiz=quiz, user=self.user, score=15)

        stats = dashboard.activity_stats(self.user)
        self.assertEqual(stats['content_readings'], 2)
        self.assertEqual(stats['videos_watched'], 1)
        self.assertEqual(stats['quizzes_completed'], 1)
        self.assertEqual(stats['total_activities'], 4)

        chart = dashboard.activity_chart(self.user, 'week')
        self.assertEqual(list(chart), ['week_data'])
        self.assertEqual(len(chart['week_data']), 7)
        self.assertEqual(chart['week_data'][-1], {
            'day': dashboard.WEEK_DAYS[timezone.localdate().weekday()], 'value': 3,
        })

        chart = dashboard.activity_chart(self.user)
        self.assertEqual(len(chart['month_data']), 30)
        self.assertEqual(chart['quarter_data'][-1]['day'], 'Sem 12')
        self.assertEqual(chart['quarter_data'][-1]['value'], 3)
        self.assertEqual(len(chart['today_data']), 24)
        self.assertEqual(chart['today_data'][-1]['value'], 3)

    def test_last_activity_prefers_quizzes(self):
        self.assertIsNone(dashboard.last_activity(self.user))
        lecture = Lecture.objects.create(course=self.course, title='Intro')
        LectureView.objects.create(user=self.user, lecture=lecture)
        self.assertEqual(dashboard.last_activity(self.user)['type'], 'content')
        quiz = Quiz.objects.create(course=self.course, title='Quiz 1')
        QuizAttempt.objects.create(quiz=quiz, user=self.user)
        activity = dashboard.last_activity(self.user)
        self.assertEqual(activity['type'], 'quiz')
        self.assertEqual(activity['course_name'], 'Excel')

    def test_upcoming_deadlines(self):
        now = timezone.now()
        session = TestDataFactory.create_training_session(self.organization, course=self.course, trainer=self.trainer)
        SessionParticipant.objects.create(session=session, user=self.user)
        self._instance(session, now + timedelta(days=2, hours=1))
        self._instance(session, now - timedelta(days=1))
        Enrollment.objects.create(user=self.user, course=self.course)
        Assignment.objects.create(course=self.course, title='Devoir 1', is_published=True,
                                  due_date=now + timedelta(days=5, hours=1))
        Assignment.objects.create(course=self.course, title='Brouillon', is_published=False,
                                  due_date=now + timedelta(days=3))

        deadlines = dashboard.upcoming_deadlines(self.user)
        self.assertEqual([deadline['type'] for deadline in deadlines], ['session', 'assignment'])
        self.assertEqual(deadlines[0]['instructor'], 'Marc Leroy')
        self.assertEqual(deadlines[0]['days_remaining'], 2)
        self.assertEqual(deadlines[1]['title'], 'Devoir 1')
        self.assertEqual(deadlines[1]['days_remaining'], 5)

    def test_dashboard_endpoint(self):
        response = self.client.get('/api/v1/learner/dashboard/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        for key in ('attendance_rate', 'learning_time', 'activity', 'activity_chart', 'last_activity',
                    'upcoming_deadlines'):
            self.assertIn(key, response.data)

    def test_detailed_stats(self):
        response = self.client.get('/api/v1/learner/dashboard/stats/detailed/', {'period': 'today', 'type': 'chart'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(list(response.data['activity_chart']), ['today_data'])
        self.assertNotIn('attendance_rate', response.data)

        response = self.client.get('/api/v1/learner/dashboard/stats/detailed/', {'period': 'year'})
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        response = self.client.get('/api/v1/learner/dashboard/stats/detailed/', {'type': 'grades'})
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_recent_activities(self):
        quiz = Quiz.objects.create(course=self.course, title='Quiz 1')
        assignment = Assignment.objects.create(course=self.course, title='Devoir 1')
        QuizAttempt.objects.create(quiz=quiz, user=self.user)
        AssignmentSubmission.objects.create(assignment=assignment, user=self.user, content='Réponse')

        response = self.client.get('/api/v1/learner/dashboard/recent-activities/', {'limit': 1})
        self.assertEqual(len(response.data['activities']), 1)
        self.assertEqual(response.data['activities'][0]['type'], 'assignment')

        response = self.client.get('/api/v1/learner/dashboard/recent-activities/', {'limit': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_upcoming_deadlines_endpoint(self):
        response = self.client.get('/api/v1/learner/dashboard/upcoming-deadlines/')
        self.assertEqual(response.data, {'deadlines': []})

    def test_user_without_learner_profile_is_404(self):
        self.client.authenticate_user(self.trainer)
        response = self.client.get('/api/v1/learner/dashboard/stats/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Profil apprenant non trouvé')

    def test_student_profile_removed_with_user(self):
        self.user.delete()
        self.assertFalse(Student.objects.filter(pk=self.student.pk).exists())
