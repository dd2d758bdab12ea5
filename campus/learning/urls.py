from django.urls import path
from .views import (
    course_list_create, student_list_create, student_detail, session_list_create,
    session_instance_list_create, session_participants, instance_attendance,
    learner_dashboard_stats, learner_dashboard_detailed_stats, learner_recent_activities,
    learner_upcoming_deadlines
)

urlpatterns = [
    path('courses/', course_list_create, name='course-list-create'),
    path('students/', student_list_create, name='student-list-create'),
    path('students/<int:pk>/', student_detail, name='student-detail'),
    path('training-sessions/', session_list_create, name='training-session-list-create'),
    path('training-sessions/<int:pk>/instances/', session_instance_list_create, name='session-instance-list-create'),
    path('training-sessions/<int:pk>/participants/', session_participants, name='session-participants'),
    path('session-instances/<int:pk>/attendance/', instance_attendance, name='instance-attendance'),
    path('learner/dashboard/stats/', learner_dashboard_stats, name='learner-dashboard-stats'),
    path('learner/dashboard/stats/detailed/', learner_dashboard_detailed_stats, name='learner-dashboard-detailed-stats'),
    path('learner/dashboard/recent-activities/', learner_recent_activities, name='learner-recent-activities'),
    path('learner/dashboard/upcoming-deadlines/', learner_upcoming_deadlines, name='learner-upcoming-deadlines'),
]
