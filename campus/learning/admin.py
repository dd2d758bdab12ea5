from django.contrib import admin
from .models import (
    Assignment, Attendance, Course, Enrollment, Lecture, Quiz, SessionInstance, SessionParticipant,
    Student, TrainingSession
)


class LectureInline(admin.TabularInline):
    model = Lecture
    extra = 0


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ['title', 'organization', 'is_published', 'created_at']
    list_filter = ['is_published']
    search_fields = ['title']
    inlines = [LectureInline]


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['last_name', 'first_name', 'organization', 'status', 'created_at']
    list_filter = ['status']
    search_fields = ['first_name', 'last_name', 'user__email']


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ['user', 'course', 'status', 'progress_percentage']
    list_filter = ['status']


class SessionParticipantInline(admin.TabularInline):
    model = SessionParticipant
    extra = 0


class SessionInstanceInline(admin.TabularInline):
    model = SessionInstance
    extra = 0


@admin.register(TrainingSession)
class TrainingSessionAdmin(admin.ModelAdmin):
    list_display = ['title', 'organization', 'course', 'trainer', 'start_date', 'end_date']
    search_fields = ['title']
    inlines = [SessionInstanceInline, SessionParticipantInline]


@admin.register(Attendance)
class AttendanceAdmin(admin.ModelAdmin):
    list_display = ['instance', 'user', 'present', 'recorded_at']
    list_filter = ['present']


admin.site.register(Quiz)
admin.site.register(Assignment)
