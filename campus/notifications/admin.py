from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['user', 'text', 'is_seen', 'created_at']
    list_filter = ['is_seen', 'created_at']
    search_fields = ['text', 'user__username']
    readonly_fields = ['uuid', 'created_at']
