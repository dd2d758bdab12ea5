from django.urls import path
from . import views

urlpatterns = [
    path('notifications/', views.notification_list, name='notification-list'),
    path('notifications/count/', views.notification_count, name='notification-count'),
    path('notifications/mark-read/', views.notification_mark_list_read, name='notification-mark-list-read'),
    path('notifications/mark-all-read/', views.notification_mark_all_read, name='notification-mark-all-read'),
    path('notifications/delete/', views.notification_delete_list, name='notification-delete-list'),
    path('notifications/<str:identifier>/', views.notification_detail, name='notification-detail'),
    path('notifications/<str:identifier>/read/', views.notification_mark_read, name='notification-mark-read'),
]
