"""
URL configuration for the campus backend.

Every app exposes its endpoints under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Campus Administration"
admin.site.site_title = "Campus Admin Portal"
admin.site.index_title = "Training organization management"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('campus.core.urls')),
    path('api/v1/', include('campus.clients.urls')),
    path('api/v1/', include('campus.catalog.urls')),
    path('api/v1/', include('campus.sales.urls')),
    path('api/v1/', include('campus.expenses.urls')),
    path('api/v1/', include('campus.ocr.urls')),
    path('api/v1/', include('campus.notifications.urls')),
    path('api/v1/', include('campus.messaging.urls')),
    path('api/v1/', include('campus.learning.urls')),
    path('api/v1/', include('campus.reports.urls')),
]

if settings.DEBUG:
    urlpatterns += [
        re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
    ]
