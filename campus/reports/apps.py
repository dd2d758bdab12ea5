from django.apps import AppConfig


class ReportsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'campus.reports'

    def ready(self):
        from . import signals  # noqa: F401
