from django.apps import AppConfig


class StudylogConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "studylog"
    verbose_name = "Study log"
