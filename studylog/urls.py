from django.urls import path
from .views import (
    MigrateView,
    SeriesView,
    SessionView,
    StreakView,
    SubjectListView,
    SubjectsWithDataView,
)

urlpatterns = [
    path("sessions", SessionView.as_view(), name="sessions"),
    path("subjects", SubjectListView.as_view(), name="subjects"),
    path("subjects/with-data", SubjectsWithDataView.as_view(), name="subjects-with-data"),
    path("series", SeriesView.as_view(), name="series"),
    path("streak", StreakView.as_view(), name="streak"),
    path("summaries/migrate", MigrateView.as_view(), name="summaries-migrate"),
]
