import uuid

from django.db import models


def new_subject_id() -> str:
    return uuid.uuid4().hex


class Subject(models.Model):
    id = models.CharField(primary_key=True, max_length=64, default=new_subject_id, editable=False)  # Opaque identifier
    user_id = models.CharField(max_length=64, db_index=True)        # Owner
    name = models.CharField(max_length=100)
    created_at = models.DateTimeField(auto_now_add=True)
    last_accessed_at = models.DateTimeField(null=True, blank=True)   # Last time a session was recorded against it
    access_count = models.PositiveIntegerField(default=0)            # Sessions recorded against it

    class Meta:
        indexes = [
            models.Index(fields=["user_id", "last_accessed_at"], name="idx_subject_user_access"),
        ]

    def __str__(self):
        return self.name


class StudySession(models.Model):
    user_id = models.CharField(max_length=64, db_index=True)
    subject = models.ForeignKey(Subject, on_delete=models.CASCADE, related_name="sessions")
    time_minutes = models.PositiveIntegerField()                     # Always > 0, validated before insert
    comment = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(db_index=True)                 # Set by the recorder so migration can re-bucket it

    class Meta:
        indexes = [
            models.Index(fields=["user_id", "created_at"], name="idx_session_user_created"),
        ]


class DailySummary(models.Model):
    user_id = models.CharField(max_length=64)
    subject = models.ForeignKey(Subject, on_delete=models.CASCADE, related_name="daily_summaries")
    study_date = models.DateField()                                  # Local calendar day (see calendar_keys)
    total_study_time = models.PositiveIntegerField(default=0)       # Sum of time_minutes for the key
    study_sessions_count = models.PositiveIntegerField(default=0)   # Number of sessions for the key
    first_study_time = models.DateTimeField()
    last_study_time = models.DateTimeField()
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user_id", "subject", "study_date"],
                                    name="uq_user_subject_day"),
        ]
        indexes = [
            models.Index(fields=["user_id", "study_date"], name="idx_summary_user_day"),
        ]
