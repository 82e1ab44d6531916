# studylog/serializers.py
import datetime as dt

from django.utils import timezone
from rest_framework import serializers

from .conf import app_setting
from .models import StudySession, Subject


class AwareDateTimeField(serializers.DateTimeField):
    """
    Datetime field that ensures tz-aware UTC datetimes.
    - Accepts ISO strings with/without timezone; if naive → assume UTC.
    - Always outputs ISO in UTC.
    """
    def to_internal_value(self, value):
        d = super().to_internal_value(value)
        if d is None:
            return None
        if timezone.is_naive(d):
            d = timezone.make_aware(d, dt.timezone.utc)
        return d.astimezone(dt.timezone.utc)

    def to_representation(self, value):
        if value is None:
            return None
        if timezone.is_naive(value):
            value = timezone.make_aware(value, dt.timezone.utc)
        return super().to_representation(value.astimezone(dt.timezone.utc))


class StudySessionCreateSerializer(serializers.Serializer):
    """
    Input for recording a session.
    Notes:
      - time_minutes must be a positive integer.
      - created_at is optional (defaults to now); it decides the study day.
      - Subject ownership is checked by the recorder, not here.
    """
    subject_id = serializers.CharField(max_length=64)
    time_minutes = serializers.IntegerField(min_value=1)
    comment = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    created_at = AwareDateTimeField(required=False, allow_null=True)

    def validate_comment(self, v):
        if v is None:
            return None
        v = v.strip()
        max_len = int(app_setting("MAX_COMMENT_LENGTH"))
        if len(v) > max_len:
            raise serializers.ValidationError(f"comment must be at most {max_len} characters.")
        return v or None


class StudySessionSerializer(serializers.ModelSerializer):
    """Read-only snapshot of a session for the study log, with the subject's name."""
    subject_id = serializers.CharField(read_only=True)
    subject_name = serializers.SerializerMethodField()
    created_at = AwareDateTimeField(read_only=True)

    class Meta:
        model = StudySession
        fields = (
            "id",
            "user_id",
            "subject_id",
            "subject_name",
            "time_minutes",
            "comment",
            "created_at",
        )
        read_only_fields = ("id", "user_id", "time_minutes", "comment")

    def get_subject_name(self, obj) -> str:
        return obj.subject.name if obj.subject_id else None


class SubjectSerializer(serializers.ModelSerializer):
    created_at = AwareDateTimeField(read_only=True)
    last_accessed_at = AwareDateTimeField(read_only=True)

    class Meta:
        model = Subject
        fields = (
            "id",
            "name",
            "created_at",
            "last_accessed_at",
            "access_count",
        )
        read_only_fields = ("id", "created_at", "last_accessed_at", "access_count")
