# studylog/views.py
from __future__ import annotations

import datetime as dt

from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .backfill import migrate
from .calendar_keys import local_date, parse_day
from .facade import VIEW_MODES, ChartFacade, RequestSequencer, default_window
from .identity import current_user_id
from .serializers import StudySessionCreateSerializer, StudySessionSerializer, SubjectSerializer
from .services import AggregationEngine, SessionRecorder
from .store import RecordStore


def _day_param(raw: str | None) -> dt.date | None:
    """Parse an optional YYYY-MM-DD query parameter."""
    if not raw:
        return None
    return parse_day(raw)


def _bool_param(raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    return raw.lower() == "true"


class StudyLogAPIView(APIView):
    """Builds the store-backed collaborators for each request; override store_class in tests."""
    store_class = RecordStore

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        self.store = self.store_class()
        self.engine = AggregationEngine(self.store)
        self.recorder = SessionRecorder(self.store)


class SessionView(StudyLogAPIView):
    """
    POST /api/sessions  record a study session (201).
    GET  /api/sessions?limit=N  most recent sessions, newest first.
    """
    def post(self, request):
        user_id = current_user_id(request)
        ser = StudySessionCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        session = self.recorder.record(
            user_id,
            data["subject_id"],
            data["time_minutes"],
            comment=data.get("comment"),
            at=data.get("created_at"),
        )
        return Response(StudySessionSerializer(session).data, status=status.HTTP_201_CREATED)

    def get(self, request):
        user_id = current_user_id(request)
        limit_raw = request.query_params.get("limit")
        limit = None
        if limit_raw is not None:
            try:
                limit = int(limit_raw)
            except ValueError:
                return Response({"detail": "limit must be an integer."}, status=400)
            if limit < 0:
                return Response({"detail": "limit must be >= 0."}, status=400)
        sessions = self.recorder.recent(user_id, limit)
        return Response(StudySessionSerializer(sessions, many=True).data, status=status.HTTP_200_OK)


class SubjectListView(StudyLogAPIView):
    """
    GET  /api/subjects  subjects in picker order (latest, most accessed, rest).
    POST /api/subjects  create a subject {"name": ...}.
    """
    def get(self, request):
        subjects = self.recorder.subjects(current_user_id(request))
        return Response(SubjectSerializer(subjects, many=True).data, status=status.HTTP_200_OK)

    def post(self, request):
        user_id = current_user_id(request)
        subject = self.recorder.create_subject(user_id, (request.data or {}).get("name"))
        return Response(SubjectSerializer(subject).data, status=status.HTTP_201_CREATED)


class SubjectsWithDataView(StudyLogAPIView):
    """GET /api/subjects/with-data  subject ids that have recorded study time."""
    def get(self, request):
        ids = self.engine.subjects_with_data(current_user_id(request))
        return Response({"subject_ids": sorted(ids)}, status=status.HTTP_200_OK)


class SeriesView(StudyLogAPIView):
    """
    GET /api/series
      ?view=day|week|month
      &from=YYYY-MM-DD
      &to=YYYY-MM-DD
      &anchor=YYYY-MM-DD       (used when from/to are omitted)
      &subject=<subject id>
      &include_empty=true|false
      &tag=<client request tag, echoed back>
      &channel=<chart id; a newer request on the same channel makes older ones stale>
    """
    # Shared across requests: staleness is judged against the newest ticket per channel.
    sequencer = RequestSequencer()

    def get(self, request):
        user_id = current_user_id(request)
        view_mode = request.query_params.get("view", "day")
        if view_mode not in VIEW_MODES:
            return Response({"detail": "view must be day|week|month."}, status=400)

        try:
            start = _day_param(request.query_params.get("from"))
            end = _day_param(request.query_params.get("to"))
            anchor = _day_param(request.query_params.get("anchor"))
        except ValueError as e:
            return Response({"detail": str(e)}, status=400)

        if (start is None) != (end is None):
            return Response({"detail": "from and to must be given together."}, status=400)
        if start is None:
            start, end = default_window(view_mode, anchor or local_date(timezone.now()))

        chart = ChartFacade(self.engine, self.sequencer)
        result = chart.get_series(
            user_id,
            view_mode,
            start,
            end,
            request.query_params.get("subject") or None,
            include_empty=_bool_param(request.query_params.get("include_empty"), False),
            request_tag=request.query_params.get("tag"),
            channel=request.query_params.get("channel", "chart"),
        )
        return Response(result, status=status.HTTP_200_OK)


class StreakView(StudyLogAPIView):
    """GET /api/streak?reference=YYYY-MM-DD  consecutive study days ending at the reference day."""
    def get(self, request):
        user_id = current_user_id(request)
        try:
            reference = _day_param(request.query_params.get("reference"))
        except ValueError as e:
            return Response({"detail": str(e)}, status=400)
        if reference is None:
            reference = local_date(timezone.now())
        days = self.engine.consecutive_day_streak(user_id, reference)
        return Response({
            "reference_day": reference.isoformat(),
            "consecutive_days": days,
        }, status=status.HTTP_200_OK)


class MigrateView(StudyLogAPIView):
    """POST /api/summaries/migrate  rebuild the caller's daily summaries from raw sessions."""
    def post(self, request):
        result = migrate(current_user_id(request), store=self.store)
        code = status.HTTP_200_OK if result["success"] else status.HTTP_503_SERVICE_UNAVAILABLE
        return Response(result, status=code)
