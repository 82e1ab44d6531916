# studylog/exceptions.py
from rest_framework import status
from rest_framework.exceptions import APIException, NotAuthenticated, ValidationError

__all__ = [
    "NotAuthenticated",
    "InvalidInput",
    "StoreUnavailable",
    "PartialAggregationFailure",
]


class InvalidInput(ValidationError):
    """Rejected before any write: bad minutes, malformed range, unknown subject."""
    default_detail = "Invalid input."
    default_code = "invalid_input"


class StoreUnavailable(APIException):
    """The underlying record store failed a read or a write."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Record store unavailable."
    default_code = "store_unavailable"


class PartialAggregationFailure(StoreUnavailable):
    """
    Some subjects of an "all subjects" fan-out could not be read.
    The whole aggregation is rejected rather than returning an incomplete total.
    """
    default_detail = "Aggregation failed for some subjects."
    default_code = "partial_aggregation_failure"

    def __init__(self, failed_subjects, detail=None, code=None):
        self.failed_subjects = sorted(failed_subjects)
        if detail is None:
            detail = f"Aggregation failed for subjects: {', '.join(self.failed_subjects)}."
        super().__init__(detail, code)
