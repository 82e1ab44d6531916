# studylog/identity.py
from .exceptions import NotAuthenticated


def current_user_id(request) -> str:
    """Id of the authenticated user behind a request; NotAuthenticated otherwise."""
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        raise NotAuthenticated()
    return str(user.pk)
