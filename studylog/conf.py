# studylog/conf.py
from django.conf import settings

DEFAULTS = {
    "TIME_ZONE": None,              # None -> settings.TIME_ZONE
    "STREAK_LIMIT_DAYS": 365,
    "RECENT_SESSIONS_LIMIT": 20,
    "MAX_COMMENT_LENGTH": 500,
}


def app_setting(name: str):
    """Read a STUDYLOG setting, falling back to the app default."""
    if name not in DEFAULTS:
        raise KeyError(f"unknown STUDYLOG setting: {name}")
    value = getattr(settings, "STUDYLOG", {}).get(name, DEFAULTS[name])
    if name == "TIME_ZONE" and not value:
        return settings.TIME_ZONE
    return value
