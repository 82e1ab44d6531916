# studylog/backfill.py
"""
Rebuild the daily summary store from raw study sessions.

Administrative, never triggered by normal writes. Each (day, subject) group
overwrites its row instead of adding to it, so re-running over the same raw
data yields the same rows. A run happens in one transaction: on failure
nothing is written and the run can simply be retried.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from django.db import DatabaseError, transaction

from .calendar_keys import local_date
from .exceptions import StoreUnavailable
from .store import RecordStore

logger = logging.getLogger(__name__)


def group_sessions(sessions) -> Dict[Tuple, Dict]:
    """
    Group sessions (oldest first) by local day, then by subject.

    Returns {(day, subject_id): {total_time, sessions_count, first_time, last_time}}.
    """
    groups: Dict[Tuple, Dict] = {}
    for s in sessions:
        key = (local_date(s.created_at), s.subject_id)
        g = groups.get(key)
        if g is None:
            groups[key] = {
                "total_time": s.time_minutes,
                "sessions_count": 1,
                "first_time": s.created_at,
                "last_time": s.created_at,
            }
            continue
        g["total_time"] += s.time_minutes
        g["sessions_count"] += 1
        g["first_time"] = min(g["first_time"], s.created_at)
        g["last_time"] = max(g["last_time"], s.created_at)
    return groups


def migrate(user_id: str, store: Optional[RecordStore] = None) -> Dict:
    """Rebuild one user's daily summaries; returns {success, migrated_count[, error]}."""
    store = store if store is not None else RecordStore()
    if not user_id:
        return {"success": False, "migrated_count": 0, "error": "user_id is required."}
    try:
        with transaction.atomic():
            groups = group_sessions(store.sessions_for_user(user_id))
            for (day, subject_id), totals in sorted(groups.items()):
                store.overwrite(user_id, subject_id, day, totals)
    except (StoreUnavailable, DatabaseError) as exc:
        logger.exception("daily summary migration failed for user=%s", user_id)
        return {"success": False, "migrated_count": 0, "error": str(exc)}

    logger.info("migrated %d daily summary groups for user=%s", len(groups), user_id)
    return {"success": True, "migrated_count": len(groups)}


def migrate_all(store: Optional[RecordStore] = None) -> List[Dict]:
    """Run migrate() for every user that has raw sessions."""
    store = store if store is not None else RecordStore()
    results = []
    for user_id in store.users_with_sessions():
        result = migrate(user_id, store=store)
        results.append(dict(result, user_id=user_id))
    return results
