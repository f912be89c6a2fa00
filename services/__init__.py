"""
Business logic and services. Keeps app.py as glue-only (config, blueprints, extensions).
"""

from .exceptions import SnapshotError, DataAccessError, MalformedRecordError
from .activity_store import ActivityStore
from .progress_snapshot import (
    recompute_snapshot,
    get_snapshot,
    bulk_recompute,
    summarize_outcomes,
    get_at_risk_students,
    count_by_risk_level,
    find_students_due_for_recalculation,
)
from .notifications import (
    create_notification,
    create_notifications_for_users,
    notify_risk_alert,
)

__all__ = [
    'SnapshotError',
    'DataAccessError',
    'MalformedRecordError',
    'ActivityStore',
    'recompute_snapshot',
    'get_snapshot',
    'bulk_recompute',
    'summarize_outcomes',
    'get_at_risk_students',
    'count_by_risk_level',
    'find_students_due_for_recalculation',
    'create_notification',
    'create_notifications_for_users',
    'notify_risk_alert',
]
