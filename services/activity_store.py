"""
Database-backed reader for daily activity records and class enrollments.

Anything exposing ``list_activity_records`` and
``list_currently_enrolled_student_ids`` can stand in for ``ActivityStore``
when calling the snapshot services.
"""

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import DailyActivity, Enrollment
from .exceptions import DataAccessError


class ActivityStore:
    """
    Reads activity history and cohort membership through Flask-SQLAlchemy.

    Reads are time-boxed with ``SNAPSHOT_QUERY_TIMEOUT_SECONDS`` on PostgreSQL
    only; other databases (SQLite in development and tests) run them unbounded.
    """

    def __init__(self, timeout_seconds=None):
        self.timeout_seconds = timeout_seconds

    def _timeout_ms(self):
        seconds = self.timeout_seconds
        if seconds is None:
            seconds = current_app.config.get('SNAPSHOT_QUERY_TIMEOUT_SECONDS', 10)
        return int(seconds * 1000)

    def _apply_statement_timeout(self):
        """Bound the current transaction's reads. Only PostgreSQL supports this."""
        if db.engine.dialect.name != 'postgresql':
            return
        timeout_ms = self._timeout_ms()
        if timeout_ms > 0:
            db.session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))

    def list_activity_records(self, student_id):
        """Return every activity record of a student as engine-ready dicts (unordered)."""
        try:
            self._apply_statement_timeout()
            rows = DailyActivity.query.filter_by(student_id=student_id).all()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise DataAccessError(
                f"Could not load activity records for student {student_id}: {e}", student_id
            ) from e
        return [row.to_record() for row in rows]

    def list_currently_enrolled_student_ids(self, class_id):
        """Return ids of students actively enrolled in a class."""
        try:
            self._apply_statement_timeout()
            rows = db.session.query(Enrollment.student_id).filter(
                Enrollment.class_id == class_id,
                Enrollment.is_active == True
            ).distinct().order_by(Enrollment.student_id).all()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise DataAccessError(f"Could not load enrollments for class {class_id}: {e}") from e
        return [row[0] for row in rows]
