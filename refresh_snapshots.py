"""
Progress snapshot refresh script.
Run as a cron job (for example hourly) to recompute snapshots whose
recalculation is due, or nightly with --all-classes to rebuild every cohort.

Can also be triggered manually by administrators.
"""

import argparse
from datetime import datetime

from flask import current_app

from extensions import db
from models import Class, Student, StudentProgressSnapshot
from services import (
    ActivityStore,
    bulk_recompute,
    find_students_due_for_recalculation,
    notify_risk_alert,
    recompute_snapshot,
)


def students_without_snapshot():
    """IDs of students that have never had a snapshot computed."""
    rows = db.session.query(Student.id).outerjoin(
        StudentProgressSnapshot, StudentProgressSnapshot.student_id == Student.id
    ).filter(StudentProgressSnapshot.id.is_(None)).order_by(Student.id).all()
    return [row[0] for row in rows]


def refresh_due_snapshots(now=None, include_missing=True):
    """
    Recompute every snapshot past its due time.

    Args:
        now: naive UTC reference time (defaults to the current time)
        include_missing: also compute snapshots for students that have none

    Returns:
        dict: Statistics about the refresh
    """
    stats = {
        'total_students': 0,
        'snapshots_updated': 0,
        'alerts_sent': 0,
        'errors': 0,
        'started_at': datetime.utcnow()
    }

    student_ids = find_students_due_for_recalculation(now)
    if include_missing:
        student_ids = sorted(set(student_ids) | set(students_without_snapshot()))
    stats['total_students'] = len(student_ids)

    if not student_ids:
        current_app.logger.info("No progress snapshots due for recalculation")

    store = ActivityStore()
    for student_id in student_ids:
        try:
            snapshot = recompute_snapshot(student_id, store=store, now=now)
            stats['snapshots_updated'] += 1
            stats['alerts_sent'] += len(notify_risk_alert(snapshot))
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Error refreshing snapshot for student {student_id}: {e}")
            stats['errors'] += 1

    stats['completed_at'] = datetime.utcnow()
    stats['duration_seconds'] = (stats['completed_at'] - stats['started_at']).total_seconds()
    return stats


def refresh_all_classes(class_id=None, now=None):
    """
    Bulk recompute the cohort of every active class, or of a single class.

    Returns:
        dict: Statistics about the refresh, with per-class outcomes
    """
    stats = {
        'classes_processed': [],
        'total_students': 0,
        'snapshots_updated': 0,
        'errors': 0,
        'started_at': datetime.utcnow()
    }

    if class_id:
        classes = [db.session.get(Class, class_id)]
    else:
        classes = Class.query.filter_by(is_active=True).order_by(Class.id).all()
    classes = [c for c in classes if c]

    if not classes:
        current_app.logger.warning("No classes to process")
        return stats

    store = ActivityStore()
    for class_obj in classes:
        current_app.logger.info(f"Recomputing progress snapshots for class: {class_obj.name}")
        results = bulk_recompute(class_obj.id, store=store, now=now)
        succeeded = sum(1 for r in results if r['success'])

        stats['total_students'] += len(results)
        stats['snapshots_updated'] += succeeded
        stats['errors'] += len(results) - succeeded
        stats['classes_processed'].append({
            'class_id': class_obj.id,
            'name': class_obj.name,
            'succeeded': succeeded,
            'failed': len(results) - succeeded
        })

    stats['completed_at'] = datetime.utcnow()
    stats['duration_seconds'] = (stats['completed_at'] - stats['started_at']).total_seconds()
    return stats


if __name__ == '__main__':
    from app import create_app

    parser = argparse.ArgumentParser(description='Refresh student progress snapshots.')
    parser.add_argument('--all-classes', action='store_true', help='recompute every active class cohort')
    parser.add_argument('--class-id', type=int, help='recompute a single class cohort')
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        if args.all_classes or args.class_id:
            result = refresh_all_classes(class_id=args.class_id)
        else:
            result = refresh_due_snapshots()
        print(f"Snapshot refresh completed: {result}")
