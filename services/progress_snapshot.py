"""
Student progress snapshot recomputation.

A snapshot is rebuilt from a student's full activity history and upserted as
one row per student. Recomputation has no side effects beyond that write: the
returned snapshot carries ``risk_level``, ``needs_attention`` and the attention
reasons, and callers decide whether to notify anyone.
"""

import math
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import case, func, or_
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Enrollment, StudentProgressSnapshot
from .activity_store import ActivityStore
from .exceptions import DataAccessError
from .risk_classifier import RISK_LEVELS, LOW, MEDIUM, HIGH, CRITICAL, classify_risk
from .snapshot_metrics import (
    RECOGNIZED_SKILLS,
    attendance_metrics,
    behavior_metrics,
    homework_metrics,
    prepare_records,
    skill_metrics,
    streak_metrics,
    subject_performance,
    to_naive_utc,
)


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def empty_snapshot_fields():
    """Derived fields of a student with no activity yet."""
    fields = {
        'last_activity_date': None,
        'current_attendance_streak': 0,
        'longest_attendance_streak': 0,
        'current_homework_streak': 0,
        'total_days_attended': 0,
        'total_days_absent': 0,
        'total_hours_studied': 0.0,
        'overall_attendance_rate': 0.0,
        'subject_wise_performance': [],
        'strongest_subjects': [],
        'weakest_subjects': [],
        'flagged_subjects': [],
        'overall_homework_completion_rate': 100.0,
        'average_homework_quality': 0.0,
        'pending_homework_count': 0,
        'overdue_homework_count': 0,
        'average_behavior_rating': 0.0,
        'average_participation': 0.0,
        'average_discipline': 0.0,
        'punctuality_rate': 0.0,
        'risk_level': LOW,
        'risk_score': 0,
        'needs_attention': False,
        'attention_reasons': [],
        'intervention_required': False,
    }
    for field in RECOGNIZED_SKILLS.values():
        fields[field] = 0.0
    return fields


def build_snapshot_fields(records, now):
    """
    Compute every derived snapshot field from prepared records.

    Args:
        records: activity records sorted ascending by date (see ``prepare_records``)
        now: naive UTC reference time for pending/overdue homework

    Returns:
        dict: snapshot column name -> value, without calculation timestamps
    """
    fields = empty_snapshot_fields()
    if not records:
        return fields

    attendance = attendance_metrics(records)
    streaks = streak_metrics(records)
    homework = homework_metrics(records, now)
    behavior = behavior_metrics(records)
    skills = skill_metrics(records)
    performance, strongest, weakest = subject_performance(records)

    risk = classify_risk(
        attendance['attendance_rate'],
        homework['completion_rate'],
        behavior['behavior_rating'],
        len(weakest),
    )

    fields.update(streaks)
    fields.update({
        'last_activity_date': records[-1]['date'],
        'total_days_attended': attendance['present_days'],
        'total_days_absent': attendance['absent_days'],
        'total_hours_studied': attendance['total_hours'],
        'overall_attendance_rate': attendance['attendance_rate'],
        'subject_wise_performance': performance,
        'strongest_subjects': strongest,
        'weakest_subjects': weakest,
        'flagged_subjects': list(weakest),
        'overall_homework_completion_rate': homework['completion_rate'],
        'average_homework_quality': homework['average_quality'],
        'pending_homework_count': homework['pending_count'],
        'overdue_homework_count': homework['overdue_count'],
        'average_behavior_rating': behavior['behavior_rating'],
        'average_participation': behavior['participation_level'],
        'average_discipline': behavior['discipline_score'],
        'punctuality_rate': behavior['punctuality_rate'],
        'risk_level': risk['risk_level'],
        'risk_score': risk['score'],
        'needs_attention': risk['needs_attention'],
        'attention_reasons': risk['attention_reasons'],
        'intervention_required': risk['intervention_required'],
    })
    for skill, field in RECOGNIZED_SKILLS.items():
        fields[field] = skills[skill]
    return fields


def _upsert_snapshot(student_id, fields):
    """Create or fully replace the snapshot row of a student."""
    try:
        snapshot = StudentProgressSnapshot.query.filter_by(student_id=student_id).first()
        if not snapshot:
            snapshot = StudentProgressSnapshot(student_id=student_id)
            db.session.add(snapshot)
        snapshot.apply(fields)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise DataAccessError(f"Could not save progress snapshot for student {student_id}: {e}", student_id) from e
    return snapshot


def recompute_snapshot(student_id, store=None, now=None):
    """
    Rebuild and persist the progress snapshot of one student.

    Loads the full activity history, runs every aggregator and the risk
    classifier, then upserts the result. Errors propagate and nothing is
    written for the student.

    Args:
        student_id: ID of the student
        store: activity store (defaults to the database-backed ``ActivityStore``)
        now: reference time, aware or naive UTC (defaults to the current time)

    Returns:
        StudentProgressSnapshot
    """
    store = store or ActivityStore()
    now = to_naive_utc(now) if now else _utcnow()

    records = prepare_records(store.list_activity_records(student_id), student_id)
    fields = build_snapshot_fields(records, now)

    interval = current_app.config.get('SNAPSHOT_RECALCULATION_INTERVAL_HOURS', 24)
    fields['last_calculated_at'] = now
    fields['next_calculation_due'] = now + timedelta(hours=interval)

    snapshot = _upsert_snapshot(student_id, fields)
    current_app.logger.info(
        f"Progress snapshot recalculated for student {student_id}: "
        f"{len(records)} records, risk {snapshot.risk_level}"
    )
    return snapshot


def get_snapshot(student_id, store=None):
    """Return the stored snapshot of a student, computing it first if none exists."""
    snapshot = StudentProgressSnapshot.query.filter_by(student_id=student_id).first()
    if snapshot:
        return snapshot
    return recompute_snapshot(student_id, store=store)


def bulk_recompute(class_id, store=None, now=None):
    """
    Recompute snapshots for every student actively enrolled in a class.

    Students are processed one at a time. A failure is recorded in that
    student's outcome and the loop moves on.

    Returns:
        list: [{'student_id', 'success', 'risk_level'} or {'student_id', 'success', 'error'}]
    """
    store = store or ActivityStore()
    student_ids = store.list_currently_enrolled_student_ids(class_id)

    results = []
    for student_id in student_ids:
        try:
            snapshot = recompute_snapshot(student_id, store=store, now=now)
            results.append({'student_id': student_id, 'success': True, 'risk_level': snapshot.risk_level})
        except Exception as e:
            db.session.rollback()
            current_app.logger.exception(f"Progress snapshot failed for student {student_id} in class {class_id}")
            results.append({'student_id': student_id, 'success': False, 'error': str(e)})

    succeeded = sum(1 for r in results if r['success'])
    current_app.logger.info(
        f"Bulk snapshot recompute for class {class_id}: {succeeded} succeeded, {len(results) - succeeded} failed"
    )
    return results


def summarize_outcomes(results):
    succeeded = sum(1 for r in results if r['success'])
    return {'total': len(results), 'succeeded': succeeded, 'failed': len(results) - succeeded}


def _severity_order():
    return case(
        {CRITICAL: 4, HIGH: 3, MEDIUM: 2, LOW: 1},
        value=StudentProgressSnapshot.risk_level,
        else_=0,
    )


def _scope_to_class(query, class_id):
    return query.join(
        Enrollment, Enrollment.student_id == StudentProgressSnapshot.student_id
    ).filter(
        Enrollment.class_id == class_id,
        Enrollment.is_active == True
    )


def get_at_risk_students(risk_level=None, class_id=None, page=1, limit=20):
    """
    Snapshots flagged as needing attention, most severe first, then by lowest
    attendance.

    Returns:
        dict: {'students': [...], 'pagination': {'page', 'limit', 'total', 'pages'}}
    """
    query = StudentProgressSnapshot.query.filter(StudentProgressSnapshot.needs_attention == True)
    if risk_level:
        query = query.filter(StudentProgressSnapshot.risk_level == risk_level)
    if class_id:
        query = _scope_to_class(query, class_id)

    total = query.count()
    snapshots = query.order_by(
        _severity_order().desc(),
        StudentProgressSnapshot.overall_attendance_rate.asc(),
        StudentProgressSnapshot.student_id.asc(),
    ).offset((page - 1) * limit).limit(limit).all()

    students = []
    for snapshot in snapshots:
        entry = snapshot.to_dict()
        student = snapshot.student
        entry['student'] = {
            'id': snapshot.student_id,
            'name': student.full_name if student else None,
            'admission_number': student.student_id if student else None,
        }
        students.append(entry)

    return {
        'students': students,
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'pages': math.ceil(total / limit) if limit else 0,
        },
    }


def count_by_risk_level(class_id=None):
    """Number of snapshots per risk level, every level present."""
    query = db.session.query(StudentProgressSnapshot.risk_level, func.count(StudentProgressSnapshot.id))
    if class_id:
        query = _scope_to_class(query, class_id)
    counts = {level: 0 for level in RISK_LEVELS}
    for level, count in query.group_by(StudentProgressSnapshot.risk_level).all():
        counts[level] = count
    return counts


def find_students_due_for_recalculation(now=None):
    """Student ids whose snapshot is past its due time or has none."""
    now = to_naive_utc(now) if now else _utcnow()
    rows = db.session.query(StudentProgressSnapshot.student_id).filter(
        or_(
            StudentProgressSnapshot.next_calculation_due < now,
            StudentProgressSnapshot.next_calculation_due.is_(None),
        )
    ).order_by(StudentProgressSnapshot.student_id).all()
    return [row[0] for row in rows]
