"""
Progress dashboard API: student snapshots, recalculation and at-risk listings.
Mounted at /api/dashboard.
"""

from flask import Blueprint, request, jsonify, current_app, abort
from flask_login import login_required, current_user

from decorators import teacher_required, management_required
from models import StudentProgressSnapshot
from services import (
    recompute_snapshot,
    get_snapshot,
    bulk_recompute,
    summarize_outcomes,
    get_at_risk_students,
    count_by_risk_level,
    notify_risk_alert,
)
from services.risk_classifier import RISK_LEVELS, CRITICAL

dashboard_blueprint = Blueprint('dashboard', __name__)


def _positive_int(value, default):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


@dashboard_blueprint.route('/student/<int:student_id>')
@login_required
def student_snapshot(student_id):
    """Get a student's progress snapshot, computing it on first access."""
    # Students can only see their own snapshot
    if current_user.role == 'Student' and current_user.student_id != student_id:
        abort(403)

    snapshot = get_snapshot(student_id)
    return jsonify({'success': True, 'data': snapshot.to_dict()})


@dashboard_blueprint.route('/recalculate/<int:student_id>', methods=['POST'])
@login_required
@teacher_required
def recalculate_student(student_id):
    """Recompute one student's snapshot and alert staff when intervention is required."""
    snapshot = recompute_snapshot(student_id)
    notify_risk_alert(snapshot)
    return jsonify({'success': True, 'data': snapshot.to_dict()})


@dashboard_blueprint.route('/bulk-recalculate', methods=['POST'])
@login_required
@management_required
def bulk_recalculate():
    """Recompute snapshots for every student currently enrolled in a class."""
    data = request.get_json(silent=True) or {}
    class_id = data.get('class_id')
    if not class_id:
        return jsonify({'success': False, 'message': 'class_id is required'}), 400

    results = bulk_recompute(class_id)

    critical_ids = [r['student_id'] for r in results if r['success'] and r['risk_level'] == CRITICAL]
    for student_id in critical_ids:
        snapshot = StudentProgressSnapshot.query.filter_by(student_id=student_id).first()
        if snapshot:
            notify_risk_alert(snapshot)

    summary = summarize_outcomes(results)
    summary['results'] = results
    return jsonify({'success': True, 'data': summary})


@dashboard_blueprint.route('/at-risk')
@login_required
@teacher_required
def at_risk_students():
    """List students needing attention, optionally by risk level and class."""
    risk_level = request.args.get('risk_level')
    if risk_level:
        risk_level = risk_level.upper()
        if risk_level not in RISK_LEVELS:
            return jsonify({'success': False, 'message': f'Unknown risk level: {risk_level}'}), 400

    class_id = request.args.get('class_id', type=int)
    page = _positive_int(request.args.get('page'), 1)
    limit = min(
        _positive_int(request.args.get('limit'), current_app.config['AT_RISK_PAGE_SIZE']),
        current_app.config['AT_RISK_MAX_PAGE_SIZE']
    )

    result = get_at_risk_students(risk_level=risk_level, class_id=class_id, page=page, limit=limit)
    return jsonify({'success': True, **result})


@dashboard_blueprint.route('/risk-summary')
@login_required
@teacher_required
def risk_summary():
    """Count snapshots per risk level."""
    class_id = request.args.get('class_id', type=int)
    return jsonify({'success': True, 'data': count_by_risk_level(class_id)})
