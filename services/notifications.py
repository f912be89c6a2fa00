"""
Notification creation helpers, including risk alerts raised from progress snapshots.
"""

from datetime import datetime, timedelta

from flask import current_app

from extensions import db
from models import Notification, Enrollment, User

RISK_ALERT = 'risk_alert'
ADMIN_ROLES = ['School Administrator', 'Director']


def create_notification(user_id, notification_type, title, message, link=None):
    """Create a notification for one user."""
    notification = Notification()
    notification.user_id = user_id
    notification.type = notification_type
    notification.title = title
    notification.message = message
    notification.link = link
    db.session.add(notification)
    db.session.commit()
    return notification


def create_notifications_for_users(user_ids, notification_type, title, message, link=None):
    """Create notifications for multiple users."""
    notifications = []
    for user_id in user_ids:
        notification = create_notification(user_id, notification_type, title, message, link)
        notifications.append(notification)
    return notifications


def snapshot_link(student_id):
    return f'/api/dashboard/student/{student_id}'


def _risk_alert_recipients(student_id):
    """Teachers of the student's active classes; administrators when there are none."""
    enrollments = Enrollment.query.filter_by(student_id=student_id, is_active=True).all()
    user_ids = []
    for enrollment in enrollments:
        teacher = enrollment.class_info.teacher if enrollment.class_info else None
        if teacher and teacher.user and teacher.user.id not in user_ids:
            user_ids.append(teacher.user.id)
    if not user_ids:
        admins = User.query.filter(User.role.in_(ADMIN_ROLES)).all()
        user_ids = [u.id for u in admins]
    return user_ids


def notify_risk_alert(snapshot, cooldown_hours=None):
    """
    Alert staff about a student whose snapshot requires intervention.

    Nothing is sent when the snapshot does not require intervention, or when
    a risk alert for the same student was created within the cooldown window.

    Returns:
        list: created Notification objects (empty when suppressed)
    """
    if not snapshot.intervention_required:
        return []

    if cooldown_hours is None:
        cooldown_hours = current_app.config.get('RISK_ALERT_COOLDOWN_HOURS', 24)
    link = snapshot_link(snapshot.student_id)
    cutoff = datetime.utcnow() - timedelta(hours=cooldown_hours)
    recent = Notification.query.filter(
        Notification.type == RISK_ALERT,
        Notification.link == link,
        Notification.timestamp >= cutoff
    ).first()
    if recent:
        current_app.logger.info(f"Risk alert for student {snapshot.student_id} suppressed (sent {recent.timestamp})")
        return []

    student = snapshot.student
    name = student.full_name if student else f"Student {snapshot.student_id}"
    reasons = snapshot.reasons
    title = f'{snapshot.risk_level.title()} risk: {name}'
    message = '; '.join(reasons) if reasons else 'Progress snapshot requires intervention.'

    user_ids = _risk_alert_recipients(snapshot.student_id)
    return create_notifications_for_users(user_ids, RISK_ALERT, title, message, link)
