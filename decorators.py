from functools import wraps
from flask import abort
from flask_login import current_user

ADMIN_ROLES = ['School Administrator', 'Director']

TEACHER_ROLES = [
    'History Teacher',
    'Science Teacher',
    'Physics Teacher',
    'English Language Arts Teacher',
    'Math Teacher',
    'Substitute Teacher',
    'School Counselor'
]


def is_teacher_role(role):
    """Check if a role is considered a teacher role"""
    if not role:
        return False
    return role in TEACHER_ROLES or 'Teacher' in role


def management_required(f):
    """Restricts access to users with 'School Administrator' or 'Director' roles."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            abort(401)
        if current_user.role not in ADMIN_ROLES:
            abort(403)
        return f(*args, **kwargs)
    return decorated_function


def teacher_required(f):
    """Restricts access to teachers, School Administrators and Directors."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            abort(401)
        role = str(current_user.role).strip() if current_user.role else None
        if not (is_teacher_role(role) or role in ADMIN_ROLES):
            abort(403)
        return f(*args, **kwargs)
    return decorated_function
