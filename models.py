import json
from datetime import datetime

from flask import current_app
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from extensions import db


def _load_json(raw, default, owner=None):
    """Decode a JSON text column, falling back to ``default`` on bad data."""
    if raw is None or raw == '':
        return default
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        current_app.logger.warning(f"Could not parse JSON column for {owner}: {raw!r}")
        return default


class User(db.Model, UserMixin):
    """
    Login account for every kind of user (students, teachers, administrators).
    """
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(50), nullable=False)  # e.g., 'Student', 'Math Teacher', 'Director'

    # Links the account to a student or staff record.
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=True)
    teacher_staff_id = db.Column(db.Integer, db.ForeignKey('teacher_staff.id'), nullable=True)

    email = db.Column(db.String(120), unique=True, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"User('{self.username}', '{self.role}')"


class Student(db.Model):
    """
    Model for storing student information.
    """
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    grade_level = db.Column(db.Integer)
    student_id = db.Column(db.String(50), nullable=True, unique=True)  # Admission number

    user = db.relationship('User', backref='student_profile', uselist=False)
    progress_snapshot = db.relationship('StudentProgressSnapshot', backref='student', uselist=False, lazy=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"Student('{self.first_name} {self.last_name}')"


class TeacherStaff(db.Model):
    """
    Model for storing teacher and staff information.
    """
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)

    user = db.relationship('User', backref='teacher_staff_profile', uselist=False)

    def __repr__(self):
        return f"TeacherStaff('{self.first_name} {self.last_name}')"


class Class(db.Model):
    """
    A classroom; its active enrollments form the cohort used for bulk recomputation.
    """
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    subject = db.Column(db.String(100), nullable=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey('teacher_staff.id'), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    teacher = db.relationship('TeacherStaff', backref='primary_classes', lazy=True)

    def __repr__(self):
        return f"Class('{self.name}')"


class Enrollment(db.Model):
    """
    Model for tracking student enrollment in classes.
    """
    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey('class.id'), nullable=False)
    enrolled_at = db.Column(db.DateTime, default=datetime.utcnow)
    is_active = db.Column(db.Boolean, default=True)
    dropped_at = db.Column(db.DateTime, nullable=True)

    student = db.relationship('Student', backref='enrollments')
    class_info = db.relationship('Class', backref='enrollments')

    def __repr__(self):
        return f"Enrollment(Student: {self.student_id}, Class: {self.class_id})"


class DailyActivity(db.Model):
    """
    One day of recorded activity for a student. List and map fields are stored
    as JSON text; ``to_record`` returns the plain dict the snapshot engine reads.
    """
    __tablename__ = 'daily_activity'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    attendance_status = db.Column(db.String(16), nullable=False)  # PRESENT, ABSENT, LATE, HALF_DAY, EXCUSED
    total_hours_spent = db.Column(db.Float, default=0.0)

    # JSON lists: [{"subject_id": ..., "subject_name": ..., "understanding_level": 1-5}, ...]
    subjects_studied = db.Column(db.Text, nullable=True)
    # JSON lists: [{"subject_id": ..., "due_date": ..., "completion_status": ..., "quality": 1-5}, ...]
    homework_assigned = db.Column(db.Text, nullable=True)
    homework_completed = db.Column(db.Text, nullable=True)
    # JSON list: [{"subject_id": ..., "marks_obtained": ..., "total_marks": ...}, ...]
    assessments_taken = db.Column(db.Text, nullable=True)

    behavior_rating = db.Column(db.Integer, nullable=True)
    participation_level = db.Column(db.Integer, nullable=True)
    discipline_score = db.Column(db.Integer, nullable=True)
    punctuality = db.Column(db.Boolean, default=False)
    skills_snapshot = db.Column(db.Text, nullable=True)  # JSON object, skill name -> 1-5

    recorded_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    student = db.relationship('Student', backref='daily_activities')

    # One record per student per day
    __table_args__ = (db.UniqueConstraint('student_id', 'date', name='uq_daily_activity_student_date'),)

    def set_json(self, field, value):
        setattr(self, field, json.dumps(value) if value is not None else None)

    def to_record(self):
        owner = f"daily_activity {self.id}"
        return {
            'student_id': self.student_id,
            'date': self.date,
            'attendance_status': self.attendance_status,
            'total_hours_spent': self.total_hours_spent,
            'subjects_studied': _load_json(self.subjects_studied, [], owner),
            'homework_assigned': _load_json(self.homework_assigned, [], owner),
            'homework_completed': _load_json(self.homework_completed, [], owner),
            'assessments_taken': _load_json(self.assessments_taken, [], owner),
            'behavior_rating': self.behavior_rating,
            'participation_level': self.participation_level,
            'discipline_score': self.discipline_score,
            'punctuality': bool(self.punctuality),
            'skills_snapshot': _load_json(self.skills_snapshot, None, owner),
        }

    def __repr__(self):
        return f"DailyActivity(Student: {self.student_id}, Date: {self.date}, Status: {self.attendance_status})"


class StudentProgressSnapshot(db.Model):
    """
    Cached, derived progress profile. Exactly one row per student, replaced
    wholesale on every recomputation.
    """
    __tablename__ = 'student_progress_snapshot'

    JSON_FIELDS = (
        'subject_wise_performance', 'strongest_subjects', 'weakest_subjects',
        'flagged_subjects', 'attention_reasons',
    )

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id'), nullable=False, unique=True)
    last_activity_date = db.Column(db.Date, nullable=True)

    # Streaks
    current_attendance_streak = db.Column(db.Integer, default=0, nullable=False)
    longest_attendance_streak = db.Column(db.Integer, default=0, nullable=False)
    current_homework_streak = db.Column(db.Integer, default=0, nullable=False)

    # Totals
    total_days_attended = db.Column(db.Integer, default=0, nullable=False)
    total_days_absent = db.Column(db.Integer, default=0, nullable=False)
    total_hours_studied = db.Column(db.Float, default=0.0, nullable=False)
    overall_attendance_rate = db.Column(db.Float, default=0.0, nullable=False)

    # Subjects (JSON)
    subject_wise_performance = db.Column(db.Text, nullable=True)
    strongest_subjects = db.Column(db.Text, nullable=True)
    weakest_subjects = db.Column(db.Text, nullable=True)
    flagged_subjects = db.Column(db.Text, nullable=True)

    # Homework
    overall_homework_completion_rate = db.Column(db.Float, default=100.0, nullable=False)
    average_homework_quality = db.Column(db.Float, default=0.0, nullable=False)
    pending_homework_count = db.Column(db.Integer, default=0, nullable=False)
    overdue_homework_count = db.Column(db.Integer, default=0, nullable=False)

    # Behavior
    average_behavior_rating = db.Column(db.Float, default=0.0, nullable=False)
    average_participation = db.Column(db.Float, default=0.0, nullable=False)
    average_discipline = db.Column(db.Float, default=0.0, nullable=False)
    punctuality_rate = db.Column(db.Float, default=0.0, nullable=False)

    # Skills
    current_reading_level = db.Column(db.Float, default=0.0, nullable=False)
    current_writing_level = db.Column(db.Float, default=0.0, nullable=False)
    current_listening_level = db.Column(db.Float, default=0.0, nullable=False)
    current_speaking_level = db.Column(db.Float, default=0.0, nullable=False)
    current_critical_thinking = db.Column(db.Float, default=0.0, nullable=False)

    # Risk
    risk_level = db.Column(db.String(16), default='LOW', nullable=False, index=True)
    risk_score = db.Column(db.Integer, default=0, nullable=False)
    needs_attention = db.Column(db.Boolean, default=False, nullable=False, index=True)
    attention_reasons = db.Column(db.Text, nullable=True)
    intervention_required = db.Column(db.Boolean, default=False, nullable=False)

    # Metadata
    last_calculated_at = db.Column(db.DateTime, nullable=True)
    next_calculation_due = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def apply(self, fields):
        """Overwrite every derived field from a computed snapshot dict."""
        for name, value in fields.items():
            if name in self.JSON_FIELDS:
                value = json.dumps(value)
            setattr(self, name, value)

    def get_list(self, field):
        return _load_json(getattr(self, field), [], f"snapshot {self.id}")

    @property
    def reasons(self):
        return self.get_list('attention_reasons')

    def to_dict(self):
        return {
            'student_id': self.student_id,
            'last_activity_date': self.last_activity_date.isoformat() if self.last_activity_date else None,
            'current_attendance_streak': self.current_attendance_streak,
            'longest_attendance_streak': self.longest_attendance_streak,
            'current_homework_streak': self.current_homework_streak,
            'total_days_attended': self.total_days_attended,
            'total_days_absent': self.total_days_absent,
            'total_hours_studied': self.total_hours_studied,
            'overall_attendance_rate': self.overall_attendance_rate,
            'subject_wise_performance': self.get_list('subject_wise_performance'),
            'strongest_subjects': self.get_list('strongest_subjects'),
            'weakest_subjects': self.get_list('weakest_subjects'),
            'flagged_subjects': self.get_list('flagged_subjects'),
            'overall_homework_completion_rate': self.overall_homework_completion_rate,
            'average_homework_quality': self.average_homework_quality,
            'pending_homework_count': self.pending_homework_count,
            'overdue_homework_count': self.overdue_homework_count,
            'average_behavior_rating': self.average_behavior_rating,
            'average_participation': self.average_participation,
            'average_discipline': self.average_discipline,
            'punctuality_rate': self.punctuality_rate,
            'current_reading_level': self.current_reading_level,
            'current_writing_level': self.current_writing_level,
            'current_listening_level': self.current_listening_level,
            'current_speaking_level': self.current_speaking_level,
            'current_critical_thinking': self.current_critical_thinking,
            'risk_level': self.risk_level,
            'risk_score': self.risk_score,
            'needs_attention': self.needs_attention,
            'attention_reasons': self.reasons,
            'intervention_required': self.intervention_required,
            'last_calculated_at': self.last_calculated_at.isoformat() if self.last_calculated_at else None,
            'next_calculation_due': self.next_calculation_due.isoformat() if self.next_calculation_due else None,
        }

    def __repr__(self):
        return f"StudentProgressSnapshot(Student: {self.student_id}, Risk: {self.risk_level})"


class Notification(db.Model):
    """
    Model for storing per-user notifications (students, teachers, etc.).
    """
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    type = db.Column(db.String(32), nullable=False)  # e.g., 'risk_alert', 'announcement'
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    link = db.Column(db.String(500), nullable=True)  # Optional URL for more info/action
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)
    is_read = db.Column(db.Boolean, default=False)

    user = db.relationship('User', backref='notifications', lazy=True)

    def __repr__(self):
        return f"Notification(User: {self.user_id}, Type: {self.type}, Title: {self.title})"

