from datetime import date, timedelta

import pytest

from app import create_app
from config import TestingConfig
from extensions import db as _db
from models import User, Student, TeacherStaff, Class, Enrollment, DailyActivity


class FakeStore:
    """In-memory activity store keyed by student and class ids."""

    def __init__(self, records=None, enrollments=None):
        self.records = records or {}
        self.enrollments = enrollments or {}

    def list_activity_records(self, student_id):
        return list(self.records.get(student_id, []))

    def list_currently_enrolled_student_ids(self, class_id):
        return list(self.enrollments.get(class_id, []))


def activity(day, status='PRESENT', **fields):
    """Build an activity record dict for the snapshot engine."""
    record = {
        'date': day,
        'attendance_status': status,
        'total_hours_spent': 6,
        'subjects_studied': [],
        'homework_assigned': [],
        'homework_completed': [],
        'assessments_taken': [],
        'behavior_rating': None,
        'participation_level': None,
        'discipline_score': None,
        'punctuality': True,
        'skills_snapshot': None,
    }
    record.update(fields)
    return record


def days(count, start=date(2024, 9, 2)):
    return [start + timedelta(days=i) for i in range(count)]


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def make_student(db):
    counter = {'n': 0}

    def _make(first_name='Ada', last_name='Lovelace'):
        counter['n'] += 1
        student = Student(first_name=first_name, last_name=last_name,
                          grade_level=7, student_id=f'ST{counter["n"]:04d}')
        db.session.add(student)
        db.session.commit()
        return student
    return _make


@pytest.fixture
def make_user(db):
    def _make(username, role, student=None, teacher=None):
        user = User(username=username, role=role,
                    student_id=student.id if student else None,
                    teacher_staff_id=teacher.id if teacher else None)
        user.set_password('password123')
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def make_teacher(db, make_user):
    def _make(username='mr_faraday', role='Science Teacher'):
        teacher = TeacherStaff(first_name='Michael', last_name='Faraday')
        db.session.add(teacher)
        db.session.commit()
        user = make_user(username, role, teacher=teacher)
        return teacher, user
    return _make


@pytest.fixture
def make_class(db):
    def _make(name='Physics 7A', teacher=None, is_active=True):
        class_obj = Class(name=name, subject='Physics',
                          teacher_id=teacher.id if teacher else None, is_active=is_active)
        db.session.add(class_obj)
        db.session.commit()
        return class_obj
    return _make


@pytest.fixture
def enroll(db):
    def _enroll(student, class_obj, is_active=True):
        enrollment = Enrollment(student_id=student.id, class_id=class_obj.id, is_active=is_active)
        db.session.add(enrollment)
        db.session.commit()
        return enrollment
    return _enroll


@pytest.fixture
def add_activity(db):
    """Persist a DailyActivity row from the same fields ``activity`` takes."""
    def _add(student, day, status='PRESENT', **fields):
        record = activity(day, status, **fields)
        row = DailyActivity(
            student_id=student.id,
            date=day,
            attendance_status=status,
            total_hours_spent=record['total_hours_spent'],
            behavior_rating=record['behavior_rating'],
            participation_level=record['participation_level'],
            discipline_score=record['discipline_score'],
            punctuality=record['punctuality'],
        )
        for field in ('subjects_studied', 'homework_assigned', 'homework_completed', 'assessments_taken',
                      'skills_snapshot'):
            row.set_json(field, record[field])
        db.session.add(row)
        db.session.commit()
        return row
    return _add


@pytest.fixture
def login(client):
    def _login(user):
        with client.session_transaction() as sess:
            sess['_user_id'] = str(user.id)
            sess['_fresh'] = True
    return _login