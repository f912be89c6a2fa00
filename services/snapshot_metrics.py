"""
Metric aggregators for student progress snapshots.

Every function here is a pure fold over a list of activity records (plain
dicts, see ``DailyActivity.to_record``). Nothing reads the clock or the
database; the reference time for homework classification is passed in.

Malformed numeric fields are recovered locally: hours count as zero, ratings,
levels and quality scores are ignored. A record whose ``date`` cannot be read
is fatal and raises ``MalformedRecordError``.
"""

import logging
import math
from collections.abc import Hashable, Mapping
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from .exceptions import MalformedRecordError

logger = logging.getLogger(__name__)

PRESENT = 'PRESENT'
ABSENT = 'ABSENT'
LATE = 'LATE'
HALF_DAY = 'HALF_DAY'
EXCUSED = 'EXCUSED'
ATTENDANCE_STATUSES = (PRESENT, ABSENT, LATE, HALF_DAY, EXCUSED)

# Statuses counted as attended for rates and streaks
PRESENT_STATUSES = (PRESENT, LATE)

COMPLETE = 'COMPLETE'
PARTIAL = 'PARTIAL'
NOT_DONE = 'NOT_DONE'

UNKNOWN_SUBJECT = 'unknown'
STABLE_TREND = 'STABLE'

STRONG_SUBJECT_THRESHOLD = 80
WEAK_SUBJECT_THRESHOLD = 50

# Skill -> snapshot field
RECOGNIZED_SKILLS = {
    'reading': 'current_reading_level',
    'writing': 'current_writing_level',
    'listening': 'current_listening_level',
    'speaking': 'current_speaking_level',
    'critical_thinking': 'current_critical_thinking',
}

# Keys a skill may be rated under in ``skills_snapshot``, first match wins
SKILL_KEYS = {
    'critical_thinking': ('criticalThinking', 'critical_thinking'),
}


def round_one(value):
    """Round half-up to one decimal place and return a float."""
    return float(Decimal(str(value)).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def _to_number(value):
    """Return ``value`` as a float, or None when it is missing or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(Decimal(str(value).strip()))
        except (InvalidOperation, ValueError):
            return None
    return number if math.isfinite(number) else None


def _mean(values):
    return round_one(sum(values) / len(values)) if values else 0.0


def _items(record, field):
    """Mapping entries of a list field; anything else is dropped."""
    value = record.get(field)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def to_naive_utc(moment):
    """Convert an aware datetime to naive UTC; naive values are taken as UTC already."""
    if moment.tzinfo is not None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def parse_record_date(value):
    """Return the calendar day of an activity record date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
        except ValueError:
            pass
    raise MalformedRecordError(f"Unparsable activity date: {value!r}")


def parse_due_date(value):
    """
    Return a naive UTC datetime for a homework due date, or None when it
    cannot be read. Date-only values mean midnight of that day.
    """
    if value is None or value == '':
        return None
    parsed = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            parsed = None
    if parsed is None:
        logger.warning(f"Ignoring unparsable homework due date: {value!r}")
        return None
    return to_naive_utc(parsed)


def prepare_records(records, student_id=None):
    """
    Validate raw activity records and return copies sorted ascending by day.

    The store gives no ordering guarantee, so the sort happens here. The
    input records are left untouched.
    """
    prepared = []
    for record in records:
        if not isinstance(record, Mapping):
            raise MalformedRecordError(f"Activity record is not a mapping: {record!r}", student_id)
        try:
            day = parse_record_date(record.get('date'))
        except MalformedRecordError as e:
            e.student_id = student_id
            raise
        copy = dict(record)
        copy['date'] = day
        prepared.append(copy)
    prepared.sort(key=lambda r: r['date'])
    return prepared


def attendance_metrics(records):
    """Present/absent day counts, total hours and the attendance rate."""
    present_days = sum(1 for r in records if r.get('attendance_status') in PRESENT_STATUSES)
    absent_days = sum(1 for r in records if r.get('attendance_status') == ABSENT)
    total_hours = sum(_to_number(r.get('total_hours_spent')) or 0.0 for r in records)
    rate = round_one(present_days / len(records) * 100) if records else 0.0
    return {
        'present_days': present_days,
        'absent_days': absent_days,
        'total_hours': round_one(total_hours),
        'attendance_rate': rate,
    }


def streak_metrics(records):
    """
    Attendance and homework streaks over records sorted ascending by date.

    A homework day only counts when it has completed-homework entries and all
    of them are COMPLETE; any other day resets the homework streak.
    """
    attendance_streak = 0
    longest_attendance = 0
    homework_streak = 0

    for record in records:
        if record.get('attendance_status') in PRESENT_STATUSES:
            attendance_streak += 1
            longest_attendance = max(longest_attendance, attendance_streak)
        else:
            attendance_streak = 0

        completed = _items(record, 'homework_completed')
        if completed and all(hw.get('completion_status') == COMPLETE for hw in completed):
            homework_streak += 1
        else:
            homework_streak = 0

    return {
        'current_attendance_streak': attendance_streak,
        'longest_attendance_streak': longest_attendance,
        'current_homework_streak': homework_streak,
    }


def homework_metrics(records, now):
    """
    Completion rate, average quality and pending/overdue counts.

    ``now`` is the reference time, aware or naive UTC; due dates strictly
    after it are pending, strictly before it overdue. With nothing assigned
    the completion rate is 100.
    """
    now = to_naive_utc(now)
    assigned_total = 0
    completed_count = 0
    pending = 0
    overdue = 0
    qualities = []

    for record in records:
        assigned = record.get('homework_assigned')
        if isinstance(assigned, list):
            assigned_total += len(assigned)
        for hw in _items(record, 'homework_assigned'):
            due = parse_due_date(hw.get('due_date'))
            if due is None:
                continue
            if due > now:
                pending += 1
            elif due < now:
                overdue += 1

        for hw in _items(record, 'homework_completed'):
            if hw.get('completion_status') == COMPLETE:
                completed_count += 1
            quality = _to_number(hw.get('quality'))
            if quality:
                qualities.append(quality)

    completion_rate = round_one(completed_count / assigned_total * 100) if assigned_total else 100.0
    return {
        'assigned_total': assigned_total,
        'completed_count': completed_count,
        'completion_rate': completion_rate,
        'average_quality': _mean(qualities),
        'pending_count': pending,
        'overdue_count': overdue,
    }


def _field_mean(records, field):
    values = [_to_number(r.get(field)) for r in records]
    return _mean([v for v in values if v is not None])


def behavior_metrics(records):
    """Behavior, participation and discipline means plus the punctuality rate."""
    punctual = sum(1 for r in records if r.get('punctuality') is True)
    return {
        'behavior_rating': _field_mean(records, 'behavior_rating'),
        'participation_level': _field_mean(records, 'participation_level'),
        'discipline_score': _field_mean(records, 'discipline_score'),
        'punctuality_rate': round_one(punctual / len(records) * 100) if records else 0.0,
    }


def _skill_rating(skills, skill):
    for key in SKILL_KEYS.get(skill, (skill,)):
        rating = _to_number(skills.get(key))
        if rating is not None:
            return rating
    return None


def skill_metrics(records):
    """Average of each recognized skill over the records that rate it."""
    values = {skill: [] for skill in RECOGNIZED_SKILLS}
    for record in records:
        skills = record.get('skills_snapshot')
        if not isinstance(skills, Mapping):
            continue
        for skill in RECOGNIZED_SKILLS:
            rating = _skill_rating(skills, skill)
            if rating is not None:
                values[skill].append(rating)
    return {skill: _mean(ratings) for skill, ratings in values.items()}


def subject_performance(records):
    """
    Per-subject percentage from understanding levels (scaled x20) and
    assessment results, plus the strongest and weakest subject ids.

    Subjects with no observations score 0 and are left out of both lists.
    """
    subjects = {}

    def entry(item):
        key = item.get('subject_id') or UNKNOWN_SUBJECT
        if not isinstance(key, Hashable):
            logger.warning(f"Ignoring unusable subject id: {key!r}")
            key = UNKNOWN_SUBJECT
        if key not in subjects:
            subjects[key] = {'name': None, 'observations': []}
        if subjects[key]['name'] is None and item.get('subject_name'):
            subjects[key]['name'] = item['subject_name']
        return subjects[key]

    for record in records:
        for studied in _items(record, 'subjects_studied'):
            subject = entry(studied)
            level = _to_number(studied.get('understanding_level'))
            if level:
                subject['observations'].append(level * 20)

        for assessment in _items(record, 'assessments_taken'):
            subject = entry(assessment)
            total = _to_number(assessment.get('total_marks'))
            if total is not None and total > 0:
                obtained = _to_number(assessment.get('marks_obtained')) or 0.0
                subject['observations'].append(obtained / total * 100)

    performance = []
    for key, subject in subjects.items():
        performance.append({
            'subject_id': key,
            'name': subject['name'] or str(key),
            'percentage': _mean(subject['observations']),
            'trend': STABLE_TREND,
        })

    strongest = [s['subject_id'] for s in performance if s['percentage'] >= STRONG_SUBJECT_THRESHOLD]
    weakest = [s['subject_id'] for s in performance if 0 < s['percentage'] < WEAK_SUBJECT_THRESHOLD]
    return performance, strongest, weakest
