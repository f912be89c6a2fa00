from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import activity, days
from services.exceptions import MalformedRecordError
from services.snapshot_metrics import (
    attendance_metrics,
    behavior_metrics,
    homework_metrics,
    parse_due_date,
    prepare_records,
    round_one,
    skill_metrics,
    streak_metrics,
    subject_performance,
    to_naive_utc,
)

NOW = datetime(2024, 9, 10, 12, 0, 0)


def records_with_statuses(statuses):
    return [activity(day, status) for day, status in zip(days(len(statuses)), statuses)]


def test_round_one_rounds_half_up():
    assert round_one(2.25) == 2.3
    assert round_one(0.05) == 0.1
    assert round_one(200 / 3) == 66.7
    assert round_one(0) == 0.0


def test_attendance_rate_counts_present_and_late():
    """Eight attended days out of ten gives 80%."""
    statuses = ['PRESENT'] * 5 + ['LATE'] * 3 + ['ABSENT'] * 2
    metrics = attendance_metrics(records_with_statuses(statuses))

    assert metrics['present_days'] == 8
    assert metrics['absent_days'] == 2
    assert metrics['attendance_rate'] == 80.0
    assert metrics['total_hours'] == 60.0


def test_attendance_rate_is_zero_without_records():
    metrics = attendance_metrics([])
    assert metrics == {'present_days': 0, 'absent_days': 0, 'total_hours': 0.0, 'attendance_rate': 0.0}


def test_half_day_and_excused_are_neither_present_nor_absent():
    metrics = attendance_metrics(records_with_statuses(['HALF_DAY', 'EXCUSED', 'PRESENT']))
    assert metrics['present_days'] == 1
    assert metrics['absent_days'] == 0
    assert metrics['attendance_rate'] == 33.3


def test_invalid_hours_count_as_zero():
    records = [
        activity(date(2024, 9, 2), total_hours_spent='abc'),
        activity(date(2024, 9, 3), total_hours_spent=None),
        activity(date(2024, 9, 4), total_hours_spent='2.5'),
    ]
    assert attendance_metrics(records)['total_hours'] == 2.5


def test_attendance_streaks():
    records = records_with_statuses(['PRESENT', 'LATE', 'PRESENT', 'ABSENT', 'PRESENT'])
    streaks = streak_metrics(records)
    assert streaks['current_attendance_streak'] == 1
    assert streaks['longest_attendance_streak'] == 3


@pytest.mark.parametrize('statuses', [
    [],
    ['ABSENT'],
    ['PRESENT', 'PRESENT', 'ABSENT', 'PRESENT', 'PRESENT', 'PRESENT'],
    ['LATE', 'EXCUSED', 'LATE', 'LATE'],
])
def test_current_streak_never_exceeds_longest(statuses):
    streaks = streak_metrics(records_with_statuses(statuses))
    assert streaks['current_attendance_streak'] <= streaks['longest_attendance_streak']


def test_homework_streak_resets_on_days_without_completed_homework():
    done = [{'subject_id': 'math', 'completion_status': 'COMPLETE'}]
    partial = [{'subject_id': 'math', 'completion_status': 'COMPLETE'},
               {'subject_id': 'sci', 'completion_status': 'PARTIAL'}]
    d = days(6)

    records = [
        activity(d[0], homework_completed=done),
        activity(d[1], homework_completed=done),
        activity(d[2], homework_completed=[]),
        activity(d[3], homework_completed=done),
    ]
    assert streak_metrics(records)['current_homework_streak'] == 1

    records.append(activity(d[4], homework_completed=done))
    assert streak_metrics(records)['current_homework_streak'] == 2

    records.append(activity(d[5], homework_completed=partial))
    assert streak_metrics(records)['current_homework_streak'] == 0


def test_homework_rate_is_full_when_nothing_assigned():
    metrics = homework_metrics(records_with_statuses(['PRESENT', 'ABSENT']), NOW)
    assert metrics['completion_rate'] == 100.0
    assert metrics['average_quality'] == 0.0
    assert homework_metrics([], NOW)['completion_rate'] == 100.0


def test_homework_completion_quality_and_due_dates():
    assigned = [
        {'subject_id': 'math', 'due_date': '2024-09-11'},
        {'subject_id': 'math', 'due_date': '2024-09-01T08:00:00Z'},
        {'subject_id': 'sci', 'due_date': NOW.isoformat()},
        {'subject_id': 'sci'},
        {'subject_id': 'art', 'due_date': 'next tuesday'},
    ]
    completed = [
        {'subject_id': 'math', 'completion_status': 'COMPLETE', 'quality': 4},
        {'subject_id': 'math', 'completion_status': 'COMPLETE', 'quality': 5},
        {'subject_id': 'sci', 'completion_status': 'PARTIAL', 'quality': 3},
    ]
    records = [activity(date(2024, 9, 2), homework_assigned=assigned, homework_completed=completed)]

    metrics = homework_metrics(records, NOW)

    assert metrics['assigned_total'] == 5
    assert metrics['completed_count'] == 2
    assert metrics['completion_rate'] == 40.0
    assert metrics['average_quality'] == 4.0
    # due exactly at NOW is neither pending nor overdue
    assert metrics['pending_count'] == 1
    assert metrics['overdue_count'] == 1


def test_homework_rate_does_not_increase_with_more_not_done_items():
    assigned = [{'subject_id': 'math'} for _ in range(4)]
    completed = [{'subject_id': 'math', 'completion_status': 'COMPLETE'}]
    previous = None
    for extra in range(4):
        items = completed + [{'subject_id': 'math', 'completion_status': 'NOT_DONE'}] * extra
        rate = homework_metrics(
            [activity(date(2024, 9, 2), homework_assigned=assigned, homework_completed=items)], NOW
        )['completion_rate']
        if previous is not None:
            assert rate <= previous
        previous = rate


def test_parse_due_date_normalizes_to_naive_utc():
    assert parse_due_date('2024-09-11T10:00:00+02:00') == datetime(2024, 9, 11, 8, 0, 0)
    assert parse_due_date(date(2024, 9, 11)) == datetime(2024, 9, 11)
    assert parse_due_date('') is None
    assert parse_due_date('soon') is None


def test_behavior_means_ignore_missing_and_invalid_values():
    d = days(4)
    records = [
        activity(d[0], behavior_rating=4, participation_level=3, discipline_score=5, punctuality=True),
        activity(d[1], behavior_rating=None, participation_level=4, punctuality=False),
        activity(d[2], behavior_rating='x', punctuality=True),
        activity(d[3], behavior_rating=5, punctuality=None),
    ]
    metrics = behavior_metrics(records)

    assert metrics['behavior_rating'] == 4.5
    assert metrics['participation_level'] == 3.5
    assert metrics['discipline_score'] == 5.0
    assert metrics['punctuality_rate'] == 50.0


def test_behavior_defaults_to_zero():
    assert behavior_metrics([]) == {
        'behavior_rating': 0.0,
        'participation_level': 0.0,
        'discipline_score': 0.0,
        'punctuality_rate': 0.0,
    }


def test_skill_averages_only_over_rated_records():
    d = days(3)
    records = [
        activity(d[0], skills_snapshot={'reading': 3, 'criticalThinking': 5}),
        activity(d[1], skills_snapshot={'reading': 4, 'juggling': 5}),
        activity(d[2], skills_snapshot=None),
    ]
    skills = skill_metrics(records)

    assert skills['reading'] == 3.5
    assert skills['critical_thinking'] == 5.0
    assert skills['writing'] == 0.0
    assert 'juggling' not in skills


def test_critical_thinking_accepts_either_spelling():
    d = days(3)
    records = [
        activity(d[0], skills_snapshot={'criticalThinking': 4, 'reading': 3}),
        activity(d[1], skills_snapshot={'critical_thinking': 2}),
        activity(d[2], skills_snapshot={'criticalThinking': 'n/a', 'critical_thinking': 3}),
    ]
    assert skill_metrics(records)['critical_thinking'] == 3.0
    assert skill_metrics(records[:1])['critical_thinking'] == 4.0


def test_subject_performance_combines_understanding_and_assessments():
    d = days(2)
    records = [
        activity(d[0], subjects_studied=[
            {'subject_id': 'math', 'subject_name': 'Mathematics', 'understanding_level': 4},
            {'subject_id': 'sci', 'understanding_level': 2},
            {'subject_id': 'art', 'understanding_level': None},
        ]),
        activity(d[1], assessments_taken=[
            {'subject_id': 'math', 'marks_obtained': 45, 'total_marks': 50},
            {'subject_id': 'sci', 'marks_obtained': 10, 'total_marks': 0},
            {'marks_obtained': 30, 'total_marks': 100},
        ]),
    ]
    performance, strongest, weakest = subject_performance(records)
    by_id = {s['subject_id']: s for s in performance}

    assert by_id['math'] == {'subject_id': 'math', 'name': 'Mathematics', 'percentage': 85.0, 'trend': 'STABLE'}
    assert by_id['sci']['percentage'] == 40.0
    assert by_id['sci']['name'] == 'sci'
    assert by_id['art']['percentage'] == 0.0
    assert by_id['unknown']['percentage'] == 30.0

    assert strongest == ['math']
    assert weakest == ['sci', 'unknown']


def test_subject_without_observations_is_never_strong_or_weak():
    records = [activity(date(2024, 9, 2), subjects_studied=[{'subject_id': 'art'}])]
    performance, strongest, weakest = subject_performance(records)

    assert performance[0]['percentage'] == 0.0
    assert 'art' not in strongest
    assert 'art' not in weakest


def test_prepare_records_sorts_copies():
    raw = [activity('2024-09-04'), activity(date(2024, 9, 2)), activity(datetime(2024, 9, 3, 9, 30))]
    prepared = prepare_records(raw, student_id=7)

    assert [r['date'] for r in prepared] == [date(2024, 9, 2), date(2024, 9, 3), date(2024, 9, 4)]
    assert raw[0]['date'] == '2024-09-04'


def test_prepare_records_rejects_unparsable_date():
    with pytest.raises(MalformedRecordError) as excinfo:
        prepare_records([activity(date(2024, 9, 2)), activity('not-a-date')], student_id=7)
    assert excinfo.value.student_id == 7


def test_prepare_records_rejects_non_mapping_records():
    with pytest.raises(MalformedRecordError):
        prepare_records(['2024-09-02'], student_id=7)


def test_subject_with_unusable_id_is_counted_as_unknown():
    records = [activity(date(2024, 9, 2), subjects_studied=[
        {'subject_id': ['math', 'sci'], 'understanding_level': 2},
        {'subject_id': {'id': 'art'}, 'understanding_level': 4},
    ])]
    performance, strongest, weakest = subject_performance(records)

    assert performance == [{'subject_id': 'unknown', 'name': 'unknown', 'percentage': 60.0, 'trend': 'STABLE'}]
    assert strongest == []
    assert weakest == []


def test_homework_due_dates_compare_against_aware_now():
    assigned = [
        {'subject_id': 'math', 'due_date': '2024-09-05'},
        {'subject_id': 'math', 'due_date': '2024-09-11T10:00:00+02:00'},
    ]
    records = [activity(date(2024, 9, 2), homework_assigned=assigned)]
    aware_now = datetime(2024, 9, 10, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))

    metrics = homework_metrics(records, aware_now)

    assert metrics['overdue_count'] == 1
    assert metrics['pending_count'] == 1


def test_to_naive_utc():
    aware = datetime(2024, 9, 10, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
    assert to_naive_utc(aware) == datetime(2024, 9, 10, 12, 0, 0)
    assert to_naive_utc(NOW) is NOW
