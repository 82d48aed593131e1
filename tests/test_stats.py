from datetime import date

import pytest

from core.attendance import StatsAggregator
from core.attendance.models import ClassInfo, SessionStats, StudentFaceProfile, compute_max_absences
from core.attendance.stats import attendance_rate


@pytest.mark.parametrize('total, expected', [(10, 2), (15, 3), (1, 1), (5, 1), (11, 3), (20, 4)])
def test_max_absences_is_ceiling_of_twenty_percent(total, expected):
    assert compute_max_absences(total) == expected


def test_attendance_rate():
    assert attendance_rate(3, 5) == 60.0
    assert attendance_rate(2, 3) == 66.67
    assert attendance_rate(0, 0) == 0.0


def test_session_stats_from_records():
    records = [
        {'student_id': 'S1', 'present': 1},
        {'student_id': 'S2', 'present': 1},
        {'student_id': 'S3', 'present': 1},
        {'student_id': 'S4', 'present': 0},
    ]
    stats = StatsAggregator().session_stats(records, roster_size=5)

    assert stats == SessionStats(total_students=5, present_count=3, absent_count=2, attendance_rate=60.0)


def test_session_stats_empty_roster():
    stats = StatsAggregator().session_stats([], roster_size=0)
    assert stats.attendance_rate == 0.0
    assert stats.absent_count == 0


def _class(total_sessions=10):
    return ClassInfo(
        id=1,
        name='Cấu trúc dữ liệu',
        start_date=date(2024, 1, 1),
        total_sessions=total_sessions,
        max_absences=compute_max_absences(total_sessions),
    )


def test_rollup_bans_only_above_max_absences():
    roster = [StudentFaceProfile('S1', full_name='A'), StudentFaceProfile('S2', full_name='B')]
    sessions = [1, 2, 3, 4, 5]
    # S1 vắng 3 buổi (1, 2, 3), S2 vắng 2 buổi (1, 2)
    records = (
        [{'session_id': sid, 'student_id': 'S1', 'present': sid > 3} for sid in sessions]
        + [{'session_id': sid, 'student_id': 'S2', 'present': sid > 2} for sid in sessions]
    )

    rollup = StatsAggregator().class_rollup(_class(10), roster, sessions, records)

    by_id = {s.student_id: s for s in rollup.students}
    assert rollup.max_absences == 2
    assert by_id['S1'].total_absences == 3
    assert by_id['S1'].is_banned
    assert by_id['S2'].total_absences == 2
    assert not by_id['S2'].is_banned
    assert [s.student_id for s in rollup.banned_students] == ['S1']


def test_rollup_counts_missing_records_as_absences():
    roster = [StudentFaceProfile('S1')]
    records = [{'session_id': 1, 'student_id': 'S1', 'present': True}]

    rollup = StatsAggregator().class_rollup(_class(10), roster, [1, 2, 3, 4], records)

    student = rollup.students[0]
    assert student.present_count == 1
    assert student.total_absences == 3
    assert student.attendance_rate == 25.0
    assert student.is_banned


def test_rollup_ignores_records_of_open_sessions():
    roster = [StudentFaceProfile('S1')]
    records = [
        {'session_id': 1, 'student_id': 'S1', 'present': True},
        {'session_id': 9, 'student_id': 'S1', 'present': True},
    ]
    rollup = StatsAggregator().class_rollup(_class(), roster, [1], records)

    assert rollup.completed_sessions == 1
    assert rollup.students[0].present_count == 1


def test_rollup_average_rate():
    stats = [SessionStats(5, 3, 2, 60.0), SessionStats(5, 4, 1, 80.0)]
    rollup = StatsAggregator().class_rollup(_class(), [], [1, 2], [], session_stats=stats)

    assert rollup.average_attendance_rate == 70.0
    assert rollup.to_dict()['banned_count'] == 0


def test_rollup_without_completed_sessions():
    rollup = StatsAggregator().class_rollup(_class(), [StudentFaceProfile('S1')], [], [])

    assert rollup.students[0].total_absences == 0
    assert rollup.students[0].attendance_rate == 0.0
    assert not rollup.students[0].is_banned
