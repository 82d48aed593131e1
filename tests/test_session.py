import pytest

from conftest import descriptor
from core.attendance import (
    EmptyRoster,
    FaceMatcher,
    InvalidRecordInput,
    SessionAlreadyCompleted,
    SessionAlreadyOpen,
    SessionNotOpen,
    StudentNotEnrolled,
    UnknownClass,
    UnknownSession,
)
from core.attendance.models import METHOD_AUTO, METHOD_FACE, METHOD_MANUAL, SCHEDULE_COMPLETED


def test_open_session(manager, class_info):
    session_id = manager.open(class_info.id, 1, title='Buổi 1')
    session = manager.get_session(session_id)

    assert session.is_open
    assert session.session_number == 1
    assert session.session_date.isoformat() == '2024-01-01'
    assert session.title == 'Buổi 1'
    assert session.stats is None


def test_open_same_session_twice(manager, class_info):
    manager.open(class_info.id, 1)
    with pytest.raises(SessionAlreadyOpen):
        manager.open(class_info.id, 1)


def test_different_sessions_can_be_open_together(manager, class_info):
    first = manager.open(class_info.id, 1)
    second = manager.open(class_info.id, 2)
    assert first != second


def test_open_unknown_class_or_session_number(manager, class_info):
    with pytest.raises(UnknownClass):
        manager.open(999, 1)
    with pytest.raises(UnknownSession):
        manager.open(class_info.id, 11)


def test_completed_session_cannot_be_reopened(manager, class_info, enrolled):
    session_id = manager.open(class_info.id, 1)
    manager.complete(session_id)

    with pytest.raises(SessionAlreadyCompleted):
        manager.open(class_info.id, 1)


def test_manual_presence(manager, class_info, enrolled):
    session_id = manager.open(class_info.id, 1)

    record = manager.record_presence(session_id, 'S2', present=False, note='Đi muộn')

    assert record.present is False
    assert record.method == METHOD_MANUAL
    assert record.note == 'Đi muộn'


def test_presence_for_student_outside_roster(manager, class_info, enrolled):
    session_id = manager.open(class_info.id, 1)
    with pytest.raises(StudentNotEnrolled):
        manager.record_presence(session_id, 'X99')


def test_presence_on_unknown_session(manager):
    with pytest.raises(UnknownSession):
        manager.record_presence(42, 'S1')


def test_recognize_records_face_presence(manager, class_info, enrolled):
    session_id = manager.open(class_info.id, 1)

    result, record = manager.recognize(session_id, descriptor(0.3))

    assert result.accepted and result.student_id == 'S1'
    assert record.method == METHOD_FACE
    assert record.match_confidence == pytest.approx(0.7)
    assert len(manager.list_records(session_id)) == 1


def test_recognize_no_match_records_nothing(manager, class_info, enrolled):
    session_id = manager.open(class_info.id, 1)

    # 0.65 từ S1, xa hơn nữa từ S2 và S3
    result, record = manager.recognize(session_id, descriptor(0.65))

    assert not result.accepted
    assert record is None
    assert manager.list_records(session_id) == []


def test_recognize_with_empty_roster(manager, class_info):
    session_id = manager.open(class_info.id, 1)
    with pytest.raises(EmptyRoster):
        manager.recognize(session_id, descriptor())


def test_recognize_twice_keeps_one_record(manager, class_info, enrolled):
    session_id = manager.open(class_info.id, 1)

    _, first = manager.recognize(session_id, descriptor(0.2))
    _, second = manager.recognize(session_id, descriptor(0.1))

    assert len(manager.list_records(session_id)) == 1
    assert second.record_time == first.record_time
    assert second.match_confidence == pytest.approx(0.9)


def test_verify_and_record_rejects_other_student(manager, class_info, enrolled):
    session_id = manager.open(class_info.id, 1)

    result, record = manager.verify_and_record(session_id, 'S2', descriptor(0.1))

    assert not result.accepted
    assert record is None
    assert manager.list_records(session_id) == []


def test_verify_and_record_accepts_matching_student(manager, class_info, enrolled):
    session_id = manager.open(class_info.id, 1)

    result, record = manager.verify_and_record(session_id, 'S2', descriptor(0.9, index=1))

    assert result.accepted
    assert record.student_id == 'S2'
    assert record.method == METHOD_FACE


def test_match_result_must_belong_to_student(manager, class_info, enrolled):
    session_id = manager.open(class_info.id, 1)
    result = FaceMatcher().match(descriptor(), [('S1', descriptor())])

    with pytest.raises(InvalidRecordInput):
        manager.record_presence(session_id, 'S2', match_result=result)

    rejected = FaceMatcher().match(descriptor(0.9), [('S1', descriptor())])
    with pytest.raises(InvalidRecordInput):
        manager.record_presence(session_id, 'S1', match_result=rejected)


def test_complete_snapshots_stats(roster, manager, class_info, enrolled):
    roster.enroll_student(class_info.id, 'S4', descriptor(1.0, index=3))
    roster.enroll_student(class_info.id, 'S5', descriptor(1.0, index=4))
    session_id = manager.open(class_info.id, 1)
    for student_id in ('S1', 'S2', 'S3'):
        manager.record_presence(session_id, student_id)

    stats = manager.complete(session_id)

    assert stats.total_students == 5
    assert stats.present_count == 3
    assert stats.absent_count == 2
    assert stats.attendance_rate == 60.0

    session = manager.get_session(session_id)
    assert not session.is_open
    assert session.closed_at is not None
    assert session.stats == stats
    assert roster.get_class(class_info.id).find_session(1).status == SCHEDULE_COMPLETED


def test_complete_writes_absent_records_for_missing_students(manager, class_info, enrolled):
    session_id = manager.open(class_info.id, 1)
    manager.record_presence(session_id, 'S1')

    manager.complete(session_id)

    records = {r.student_id: r for r in manager.list_records(session_id)}
    assert set(records) == {'S1', 'S2', 'S3'}
    assert records['S1'].present
    assert records['S2'].method == METHOD_AUTO and not records['S2'].present


def test_second_complete_leaves_snapshot_unchanged(manager, class_info, enrolled):
    session_id = manager.open(class_info.id, 1)
    manager.record_presence(session_id, 'S1')
    first = manager.complete(session_id)

    with pytest.raises(SessionNotOpen):
        manager.complete(session_id)

    assert manager.get_session(session_id).stats == first


def test_records_frozen_after_complete(manager, class_info, enrolled):
    session_id = manager.open(class_info.id, 1)
    manager.complete(session_id)

    with pytest.raises(SessionNotOpen):
        manager.record_presence(session_id, 'S1')
    with pytest.raises(SessionNotOpen):
        manager.recognize(session_id, descriptor())


def test_class_stats_flags_banned_students(manager, class_info, enrolled):
    # S1 có mặt mọi buổi, S2 vắng 3 buổi, S3 vắng 2 buổi
    for number in range(1, 6):
        session_id = manager.open(class_info.id, number)
        manager.record_presence(session_id, 'S1')
        if number > 3:
            manager.record_presence(session_id, 'S2')
        if number > 2:
            manager.record_presence(session_id, 'S3')
        manager.complete(session_id)
    manager.open(class_info.id, 6)

    rollup = manager.class_stats(class_info.id)

    by_id = {s.student_id: s for s in rollup.students}
    assert rollup.completed_sessions == 5
    assert rollup.max_absences == 2
    assert by_id['S1'].total_absences == 0
    assert by_id['S2'].total_absences == 3 and by_id['S2'].is_banned
    assert by_id['S3'].total_absences == 2 and not by_id['S3'].is_banned


def test_list_sessions_filters_by_status(manager, class_info, enrolled):
    done = manager.open(class_info.id, 1)
    manager.complete(done)
    manager.open(class_info.id, 2)

    assert [s.session_number for s in manager.list_sessions(class_info.id)] == [1, 2]
    assert [s.id for s in manager.list_sessions(class_info.id, status='completed')] == [done]


def test_open_refused_when_session_completes_concurrently(monkeypatch, services, manager, class_info, enrolled):
    """Phiên bị đóng giữa lúc kiểm tra và INSERT vẫn không được mở lại."""
    db = services['db']
    first = manager.open(class_info.id, 1)
    original = db.get_open_session

    def complete_then_lookup(class_id, session_number):
        manager.complete(first)
        return original(class_id, session_number)

    monkeypatch.setattr(db, 'get_open_session', complete_then_lookup)
    with pytest.raises(SessionAlreadyCompleted):
        manager.open(class_info.id, 1)

    rollup = manager.class_stats(class_info.id)
    assert rollup.completed_sessions == 1
    assert [s.total_absences for s in rollup.students] == [1, 1, 1]
