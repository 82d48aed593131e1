from datetime import date, datetime

import pytest

from core.attendance import InvalidScheduleInput, ScheduleGenerator, ScheduleLocked, UnknownClass
from core.attendance.models import SCHEDULE_PENDING


def test_weekly_schedule_from_start_date():
    schedule = ScheduleGenerator().build('2024-01-01', 4)

    assert [entry.session_number for entry in schedule] == [1, 2, 3, 4]
    assert [entry.session_date for entry in schedule] == [
        date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22),
    ]
    assert all(entry.status == SCHEDULE_PENDING for entry in schedule)


def test_build_accepts_date_and_datetime():
    by_date = ScheduleGenerator().build(date(2024, 2, 26), 2)
    by_datetime = ScheduleGenerator().build(datetime(2024, 2, 26, 9, 30), 2)

    # Qua ngày nhuận 29/02
    assert by_date[1].session_date == date(2024, 3, 4)
    assert by_date == by_datetime


def test_single_session_schedule():
    schedule = ScheduleGenerator().build('2024-05-06', 1)
    assert len(schedule) == 1
    assert schedule[0].session_date == date(2024, 5, 6)


@pytest.mark.parametrize('count', [0, -3, 'abc', None, True, 2.5])
def test_invalid_session_count(count):
    with pytest.raises(InvalidScheduleInput):
        ScheduleGenerator().build('2024-01-01', count)


@pytest.mark.parametrize('start', ['2024-13-01', 'not-a-date', None, 20240101])
def test_invalid_start_date(start):
    with pytest.raises(InvalidScheduleInput):
        ScheduleGenerator().build(start, 3)


def test_schedule_past_max_date_is_rejected():
    with pytest.raises(InvalidScheduleInput):
        ScheduleGenerator().build('9999-12-01', 10)


def test_class_creation_persists_schedule(roster, class_info, db):
    stored = db.get_schedule(class_info.id)

    assert len(stored) == 10
    assert stored[0]['session_date'] == '2024-01-01'
    assert stored[-1]['session_date'] == '2024-03-04'
    assert class_info.max_absences == 2


def test_regenerate_before_any_session(services, class_info):
    schedule = services['schedule'].regenerate(class_info.id)
    assert len(schedule) == 10
    assert services['roster'].get_class(class_info.id).schedule == schedule


def test_regenerate_locked_after_session_opened(services, class_info):
    services['manager'].open(class_info.id, 1)

    with pytest.raises(ScheduleLocked):
        services['schedule'].regenerate(class_info.id)


def test_regenerate_unknown_class(services):
    with pytest.raises(UnknownClass):
        services['schedule'].regenerate(999)


def test_regenerate_locked_when_session_opens_concurrently(monkeypatch, services, class_info):
    db = services['db']
    services['manager'].open(class_info.id, 1)
    # Lượt đếm ở tầng service đọc trước khi phiên được mở
    monkeypatch.setattr(db, 'count_sessions_for_class', lambda class_id: 0)

    with pytest.raises(ScheduleLocked):
        services['schedule'].regenerate(class_info.id)
    assert len(db.get_schedule(class_info.id)) == 10
