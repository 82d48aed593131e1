"""Shared fixtures: a throwaway SQLite database and the wired engine services."""
from datetime import datetime, timedelta

import numpy as np
import pytest

from app import create_app
from core.attendance import (
    AttendanceRecordStore,
    AttendanceSessionManager,
    ClassRoster,
    FaceMatcher,
    ScheduleGenerator,
    StatsAggregator,
)
from database import DatabaseManager


def descriptor(offset=0.0, index=0, length=128):
    """Vector 0 với một thành phần dịch đi ``offset`` (khoảng cách tới vector 0 = offset)."""
    values = np.zeros(length)
    values[index] = offset
    return values.tolist()


class FakeClock:
    def __init__(self, start=datetime(2024, 1, 1, 8, 0, 0)):
        self.now = start

    def __call__(self):
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture
def db(tmp_path):
    return DatabaseManager(db_path=tmp_path / 'attendance.db')


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def services(db, clock):
    schedule_generator = ScheduleGenerator(db)
    roster = ClassRoster(db, schedule_generator)
    record_store = AttendanceRecordStore(db, clock=clock)
    manager = AttendanceSessionManager(
        db=db,
        roster=roster,
        record_store=record_store,
        matcher=FaceMatcher(),
        stats=StatsAggregator(),
        clock=clock,
    )
    return {
        'db': db,
        'schedule': schedule_generator,
        'roster': roster,
        'records': record_store,
        'manager': manager,
    }


@pytest.fixture
def roster(services):
    return services['roster']


@pytest.fixture
def manager(services):
    return services['manager']


@pytest.fixture
def class_info(roster):
    return roster.create_class('Lập trình Python', '2024-01-01', 10, code='PY101')


@pytest.fixture
def enrolled(roster, class_info):
    """Ba sinh viên: S1 ở gốc, S2 và S3 nằm xa trên các trục khác."""
    roster.enroll_student(class_info.id, 'S1', descriptor(), full_name='Nguyễn Văn A')
    roster.enroll_student(class_info.id, 'S2', descriptor(1.0, index=1), full_name='Trần Thị B')
    roster.enroll_student(class_info.id, 'S3', descriptor(1.0, index=2), full_name='Lê Văn C')
    return ['S1', 'S2', 'S3']


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'DATABASE_PATH': str(tmp_path / 'api.db'),
        'LOG_DIR': str(tmp_path / 'logs'),
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
