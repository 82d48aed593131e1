"""
Attendance session & face-match engine
Engine phiên điểm danh và so khớp khuôn mặt
"""
from .errors import (
    AttendanceError,
    EmptyRoster,
    InputValidationError,
    InvalidDescriptor,
    InvalidRecordInput,
    InvalidScheduleInput,
    NotFoundError,
    ScheduleLocked,
    SessionAlreadyCompleted,
    SessionAlreadyOpen,
    SessionNotOpen,
    StateConflictError,
    StorageError,
    StudentNotEnrolled,
    UnknownClass,
    UnknownSession,
)
from .matcher import FaceMatcher, MatchResult
from .record_store import AttendanceRecordStore
from .roster import ClassRoster
from .schedule import ScheduleGenerator
from .session import AttendanceSessionManager
from .stats import StatsAggregator

__all__ = [
    'AttendanceError',
    'EmptyRoster',
    'InputValidationError',
    'InvalidDescriptor',
    'InvalidRecordInput',
    'InvalidScheduleInput',
    'NotFoundError',
    'ScheduleLocked',
    'SessionAlreadyCompleted',
    'SessionAlreadyOpen',
    'SessionNotOpen',
    'StateConflictError',
    'StorageError',
    'StudentNotEnrolled',
    'UnknownClass',
    'UnknownSession',
    'FaceMatcher',
    'MatchResult',
    'AttendanceRecordStore',
    'ClassRoster',
    'ScheduleGenerator',
    'AttendanceSessionManager',
    'StatsAggregator',
]
