"""Lỗi nghiệp vụ của engine điểm danh.

Every error carries a stable ``code`` so the web layer can map it to an HTTP
status without string matching.
"""
from __future__ import annotations


class AttendanceError(Exception):
    """Base class for all attendance engine errors."""

    code = 'attendance_error'

    def __init__(self, message: str = '', **details) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self):
        payload = {'error': self.code, 'message': self.message}
        if self.details:
            payload['details'] = dict(self.details)
        return payload


# ----------------------------------------------------------------------
# Input validation
# ----------------------------------------------------------------------
class InputValidationError(AttendanceError):
    code = 'invalid_input'


class InvalidScheduleInput(InputValidationError):
    code = 'invalid_schedule_input'


class InvalidDescriptor(InputValidationError):
    code = 'invalid_descriptor'


class EmptyRoster(InputValidationError):
    code = 'empty_roster'


class InvalidRecordInput(InputValidationError):
    code = 'invalid_record_input'


# ----------------------------------------------------------------------
# Lookups
# ----------------------------------------------------------------------
class NotFoundError(AttendanceError):
    code = 'not_found'


class UnknownClass(NotFoundError):
    code = 'unknown_class'


class UnknownSession(NotFoundError):
    code = 'unknown_session'


# ----------------------------------------------------------------------
# State conflicts
# ----------------------------------------------------------------------
class StateConflictError(AttendanceError):
    code = 'state_conflict'


class SessionAlreadyOpen(StateConflictError):
    code = 'session_already_open'


class SessionAlreadyCompleted(StateConflictError):
    code = 'session_already_completed'


class SessionNotOpen(StateConflictError):
    code = 'session_not_open'


class StudentNotEnrolled(StateConflictError):
    code = 'student_not_enrolled'


class ScheduleLocked(StateConflictError):
    code = 'schedule_locked'


class DuplicateClass(StateConflictError):
    code = 'duplicate_class'


class DuplicateStudent(StateConflictError):
    code = 'duplicate_student'


# ----------------------------------------------------------------------
# Storage
# ----------------------------------------------------------------------
class StorageError(AttendanceError):
    """The persistence layer failed; never tolerated silently."""

    code = 'storage_error'
