"""Các thực thể của engine điểm danh (dataclasses)."""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

DESCRIPTOR_LENGTH = 128
MAX_ABSENCE_PERCENT = 20

SCHEDULE_PENDING = 'pending'
SCHEDULE_COMPLETED = 'completed'

SESSION_OPEN = 'open'
SESSION_COMPLETED = 'completed'

METHOD_FACE = 'face'
METHOD_MANUAL = 'manual'
METHOD_AUTO = 'auto'
RECORD_METHODS = (METHOD_FACE, METHOD_MANUAL, METHOD_AUTO)


def compute_max_absences(total_sessions: int, percent: int = MAX_ABSENCE_PERCENT) -> int:
    """ceil(total_sessions * percent / 100) without float rounding surprises."""
    return -(-int(total_sessions) * int(percent) // 100)


def _parse_date(value) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class ScheduledSession:
    session_number: int
    session_date: date
    status: str = SCHEDULE_PENDING

    @classmethod
    def from_row(cls, row) -> 'ScheduledSession':
        row = dict(row)
        return cls(
            session_number=int(row['session_number']),
            session_date=_parse_date(row['session_date']),
            status=row.get('status') or SCHEDULE_PENDING,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_number': self.session_number,
            'session_date': _iso(self.session_date),
            'status': self.status,
        }


@dataclass
class ClassInfo:
    id: int
    name: str
    start_date: date
    total_sessions: int
    max_absences: int
    code: Optional[str] = None
    created_at: Optional[datetime] = None
    schedule: List[ScheduledSession] = field(default_factory=list)

    @classmethod
    def from_row(cls, row, schedule: Sequence[ScheduledSession] = ()) -> 'ClassInfo':
        row = dict(row)
        return cls(
            id=int(row['id']),
            name=row['name'],
            start_date=_parse_date(row['start_date']),
            total_sessions=int(row['total_sessions']),
            max_absences=int(row['max_absences']),
            code=row.get('code'),
            created_at=_parse_datetime(row.get('created_at')),
            schedule=list(schedule),
        )

    def find_session(self, session_number: int) -> Optional[ScheduledSession]:
        for entry in self.schedule:
            if entry.session_number == session_number:
                return entry
        return None

    def to_dict(self, include_schedule: bool = True) -> Dict[str, Any]:
        payload = {
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'start_date': _iso(self.start_date),
            'total_sessions': self.total_sessions,
            'max_absences': self.max_absences,
            'created_at': _iso(self.created_at),
        }
        if include_schedule:
            payload['schedule'] = [entry.to_dict() for entry in self.schedule]
        return payload


@dataclass
class StudentFaceProfile:
    student_id: str
    descriptor: Optional[List[float]] = None
    full_name: str = ''
    image_path: Optional[str] = None
    descriptor_length: int = DESCRIPTOR_LENGTH

    @property
    def has_valid_descriptor(self) -> bool:
        if self.descriptor is None or len(self.descriptor) != self.descriptor_length:
            return False
        try:
            return all(math.isfinite(float(v)) for v in self.descriptor)
        except (TypeError, ValueError):
            return False

    def to_dict(self) -> Dict[str, Any]:
        # Descriptor không trả về cho client
        return {
            'student_id': self.student_id,
            'full_name': self.full_name,
            'image_path': self.image_path,
            'has_descriptor': self.has_valid_descriptor,
        }


@dataclass
class SessionStats:
    total_students: int = 0
    present_count: int = 0
    absent_count: int = 0
    attendance_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AttendanceSessionInfo:
    id: int
    class_id: int
    session_number: int
    status: str = SESSION_OPEN
    session_date: Optional[date] = None
    opened_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    title: Optional[str] = None
    notes: Optional[str] = None
    stats: Optional[SessionStats] = None

    @property
    def is_open(self) -> bool:
        return self.status == SESSION_OPEN

    @classmethod
    def from_row(cls, row) -> 'AttendanceSessionInfo':
        row = dict(row)
        stats = None
        if row.get('status') == SESSION_COMPLETED:
            stats = SessionStats(
                total_students=int(row.get('total_students') or 0),
                present_count=int(row.get('present_count') or 0),
                absent_count=int(row.get('absent_count') or 0),
                attendance_rate=float(row.get('attendance_rate') or 0.0),
            )
        return cls(
            id=int(row['id']),
            class_id=int(row['class_id']),
            session_number=int(row['session_number']),
            status=row['status'],
            session_date=_parse_date(row.get('session_date')),
            opened_at=_parse_datetime(row.get('opened_at')),
            closed_at=_parse_datetime(row.get('closed_at')),
            title=row.get('title'),
            notes=row.get('notes'),
            stats=stats,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'class_id': self.class_id,
            'session_number': self.session_number,
            'status': self.status,
            'session_date': _iso(self.session_date),
            'opened_at': _iso(self.opened_at),
            'closed_at': _iso(self.closed_at),
            'title': self.title,
            'notes': self.notes,
            'stats': self.stats.to_dict() if self.stats else None,
        }


@dataclass
class AttendanceRecord:
    session_id: int
    student_id: str
    present: bool
    method: str = METHOD_MANUAL
    record_time: Optional[datetime] = None
    match_confidence: Optional[float] = None
    note: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> 'AttendanceRecord':
        row = dict(row)
        confidence = row.get('match_confidence')
        return cls(
            session_id=int(row['session_id']),
            student_id=row['student_id'],
            present=bool(row['present']),
            method=row.get('method') or METHOD_MANUAL,
            record_time=_parse_datetime(row.get('record_time')),
            match_confidence=float(confidence) if confidence is not None else None,
            note=row.get('note'),
            updated_at=_parse_datetime(row.get('updated_at')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'student_id': self.student_id,
            'present': self.present,
            'method': self.method,
            'record_time': _iso(self.record_time),
            'match_confidence': self.match_confidence,
            'note': self.note,
            'updated_at': _iso(self.updated_at),
        }


@dataclass
class StudentRollup:
    student_id: str
    full_name: str = ''
    present_count: int = 0
    total_absences: int = 0
    attendance_rate: float = 0.0
    is_banned: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ClassRollup:
    class_id: int
    total_sessions: int
    max_absences: int
    completed_sessions: int = 0
    average_attendance_rate: float = 0.0
    students: List[StudentRollup] = field(default_factory=list)

    @property
    def banned_students(self) -> List[StudentRollup]:
        return [s for s in self.students if s.is_banned]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'class_id': self.class_id,
            'total_sessions': self.total_sessions,
            'max_absences': self.max_absences,
            'completed_sessions': self.completed_sessions,
            'average_attendance_rate': self.average_attendance_rate,
            'banned_count': len(self.banned_students),
            'students': [s.to_dict() for s in self.students],
        }
