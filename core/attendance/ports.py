"""Persistence port required by the attendance engine.

The SQLite implementation lives in ``database.DatabaseManager``; anything that
provides these methods together with the uniqueness guarantees below can be
injected instead:

* at most one record per ``(session_id, student_id)``;
* at most one open session per ``(class_id, session_number)``;
* a session number that already has a completed session cannot be opened again;
* ``replace_schedule`` refuses (``ScheduleLocked``) once the class has sessions;
* ``complete_session`` is atomic.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from .models import SessionStats

Row = Dict[str, Any]
Summarizer = Callable[[List[Row], Sequence[str]], SessionStats]


class AttendanceRepository(Protocol):
    # Lớp học & lịch học
    def create_class_with_schedule(self, name: str, start_date: str, total_sessions: int,
                                   max_absences: int, schedule: Sequence[Row],
                                   code: Optional[str] = None) -> int: ...

    def get_class(self, class_id: int) -> Optional[Row]: ...

    def get_schedule(self, class_id: int) -> List[Row]: ...

    def replace_schedule(self, class_id: int, schedule: Sequence[Row]) -> None: ...

    def count_sessions_for_class(self, class_id: int) -> int: ...

    # Sinh viên
    def add_student_profile(self, class_id: int, student_id: str, full_name: str,
                            descriptor: Optional[bytes], image_path: Optional[str] = None) -> int: ...

    def get_student_profile(self, class_id: int, student_id: str) -> Optional[Row]: ...

    def get_class_students(self, class_id: int) -> List[Row]: ...

    # Phiên điểm danh
    def create_attendance_session(self, class_id: int, session_number: int, session_date: str,
                                  opened_at: datetime, title: Optional[str] = None,
                                  notes: Optional[str] = None) -> int: ...

    def get_session_by_id(self, session_id: int) -> Optional[Row]: ...

    def get_open_session(self, class_id: int, session_number: int) -> Optional[Row]: ...

    def list_sessions_for_class(self, class_id: int, status: Optional[str] = None) -> List[Row]: ...

    def complete_session(self, session_id: int, summarize: Summarizer, closed_at: datetime,
                         absent_method: Optional[str] = None) -> SessionStats: ...

    # Bản ghi điểm danh
    def upsert_attendance_record(self, session_id: int, student_id: str, present: bool,
                                 method: str, record_time: datetime,
                                 match_confidence: Optional[float] = None,
                                 note: Optional[str] = None) -> Optional[Row]: ...

    def get_attendance_record(self, session_id: int, student_id: str) -> Optional[Row]: ...

    def list_records_for_session(self, session_id: int) -> List[Row]: ...

    def list_records_for_class(self, class_id: int, status: Optional[str] = None) -> List[Row]: ...
