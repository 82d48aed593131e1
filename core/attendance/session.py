"""Máy trạng thái của phiên điểm danh: open -> completed."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .errors import (
    InvalidRecordInput,
    SessionAlreadyCompleted,
    SessionAlreadyOpen,
    SessionNotOpen,
    StudentNotEnrolled,
    UnknownSession,
)
from .matcher import FaceMatcher, MatchResult
from .models import (
    METHOD_AUTO,
    METHOD_FACE,
    METHOD_MANUAL,
    SCHEDULE_COMPLETED,
    SESSION_COMPLETED,
    AttendanceRecord,
    AttendanceSessionInfo,
    ClassRollup,
    SessionStats,
)
from .ports import AttendanceRepository
from .record_store import AttendanceRecordStore
from .roster import ClassRoster
from .stats import StatsAggregator


class AttendanceSessionManager:
    """Owns the lifecycle of attendance sessions.

    Every write goes through the injected persistence port, whose uniqueness
    constraints serialize concurrent requests on the same session, so this
    class keeps no in-process state or locks.
    """

    def __init__(
        self,
        *,
        db: AttendanceRepository,
        roster: ClassRoster,
        record_store: AttendanceRecordStore,
        matcher: Optional[FaceMatcher] = None,
        stats: Optional[StatsAggregator] = None,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._db = db
        self._roster = roster
        self._records = record_store
        self._matcher = matcher or FaceMatcher()
        self._stats = stats or StatsAggregator()
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------
    def get_session(self, session_id: int) -> AttendanceSessionInfo:
        row = self._db.get_session_by_id(session_id)
        if not row:
            raise UnknownSession(f"Session {session_id} not found", session_id=session_id)
        return AttendanceSessionInfo.from_row(row)

    def _require_open(self, session_id: int) -> AttendanceSessionInfo:
        session = self.get_session(session_id)
        if not session.is_open:
            raise SessionNotOpen(
                f"Session {session_id} is {session.status}",
                session_id=session_id,
                status=session.status,
            )
        return session

    def list_sessions(self, class_id: int, status: Optional[str] = None) -> List[AttendanceSessionInfo]:
        self._roster.get_class(class_id)
        return [AttendanceSessionInfo.from_row(row) for row in self._db.list_sessions_for_class(class_id, status)]

    def list_records(self, session_id: int) -> List[AttendanceRecord]:
        self.get_session(session_id)
        return self._records.list_by_session(session_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def open(self, class_id: int, session_number: int, title: Optional[str] = None,
             notes: Optional[str] = None) -> int:
        class_info = self._roster.get_class(class_id)
        scheduled = class_info.find_session(session_number)
        if scheduled is None:
            raise UnknownSession(
                f"Session {session_number} is not in the schedule of class {class_id}",
                class_id=class_id,
                session_number=session_number,
            )
        if self._db.get_open_session(class_id, session_number):
            raise SessionAlreadyOpen(
                f"Session {session_number} of class {class_id} is already open",
                class_id=class_id,
                session_number=session_number,
            )
        if scheduled.status == SCHEDULE_COMPLETED:
            raise SessionAlreadyCompleted(
                f"Session {session_number} of class {class_id} is already completed",
                class_id=class_id,
                session_number=session_number,
            )

        # Chỉ mục unique một phần trong DB chặn hai phiên mở khi có tranh chấp
        session_id = self._db.create_attendance_session(
            class_id=class_id,
            session_number=session_number,
            session_date=scheduled.session_date.isoformat(),
            opened_at=self._clock(),
            title=title,
            notes=notes,
        )
        self._logger.info(
            "[Attendance] Opened session %s (class %s, #%s)", session_id, class_id, session_number
        )
        return session_id

    def record_presence(
        self,
        session_id: int,
        student_id: str,
        match_result: Optional[MatchResult] = None,
        present: bool = True,
        note: Optional[str] = None,
    ) -> AttendanceRecord:
        session = self._require_open(session_id)
        if self._roster.get_profile(session.class_id, student_id) is None:
            raise StudentNotEnrolled(
                f"Student {student_id} is not enrolled in class {session.class_id}",
                student_id=student_id,
                class_id=session.class_id,
            )

        if match_result is not None:
            if not match_result.accepted:
                raise InvalidRecordInput("A rejected match cannot be recorded")
            if match_result.student_id != student_id:
                raise InvalidRecordInput(
                    f"Match result belongs to {match_result.student_id}, not {student_id}"
                )
            record = self._records.upsert(
                session_id, student_id, present=True, method=METHOD_FACE,
                match_confidence=match_result.confidence, note=note,
            )
        else:
            record = self._records.upsert(
                session_id, student_id, present=bool(present), method=METHOD_MANUAL, note=note,
            )

        self._logger.info(
            "[Attendance] Session %s: %s marked %s (%s)",
            session_id, student_id, 'present' if record.present else 'absent', record.method,
        )
        return record

    def recognize(self, session_id: int, probe) -> Tuple[MatchResult, Optional[AttendanceRecord]]:
        """Identify ``probe`` within the class roster and record presence on a match."""
        session = self._require_open(session_id)
        result = self._matcher.match(probe, self._roster.profiles(session.class_id))
        if not result.accepted:
            self._logger.info(
                "[Attendance] Session %s: no match (best distance %.4f)", session_id, result.distance
            )
            return result, None
        return result, self.record_presence(session_id, result.student_id, match_result=result)

    def verify_and_record(self, session_id: int, student_id: str,
                          probe) -> Tuple[MatchResult, Optional[AttendanceRecord]]:
        """Record ``student_id`` only if ``probe`` matches that student best."""
        session = self._require_open(session_id)
        profiles = self._roster.profiles(session.class_id)
        if not any(p.student_id == student_id for p in profiles):
            raise StudentNotEnrolled(
                f"Student {student_id} is not enrolled in class {session.class_id}",
                student_id=student_id,
                class_id=session.class_id,
            )
        result = self._matcher.match(probe, profiles)
        if not result.accepted or result.student_id != student_id:
            rejected = MatchResult(
                accepted=False,
                student_id=result.student_id,
                distance=result.distance,
                threshold=result.threshold,
                candidates=result.candidates,
            )
            return rejected, None
        return result, self.record_presence(session_id, student_id, match_result=result)

    def complete(self, session_id: int) -> SessionStats:
        """Close the session and persist its stats snapshot atomically."""
        self._require_open(session_id)

        def summarize(records: List[Dict[str, Any]], roster_ids: Sequence[str]) -> SessionStats:
            enrolled = set(roster_ids)
            relevant = [r for r in records if r['student_id'] in enrolled]
            return self._stats.session_stats(relevant, len(enrolled))

        # complete_session kiểm tra lại trạng thái bên trong transaction
        stats = self._db.complete_session(
            session_id, summarize, closed_at=self._clock(), absent_method=METHOD_AUTO,
        )
        self._logger.info(
            "[Attendance] Completed session %s: %s/%s present (%.2f%%)",
            session_id, stats.present_count, stats.total_students, stats.attendance_rate,
        )
        return stats

    # ------------------------------------------------------------------
    # Thống kê lớp
    # ------------------------------------------------------------------
    def class_stats(self, class_id: int) -> ClassRollup:
        class_info = self._roster.get_class(class_id)
        completed = [
            AttendanceSessionInfo.from_row(row)
            for row in self._db.list_sessions_for_class(class_id, SESSION_COMPLETED)
        ]
        records = self._db.list_records_for_class(class_id, SESSION_COMPLETED)
        return self._stats.class_rollup(
            class_info,
            self._roster.profiles(class_id),
            [s.id for s in completed],
            records,
            session_stats=[s.stats for s in completed if s.stats is not None],
        )
