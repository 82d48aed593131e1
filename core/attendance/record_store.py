"""Sổ ghi điểm danh: tối đa một bản ghi cho mỗi (phiên, sinh viên)."""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Callable, List, Optional

from .errors import InvalidRecordInput, SessionNotOpen
from .models import METHOD_MANUAL, RECORD_METHODS, AttendanceRecord
from .ports import AttendanceRepository


class AttendanceRecordStore:
    """Ledger facade over the persistence port. Records are never deleted."""

    def __init__(
        self,
        db: AttendanceRepository,
        *,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._db = db
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    @staticmethod
    def _validate(method: str, match_confidence: Optional[float]) -> Optional[float]:
        if method not in RECORD_METHODS:
            raise InvalidRecordInput(
                f"Unknown record method {method!r}",
                allowed=list(RECORD_METHODS),
            )
        if match_confidence is None:
            return None
        try:
            value = float(match_confidence)
        except (TypeError, ValueError) as exc:
            raise InvalidRecordInput("Match confidence must be a number") from exc
        if not math.isfinite(value) or not 0.0 <= value <= 1.0:
            raise InvalidRecordInput("Match confidence must be between 0 and 1")
        return value

    def upsert(
        self,
        session_id: int,
        student_id: str,
        present: bool,
        method: str = METHOD_MANUAL,
        match_confidence: Optional[float] = None,
        note: Optional[str] = None,
    ) -> AttendanceRecord:
        confidence = self._validate(method, match_confidence)
        row = self._db.upsert_attendance_record(
            session_id=session_id,
            student_id=student_id,
            present=bool(present),
            method=method,
            record_time=self._clock(),
            match_confidence=confidence,
            note=note,
        )
        if row is None:
            # Phiên đã đóng giữa chừng: ghi có điều kiện không thành công
            raise SessionNotOpen(f"Session {session_id} is not open", session_id=session_id)
        record = AttendanceRecord.from_row(row)
        self._logger.debug(
            "[RecordStore] session=%s student=%s present=%s method=%s",
            session_id, student_id, record.present, record.method,
        )
        return record

    def get(self, session_id: int, student_id: str) -> Optional[AttendanceRecord]:
        row = self._db.get_attendance_record(session_id, student_id)
        return AttendanceRecord.from_row(row) if row else None

    def list_by_session(self, session_id: int) -> List[AttendanceRecord]:
        return [AttendanceRecord.from_row(row) for row in self._db.list_records_for_session(session_id)]
