"""Lớp học và danh sách sinh viên (roster) đã đăng ký khuôn mặt."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from .errors import InputValidationError, UnknownClass
from .matcher import to_descriptor
from .models import (
    DESCRIPTOR_LENGTH,
    MAX_ABSENCE_PERCENT,
    ClassInfo,
    ScheduledSession,
    StudentFaceProfile,
    compute_max_absences,
)
from .ports import AttendanceRepository
from .schedule import ScheduleGenerator, coerce_session_count, coerce_start_date


def encode_descriptor(values: Sequence[float]) -> bytes:
    return np.asarray(values, dtype=np.float64).tobytes()


def decode_descriptor(blob: Optional[bytes]) -> Optional[List[float]]:
    """Giải mã BLOB; trả về None nếu dữ liệu hỏng."""
    if not blob:
        return None
    if len(blob) % np.dtype(np.float64).itemsize:
        return None
    return np.frombuffer(blob, dtype=np.float64).tolist()


def profile_from_row(row, descriptor_length: int = DESCRIPTOR_LENGTH) -> StudentFaceProfile:
    row = dict(row)
    return StudentFaceProfile(
        student_id=row['student_id'],
        full_name=row.get('full_name') or '',
        descriptor=decode_descriptor(row.get('descriptor')),
        image_path=row.get('image_path'),
        descriptor_length=descriptor_length,
    )


class ClassRoster:
    """Creates classes (with their schedule) and enrolls face profiles."""

    def __init__(
        self,
        db: AttendanceRepository,
        schedule_generator: Optional[ScheduleGenerator] = None,
        *,
        max_absence_percent: int = MAX_ABSENCE_PERCENT,
        descriptor_length: int = DESCRIPTOR_LENGTH,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._db = db
        self._schedule = schedule_generator or ScheduleGenerator(db)
        self._max_absence_percent = int(max_absence_percent)
        self._descriptor_length = int(descriptor_length)
        self._logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Lớp học
    # ------------------------------------------------------------------
    def create_class(self, name: str, start_date, total_sessions, code: Optional[str] = None) -> ClassInfo:
        name = (name or '').strip()
        if not name:
            raise InputValidationError("Class name is required")
        start = coerce_start_date(start_date)
        count = coerce_session_count(total_sessions)
        schedule = self._schedule.build(start, count)
        max_absences = compute_max_absences(count, self._max_absence_percent)

        class_id = self._db.create_class_with_schedule(
            name=name,
            start_date=start.isoformat(),
            total_sessions=count,
            max_absences=max_absences,
            schedule=[entry.to_dict() for entry in schedule],
            code=(code or '').strip() or None,
        )
        self._logger.info(
            "[Roster] Created class %s (%s): %s sessions, max %s absences",
            class_id, name, count, max_absences,
        )
        return self.get_class(class_id)

    def get_class(self, class_id: int) -> ClassInfo:
        row = self._db.get_class(class_id)
        if not row:
            raise UnknownClass(f"Class {class_id} not found", class_id=class_id)
        schedule = [ScheduledSession.from_row(r) for r in self._db.get_schedule(class_id)]
        return ClassInfo.from_row(row, schedule)

    # ------------------------------------------------------------------
    # Sinh viên
    # ------------------------------------------------------------------
    def enroll_student(
        self,
        class_id: int,
        student_id: str,
        descriptor,
        full_name: str = '',
        image_path: Optional[str] = None,
    ) -> StudentFaceProfile:
        student_id = (str(student_id) if student_id is not None else '').strip()
        if not student_id:
            raise InputValidationError("Student id is required")
        if not self._db.get_class(class_id):
            raise UnknownClass(f"Class {class_id} not found", class_id=class_id)
        vector = to_descriptor(descriptor, self._descriptor_length)

        self._db.add_student_profile(
            class_id=class_id,
            student_id=student_id,
            full_name=(full_name or '').strip() or student_id,
            descriptor=encode_descriptor(vector),
            image_path=image_path,
        )
        self._logger.info("[Roster] Enrolled %s into class %s", student_id, class_id)
        return self.get_profile(class_id, student_id)

    def get_profile(self, class_id: int, student_id: str) -> Optional[StudentFaceProfile]:
        row = self._db.get_student_profile(class_id, student_id)
        return profile_from_row(row, self._descriptor_length) if row else None

    def profiles(self, class_id: int) -> List[StudentFaceProfile]:
        return [profile_from_row(row, self._descriptor_length) for row in self._db.get_class_students(class_id)]

    def student_ids(self, class_id: int) -> List[str]:
        return [row['student_id'] for row in self._db.get_class_students(class_id)]
