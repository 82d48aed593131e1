"""Thống kê điểm danh theo phiên và theo lớp."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Sequence, Set, Union

from .models import (
    AttendanceRecord,
    ClassInfo,
    ClassRollup,
    SessionStats,
    StudentFaceProfile,
    StudentRollup,
)

RecordLike = Union[AttendanceRecord, Mapping[str, Any]]


def _field(record: RecordLike, name: str):
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name)


def attendance_rate(present: int, total: int) -> float:
    """Phần trăm có mặt, 0 khi lớp không có sinh viên."""
    if total <= 0:
        return 0.0
    return round(present / total * 100, 2)


class StatsAggregator:
    """Stateless calculator over the record ledger."""

    def session_stats(self, records: Iterable[RecordLike], roster_size: int) -> SessionStats:
        total = max(int(roster_size), 0)
        present = sum(1 for record in records if bool(_field(record, 'present')))
        return SessionStats(
            total_students=total,
            present_count=present,
            absent_count=total - present,
            attendance_rate=attendance_rate(present, total),
        )

    def class_rollup(
        self,
        class_info: ClassInfo,
        roster: Sequence[StudentFaceProfile],
        completed_session_ids: Iterable[int],
        records: Iterable[RecordLike],
        session_stats: Sequence[SessionStats] = (),
    ) -> ClassRollup:
        completed: Set[int] = {int(sid) for sid in completed_session_ids}

        present_sessions: Dict[str, Set[int]] = {}
        for record in records:
            session_id = int(_field(record, 'session_id'))
            if session_id not in completed or not bool(_field(record, 'present')):
                continue
            present_sessions.setdefault(_field(record, 'student_id'), set()).add(session_id)

        students: List[StudentRollup] = []
        for profile in roster:
            attended = len(present_sessions.get(profile.student_id, ()))
            absences = len(completed) - attended
            students.append(StudentRollup(
                student_id=profile.student_id,
                full_name=profile.full_name,
                present_count=attended,
                total_absences=absences,
                attendance_rate=attendance_rate(attended, len(completed)),
                # Cấm thi khi số buổi vắng vượt quá ngưỡng (so sánh nghiêm ngặt)
                is_banned=absences > class_info.max_absences,
            ))

        rates = [stats.attendance_rate for stats in session_stats]
        average = round(sum(rates) / len(rates), 2) if rates else 0.0

        return ClassRollup(
            class_id=class_info.id,
            total_sessions=class_info.total_sessions,
            max_absences=class_info.max_absences,
            completed_sessions=len(completed),
            average_attendance_rate=average,
            students=students,
        )
