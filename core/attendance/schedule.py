"""Sinh lịch học theo tuần cho một lớp."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from .errors import InvalidScheduleInput, ScheduleLocked, UnknownClass
from .models import SCHEDULE_PENDING, ScheduledSession
from .ports import AttendanceRepository

DEFAULT_CADENCE_DAYS = 7


def coerce_start_date(value) -> date:
    """Accept a date, a datetime or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise InvalidScheduleInput(f"Invalid start date: {value!r}", start_date=str(value))


def coerce_session_count(value) -> int:
    if isinstance(value, bool):
        raise InvalidScheduleInput(f"Invalid session count: {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not value.lstrip('-').isdigit():
            raise InvalidScheduleInput(f"Invalid session count: {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise InvalidScheduleInput(f"Invalid session count: {value!r}")
    if value < 1:
        raise InvalidScheduleInput("Session count must be at least 1", session_count=value)
    return value


class ScheduleGenerator:
    """Builds the fixed weekly session sequence of a class."""

    def __init__(
        self,
        db: Optional[AttendanceRepository] = None,
        *,
        cadence_days: int = DEFAULT_CADENCE_DAYS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._db = db
        self._cadence = timedelta(days=max(int(cadence_days), 1))
        self._logger = logger or logging.getLogger(__name__)

    def build(self, start_date, session_count) -> List[ScheduledSession]:
        start = coerce_start_date(start_date)
        count = coerce_session_count(session_count)
        try:
            return [
                ScheduledSession(
                    session_number=number,
                    session_date=start + self._cadence * (number - 1),
                    status=SCHEDULE_PENDING,
                )
                for number in range(1, count + 1)
            ]
        except OverflowError as exc:
            raise InvalidScheduleInput("Schedule runs past the last representable date") from exc

    def regenerate(self, class_id: int) -> List[ScheduledSession]:
        """Replace the stored schedule of ``class_id``.

        Destructive: refused once any session has been opened for the class.
        """
        if self._db is None:
            raise RuntimeError("ScheduleGenerator has no database bound")
        class_row = self._db.get_class(class_id)
        if not class_row:
            raise UnknownClass(f"Class {class_id} not found", class_id=class_id)
        opened = self._db.count_sessions_for_class(class_id)
        if opened:
            raise ScheduleLocked(
                f"Class {class_id} already has {opened} attendance session(s)",
                class_id=class_id,
            )

        schedule = self.build(class_row['start_date'], class_row['total_sessions'])
        self._db.replace_schedule(class_id, [entry.to_dict() for entry in schedule])
        self._logger.info("[Schedule] Regenerated %s sessions for class %s", len(schedule), class_id)
        return schedule
