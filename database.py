"""
Database module for Attendance System
Quản lý cơ sở dữ liệu SQLite cho engine điểm danh
"""

import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime
import logging

from core.attendance.errors import (
    DuplicateClass,
    DuplicateStudent,
    ScheduleLocked,
    SessionAlreadyCompleted,
    SessionAlreadyOpen,
    SessionNotOpen,
    StorageError,
    UnknownSession,
)
from core.attendance.models import SCHEDULE_COMPLETED, SESSION_COMPLETED, SESSION_OPEN
from logging_config import database_logger

logger = logging.getLogger(__name__)


def _ts(value):
    return value.isoformat() if isinstance(value, datetime) else value


class DatabaseManager:
    def __init__(self, db_path="attendance_system.db", timeout=5.0):
        self.db_path = str(db_path)
        self.timeout = float(timeout)
        self.init_database()

    def get_connection(self):
        """Tạo kết nối database (autocommit, transaction quản lý thủ công)"""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row  # Cho phép truy cập theo tên cột
        conn.execute('PRAGMA foreign_keys = ON')
        return conn

    @contextmanager
    def connection(self):
        """Kết nối chỉ đọc; lỗi sqlite được chuyển thành StorageError."""
        try:
            with closing(self.get_connection()) as conn:
                yield conn
        except sqlite3.Error as exc:
            database_logger.log_error('read', str(exc))
            raise StorageError(f"Database read failed: {exc}") from exc

    @contextmanager
    def transaction(self):
        """BEGIN IMMEDIATE ... COMMIT; rollback nếu có bất kỳ lỗi nào."""
        try:
            with closing(self.get_connection()) as conn:
                conn.execute('BEGIN IMMEDIATE')
                try:
                    yield conn.cursor()
                except BaseException:
                    conn.rollback()
                    raise
                conn.commit()
        except sqlite3.Error as exc:
            database_logger.log_error('transaction', str(exc))
            raise StorageError(f"Database transaction failed: {exc}") from exc

    def _fetchone(self, query, params=()):
        with self.connection() as conn:
            row = conn.execute(query, params).fetchone()
            return dict(row) if row else None

    def _fetchall(self, query, params=()):
        with self.connection() as conn:
            return [dict(row) for row in conn.execute(query, params).fetchall()]

    def init_database(self):
        """Khởi tạo database và các bảng"""
        with self.transaction() as cursor:
            # Bảng lớp học
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS classes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name VARCHAR(150) UNIQUE NOT NULL,
                    code VARCHAR(30),
                    start_date DATE NOT NULL,
                    total_sessions INTEGER NOT NULL CHECK (total_sessions >= 1),
                    max_absences INTEGER NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')

            # Lịch học: mỗi lớp một lịch, số buổi liên tục 1..N
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS class_schedule (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    class_id INTEGER NOT NULL,
                    session_number INTEGER NOT NULL,
                    session_date DATE NOT NULL,
                    status VARCHAR(20) NOT NULL DEFAULT 'pending',
                    UNIQUE (class_id, session_number),
                    FOREIGN KEY (class_id) REFERENCES classes(id) ON DELETE CASCADE
                )
            ''')

            # Sinh viên đăng ký trong lớp kèm descriptor khuôn mặt
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS students (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    class_id INTEGER NOT NULL,
                    student_id VARCHAR(30) NOT NULL,
                    full_name VARCHAR(100) NOT NULL,
                    descriptor BLOB,
                    image_path VARCHAR(200),
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE (class_id, student_id),
                    FOREIGN KEY (class_id) REFERENCES classes(id) ON DELETE CASCADE
                )
            ''')

            # Phiên điểm danh + snapshot thống kê khi đóng
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS attendance_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    class_id INTEGER NOT NULL,
                    session_number INTEGER NOT NULL,
                    session_date DATE,
                    status VARCHAR(20) NOT NULL DEFAULT 'open',
                    opened_at TIMESTAMP NOT NULL,
                    closed_at TIMESTAMP,
                    title VARCHAR(150),
                    notes TEXT,
                    total_students INTEGER DEFAULT 0,
                    present_count INTEGER DEFAULT 0,
                    absent_count INTEGER DEFAULT 0,
                    attendance_rate REAL DEFAULT 0,
                    FOREIGN KEY (class_id) REFERENCES classes(id)
                )
            ''')

            # Sổ điểm danh: tối đa một bản ghi cho mỗi (phiên, sinh viên)
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS attendance_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL,
                    student_id VARCHAR(30) NOT NULL,
                    present BOOLEAN NOT NULL DEFAULT 0,
                    method VARCHAR(10) NOT NULL DEFAULT 'manual',
                    match_confidence REAL,
                    note TEXT,
                    record_time TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP,
                    UNIQUE (session_id, student_id),
                    FOREIGN KEY (session_id) REFERENCES attendance_sessions(id)
                )
            ''')

            # Tối đa một phiên đang mở cho mỗi (lớp, buổi)
            cursor.execute('''
                CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_one_open
                ON attendance_sessions(class_id, session_number) WHERE status = 'open'
            ''')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_sessions_class ON attendance_sessions(class_id)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_records_session ON attendance_records(session_id)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_students_class ON students(class_id)')

        logger.info("Database initialized successfully (%s)", self.db_path)

    # === QUẢN LÝ LỚP HỌC & LỊCH HỌC ===

    def create_class_with_schedule(self, name, start_date, total_sessions, max_absences, schedule, code=None):
        """Tạo lớp và lịch học trong cùng một transaction"""
        with self.transaction() as cursor:
            try:
                cursor.execute('''
                    INSERT INTO classes (name, code, start_date, total_sessions, max_absences, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                ''', (name, code, start_date, total_sessions, max_absences, datetime.now().isoformat()))
            except sqlite3.IntegrityError as exc:
                raise DuplicateClass(f"Class {name!r} already exists", name=name) from exc
            class_id = cursor.lastrowid
            self._insert_schedule(cursor, class_id, schedule)
        database_logger.log_query('INSERT', 'classes')
        return class_id

    def _insert_schedule(self, cursor, class_id, schedule):
        cursor.executemany('''
            INSERT INTO class_schedule (class_id, session_number, session_date, status)
            VALUES (?, ?, ?, ?)
        ''', [
            (class_id, entry['session_number'], entry['session_date'], entry.get('status') or 'pending')
            for entry in schedule
        ])

    def get_class(self, class_id):
        return self._fetchone('SELECT * FROM classes WHERE id = ?', (class_id,))

    def get_schedule(self, class_id):
        return self._fetchall('''
            SELECT session_number, session_date, status FROM class_schedule
            WHERE class_id = ?
            ORDER BY session_number
        ''', (class_id,))

    def replace_schedule(self, class_id, schedule):
        """Xóa và tạo lại lịch học; từ chối nếu lớp đã có phiên điểm danh"""
        with self.transaction() as cursor:
            cursor.execute('SELECT COUNT(*) AS total FROM attendance_sessions WHERE class_id = ?', (class_id,))
            opened = cursor.fetchone()['total']
            if opened:
                raise ScheduleLocked(
                    f"Class {class_id} already has {opened} attendance session(s)",
                    class_id=class_id,
                )
            cursor.execute('DELETE FROM class_schedule WHERE class_id = ?', (class_id,))
            self._insert_schedule(cursor, class_id, schedule)

    def count_sessions_for_class(self, class_id):
        row = self._fetchone('SELECT COUNT(*) AS total FROM attendance_sessions WHERE class_id = ?', (class_id,))
        return row['total'] if row else 0

    # === QUẢN LÝ SINH VIÊN ===

    def add_student_profile(self, class_id, student_id, full_name, descriptor, image_path=None):
        with self.transaction() as cursor:
            try:
                cursor.execute('''
                    INSERT INTO students (class_id, student_id, full_name, descriptor, image_path, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                ''', (class_id, student_id, full_name, descriptor, image_path, datetime.now().isoformat()))
            except sqlite3.IntegrityError as exc:
                raise DuplicateStudent(
                    f"Student {student_id} is already enrolled in class {class_id}",
                    student_id=student_id,
                    class_id=class_id,
                ) from exc
            return cursor.lastrowid

    def get_student_profile(self, class_id, student_id):
        return self._fetchone(
            'SELECT * FROM students WHERE class_id = ? AND student_id = ?',
            (class_id, student_id),
        )

    def get_class_students(self, class_id):
        """Danh sách sinh viên theo thứ tự đăng ký (thứ tự này quyết định tie-break)"""
        return self._fetchall('SELECT * FROM students WHERE class_id = ? ORDER BY id', (class_id,))

    # === PHIÊN ĐIỂM DANH ===

    def create_attendance_session(self, class_id, session_number, session_date, opened_at,
                                  title=None, notes=None):
        """Mở phiên mới; từ chối nếu buổi này đã có phiên completed.

        Kiểm tra và INSERT nằm trong cùng transaction với complete_session.
        """
        with self.transaction() as cursor:
            try:
                cursor.execute('''
                    INSERT INTO attendance_sessions (
                        class_id, session_number, session_date, status, opened_at, title, notes
                    )
                    SELECT ?, ?, ?, ?, ?, ?, ?
                    WHERE NOT EXISTS (
                        SELECT 1 FROM attendance_sessions
                        WHERE class_id = ? AND session_number = ? AND status = ?
                    )
                ''', (class_id, session_number, session_date, SESSION_OPEN, _ts(opened_at), title, notes,
                      class_id, session_number, SESSION_COMPLETED))
            except sqlite3.IntegrityError as exc:
                raise SessionAlreadyOpen(
                    f"Session {session_number} of class {class_id} is already open",
                    class_id=class_id,
                    session_number=session_number,
                ) from exc
            if cursor.rowcount == 0:
                raise SessionAlreadyCompleted(
                    f"Session {session_number} of class {class_id} is already completed",
                    class_id=class_id,
                    session_number=session_number,
                )
            return cursor.lastrowid

    def get_session_by_id(self, session_id):
        return self._fetchone('SELECT * FROM attendance_sessions WHERE id = ?', (session_id,))

    def get_open_session(self, class_id, session_number):
        return self._fetchone('''
            SELECT * FROM attendance_sessions
            WHERE class_id = ? AND session_number = ? AND status = ?
        ''', (class_id, session_number, SESSION_OPEN))

    def list_sessions_for_class(self, class_id, status=None):
        query = ['SELECT * FROM attendance_sessions WHERE class_id = ?']
        params = [class_id]
        if status:
            query.append('AND status = ?')
            params.append(status)
        query.append('ORDER BY session_number, id')
        return self._fetchall(' '.join(query), params)

    def complete_session(self, session_id, summarize, closed_at, absent_method=None):
        """Đóng phiên: thống kê + snapshot + cập nhật lịch trong một transaction"""
        with self.transaction() as cursor:
            cursor.execute('SELECT * FROM attendance_sessions WHERE id = ?', (session_id,))
            session_row = cursor.fetchone()
            if not session_row:
                raise UnknownSession(f"Session {session_id} not found", session_id=session_id)
            if session_row['status'] != SESSION_OPEN:
                raise SessionNotOpen(
                    f"Session {session_id} is {session_row['status']}",
                    session_id=session_id,
                    status=session_row['status'],
                )

            class_id = session_row['class_id']
            cursor.execute('SELECT student_id FROM students WHERE class_id = ? ORDER BY id', (class_id,))
            roster_ids = [row['student_id'] for row in cursor.fetchall()]
            cursor.execute('SELECT * FROM attendance_records WHERE session_id = ?', (session_id,))
            records = [dict(row) for row in cursor.fetchall()]

            stats = summarize(records, roster_ids)

            if absent_method:
                recorded = {record['student_id'] for record in records}
                cursor.executemany('''
                    INSERT INTO attendance_records (
                        session_id, student_id, present, method, record_time, updated_at
                    ) VALUES (?, ?, 0, ?, ?, ?)
                ''', [
                    (session_id, student_id, absent_method, _ts(closed_at), _ts(closed_at))
                    for student_id in roster_ids if student_id not in recorded
                ])

            cursor.execute('''
                UPDATE attendance_sessions
                SET status = ?, closed_at = ?, total_students = ?, present_count = ?,
                    absent_count = ?, attendance_rate = ?
                WHERE id = ? AND status = ?
            ''', (SESSION_COMPLETED, _ts(closed_at), stats.total_students, stats.present_count,
                  stats.absent_count, stats.attendance_rate, session_id, SESSION_OPEN))
            if cursor.rowcount != 1:
                raise SessionNotOpen(f"Session {session_id} is not open", session_id=session_id)

            cursor.execute('''
                UPDATE class_schedule SET status = ?
                WHERE class_id = ? AND session_number = ?
            ''', (SCHEDULE_COMPLETED, class_id, session_row['session_number']))
            if cursor.rowcount != 1:
                raise StorageError(
                    f"Schedule entry {session_row['session_number']} of class {class_id} is missing"
                )

        database_logger.log_query('UPDATE', 'attendance_sessions')
        return stats

    # === BẢN GHI ĐIỂM DANH ===

    def upsert_attendance_record(self, session_id, student_id, present, method, record_time,
                                 match_confidence=None, note=None):
        """Ghi/cập nhật bản ghi; chỉ thực hiện khi phiên còn mở.

        Trả về None nếu phiên không còn ở trạng thái open.
        """
        now = _ts(record_time)
        with self.transaction() as cursor:
            cursor.execute('''
                INSERT INTO attendance_records (
                    session_id, student_id, present, method, match_confidence, note,
                    record_time, updated_at
                )
                SELECT ?, ?, ?, ?, ?, ?, ?, ?
                WHERE EXISTS (
                    SELECT 1 FROM attendance_sessions WHERE id = ? AND status = ?
                )
                ON CONFLICT(session_id, student_id) DO UPDATE SET
                    present = excluded.present,
                    method = excluded.method,
                    match_confidence = excluded.match_confidence,
                    note = COALESCE(excluded.note, attendance_records.note),
                    record_time = CASE
                        WHEN attendance_records.present = excluded.present
                        THEN attendance_records.record_time
                        ELSE excluded.record_time
                    END,
                    updated_at = excluded.updated_at
            ''', (session_id, student_id, 1 if present else 0, method, match_confidence, note,
                  now, now, session_id, SESSION_OPEN))
            if cursor.rowcount == 0:
                return None
            cursor.execute('''
                SELECT * FROM attendance_records WHERE session_id = ? AND student_id = ?
            ''', (session_id, student_id))
            row = cursor.fetchone()
            return dict(row) if row else None

    def get_attendance_record(self, session_id, student_id):
        return self._fetchone('''
            SELECT * FROM attendance_records WHERE session_id = ? AND student_id = ?
        ''', (session_id, student_id))

    def list_records_for_session(self, session_id):
        return self._fetchall('''
            SELECT * FROM attendance_records WHERE session_id = ? ORDER BY record_time, id
        ''', (session_id,))

    def list_records_for_class(self, class_id, status=None):
        query = ['''
            SELECT ar.* FROM attendance_records ar
            JOIN attendance_sessions ast ON ar.session_id = ast.id
            WHERE ast.class_id = ?
        ''']
        params = [class_id]
        if status:
            query.append('AND ast.status = ?')
            params.append(status)
        query.append('ORDER BY ast.session_number, ar.id')
        return self._fetchall(' '.join(query), params)
