"""
Configuration constants và settings
"""
import os

# Flask
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
MAX_CONTENT_LENGTH = 2 * 1024 * 1024  # 2MB, payload chỉ là JSON

# Database
DATABASE_PATH = os.getenv('DATABASE_PATH', 'attendance_system.db')
SQLITE_TIMEOUT_SECONDS = float(os.getenv('SQLITE_TIMEOUT_SECONDS', '5'))

# Logging
LOG_DIR = os.getenv('LOG_DIR', 'logs')
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

# Face matching
FACE_MATCH_THRESHOLD = float(os.getenv('FACE_MATCH_THRESHOLD', '0.6'))
DESCRIPTOR_LENGTH = int(os.getenv('DESCRIPTOR_LENGTH', '128'))

# Lịch học & ngưỡng cấm thi
SESSION_CADENCE_DAYS = max(1, int(os.getenv('SESSION_CADENCE_DAYS', '7')))
MAX_ABSENCE_PERCENT = int(os.getenv('MAX_ABSENCE_PERCENT', '20'))


def as_dict():
    """Giá trị mặc định cho app.config (có thể ghi đè khi tạo app)."""
    return {
        'SECRET_KEY': SECRET_KEY,
        'MAX_CONTENT_LENGTH': MAX_CONTENT_LENGTH,
        'DATABASE_PATH': DATABASE_PATH,
        'SQLITE_TIMEOUT_SECONDS': SQLITE_TIMEOUT_SECONDS,
        'LOG_DIR': LOG_DIR,
        'LOG_LEVEL': LOG_LEVEL,
        'FACE_MATCH_THRESHOLD': FACE_MATCH_THRESHOLD,
        'DESCRIPTOR_LENGTH': DESCRIPTOR_LENGTH,
        'SESSION_CADENCE_DAYS': SESSION_CADENCE_DAYS,
        'MAX_ABSENCE_PERCENT': MAX_ABSENCE_PERCENT,
    }
