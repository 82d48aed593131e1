"""
Global state module
Các service singleton, được khởi tạo trong app/__init__.py
"""

database = None
schedule_generator = None
face_matcher = None
class_roster = None
record_store = None
stats_aggregator = None
session_manager = None


def reset():
    """Xóa tham chiếu service (dùng khi tạo lại app trong test)."""
    global database, schedule_generator, face_matcher, class_roster
    global record_store, stats_aggregator, session_manager
    database = None
    schedule_generator = None
    face_matcher = None
    class_roster = None
    record_store = None
    stats_aggregator = None
    session_manager = None
