"""
App package initialization
Khởi tạo Flask application và cấu hình
"""
from flask import Flask
import os

from logging_config import setup_logging
from database import DatabaseManager
from app import globals as app_globals
from app import config
from core.attendance import (
    AttendanceRecordStore,
    AttendanceSessionManager,
    ClassRoster,
    FaceMatcher,
    ScheduleGenerator,
    StatsAggregator,
)


def _init_attendance_services(app):
    """Khởi tạo persistence port và các service của engine điểm danh"""
    database = DatabaseManager(
        db_path=app.config['DATABASE_PATH'],
        timeout=app.config['SQLITE_TIMEOUT_SECONDS'],
    )
    app.logger.info(f"[STARTUP] Database path: {os.path.abspath(database.db_path)}")

    schedule_generator = ScheduleGenerator(
        database,
        cadence_days=app.config['SESSION_CADENCE_DAYS'],
        logger=app.logger,
    )
    face_matcher = FaceMatcher(
        threshold=app.config['FACE_MATCH_THRESHOLD'],
        descriptor_length=app.config['DESCRIPTOR_LENGTH'],
    )
    class_roster = ClassRoster(
        database,
        schedule_generator,
        max_absence_percent=app.config['MAX_ABSENCE_PERCENT'],
        descriptor_length=app.config['DESCRIPTOR_LENGTH'],
        logger=app.logger,
    )
    record_store = AttendanceRecordStore(database)
    stats_aggregator = StatsAggregator()
    session_manager = AttendanceSessionManager(
        db=database,
        roster=class_roster,
        record_store=record_store,
        matcher=face_matcher,
        stats=stats_aggregator,
        logger=app.logger,
    )

    app_globals.database = database
    app_globals.schedule_generator = schedule_generator
    app_globals.face_matcher = face_matcher
    app_globals.class_roster = class_roster
    app_globals.record_store = record_store
    app_globals.stats_aggregator = stats_aggregator
    app_globals.session_manager = session_manager
    app.logger.info(
        f"[STARTUP] ✅ Attendance engine initialized (threshold={face_matcher.threshold})"
    )


def create_app(config_overrides=None):
    """Factory function để tạo Flask application"""
    app = Flask(__name__)

    # Cấu hình cơ bản
    app.config.update(config.as_dict())
    if config_overrides:
        app.config.update(config_overrides)

    # Thiết lập logging
    setup_logging(app, log_level=app.config['LOG_LEVEL'], log_dir=app.config['LOG_DIR'])
    app.logger.info(f"[STARTUP] Working directory: {os.getcwd()}")

    app_globals.reset()
    _init_attendance_services(app)

    # Đăng ký blueprints
    from app.routes import register_blueprints
    register_blueprints(app)

    return app
