"""
Session utilities
Chuyển đổi kết quả engine thành payload JSON và mã lỗi HTTP
"""
from flask import jsonify, current_app, request

from core.attendance.errors import (
    InputValidationError,
    NotFoundError,
    StateConflictError,
    StorageError,
)
from logging_config import api_logger, attendance_logger


def error_status(exc):
    """Mã HTTP tương ứng với loại lỗi của engine."""
    if isinstance(exc, InputValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, StateConflictError):
        return 409
    return 500


def error_response(exc, operation=None):
    """Trả về JSON lỗi theo định dạng {'success': False, 'error', 'message'}."""
    status = error_status(exc)
    if isinstance(exc, StorageError) or status >= 500:
        current_app.logger.error(f"Storage failure during {operation or request.path}: {exc}", exc_info=True)
        api_logger.log_error(request.path, str(exc), status)
    else:
        attendance_logger.log_rejected(operation or request.path, exc)
    payload = {'success': False}
    payload.update(exc.to_dict())
    return jsonify(payload), status


def serialize_session_payload(session_info, records=None):
    """Chuyển phiên điểm danh thành payload JSON-friendly."""
    if session_info is None:
        return None
    payload = session_info.to_dict()
    if records is not None:
        payload['records'] = [record.to_dict() for record in records]
        payload['recorded_count'] = len(records)
    return payload


def serialize_match_payload(result, record=None):
    payload = result.to_dict()
    payload['record'] = record.to_dict() if record is not None else None
    return payload
