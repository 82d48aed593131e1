"""
API routes for attendance sessions
Các API endpoint cho phiên điểm danh: mở phiên, ghi nhận, nhận diện và kết thúc
"""
from flask import Blueprint, jsonify, request

from app import globals as app_globals
from app.utils import (
    get_request_data,
    parse_bool,
    parse_int,
    error_response,
    serialize_match_payload,
    serialize_session_payload,
)
from core.attendance.errors import AttendanceError, InputValidationError, InvalidRecordInput
from logging_config import attendance_logger, face_match_logger, log_request_info

attendance_api_bp = Blueprint('attendance_api', __name__, url_prefix='/api/attendance')


@attendance_api_bp.route('/session/open', methods=['POST'])
def api_open_session():
    """Mở phiên điểm danh cho một buổi trong lịch học"""
    log_request_info(request)
    data = get_request_data()
    class_id = parse_int(data.get('class_id'))
    session_number = parse_int(data.get('session_number'))
    try:
        if class_id is None or session_number is None:
            raise InputValidationError(
                'Thiếu class_id hoặc session_number',
                class_id=data.get('class_id'),
                session_number=data.get('session_number'),
            )
        session_id = app_globals.session_manager.open(
            class_id,
            session_number,
            title=data.get('title'),
            notes=data.get('notes'),
        )
        session_info = app_globals.session_manager.get_session(session_id)
    except AttendanceError as exc:
        return error_response(exc, 'open_session')

    attendance_logger.log_session_opened(session_id, class_id, session_number)
    return jsonify({
        'success': True,
        'message': f'Đã mở phiên điểm danh buổi {session_number}',
        'session_id': session_id,
        'session': serialize_session_payload(session_info),
    }), 201


@attendance_api_bp.route('/session/<int:session_id>', methods=['GET'])
def api_get_session(session_id):
    try:
        session_info = app_globals.session_manager.get_session(session_id)
    except AttendanceError as exc:
        return error_response(exc, 'get_session')
    return jsonify({'success': True, 'session': serialize_session_payload(session_info)})


@attendance_api_bp.route('/session/<int:session_id>/records', methods=['GET'])
def api_get_session_records(session_id):
    """Danh sách bản ghi điểm danh của phiên"""
    try:
        session_info = app_globals.session_manager.get_session(session_id)
        records = app_globals.session_manager.list_records(session_id)
    except AttendanceError as exc:
        return error_response(exc, 'list_records')
    return jsonify({
        'success': True,
        'session': serialize_session_payload(session_info, records),
    })


@attendance_api_bp.route('/session/<int:session_id>/students/<student_id>', methods=['PUT'])
def api_record_presence(session_id, student_id):
    """
    Ghi nhận điểm danh cho một sinh viên.
    Body {descriptor}: xác thực khuôn mặt rồi ghi nhận (method=face).
    Body {present, note}: điểm danh thủ công (method=manual).
    """
    log_request_info(request)
    data = get_request_data()
    try:
        if data.get('descriptor') is not None:
            result, record = app_globals.session_manager.verify_and_record(
                session_id, student_id, data.get('descriptor')
            )
            face_match_logger.log_match(session_id, result)
            if record is not None:
                attendance_logger.log_presence_recorded(
                    session_id, student_id, record.present, record.method, record.match_confidence
                )
            return jsonify({'success': True, 'data': serialize_match_payload(result, record)})

        present = True if data.get('present') is None else parse_bool(data.get('present'))
        if present is None:
            raise InvalidRecordInput('Giá trị present không hợp lệ', present=data.get('present'))
        record = app_globals.session_manager.record_presence(
            session_id, student_id, present=present, note=data.get('note')
        )
    except AttendanceError as exc:
        return error_response(exc, 'record_presence')

    attendance_logger.log_presence_recorded(session_id, student_id, record.present, record.method)
    return jsonify({'success': True, 'data': record.to_dict()})


@attendance_api_bp.route('/session/<int:session_id>/recognize', methods=['POST'])
def api_recognize(session_id):
    """Nhận diện descriptor trong danh sách lớp và ghi nhận nếu khớp"""
    log_request_info(request)
    data = get_request_data()
    try:
        result, record = app_globals.session_manager.recognize(session_id, data.get('descriptor'))
    except AttendanceError as exc:
        return error_response(exc, 'recognize')

    face_match_logger.log_match(session_id, result)
    if record is not None:
        attendance_logger.log_presence_recorded(
            session_id, record.student_id, record.present, record.method, record.match_confidence
        )
    return jsonify({'success': True, 'data': serialize_match_payload(result, record)})


@attendance_api_bp.route('/session/<int:session_id>/complete', methods=['POST'])
def api_complete_session(session_id):
    """Kết thúc phiên và lưu thống kê"""
    log_request_info(request)
    try:
        stats = app_globals.session_manager.complete(session_id)
        session_info = app_globals.session_manager.get_session(session_id)
    except AttendanceError as exc:
        return error_response(exc, 'complete_session')

    attendance_logger.log_session_completed(session_id, stats)
    return jsonify({
        'success': True,
        'message': 'Đã kết thúc phiên điểm danh',
        'stats': stats.to_dict(),
        'session': serialize_session_payload(session_info),
    })
