"""
API routes for classes
Các API endpoint cho lớp học, lịch học, danh sách sinh viên và thống kê lớp
"""
from flask import Blueprint, jsonify, request

from app import globals as app_globals
from app.utils import get_request_data, error_response, serialize_session_payload
from core.attendance.errors import AttendanceError

class_api_bp = Blueprint('class_api', __name__, url_prefix='/api/classes')


@class_api_bp.route('', methods=['POST'])
def api_create_class():
    """Tạo lớp học và sinh lịch học theo tuần."""
    data = get_request_data()
    try:
        class_info = app_globals.class_roster.create_class(
            name=data.get('name'),
            start_date=data.get('start_date'),
            total_sessions=data.get('total_sessions'),
            code=data.get('code'),
        )
    except AttendanceError as exc:
        return error_response(exc, 'create_class')
    return jsonify({'success': True, 'data': class_info.to_dict()}), 201


@class_api_bp.route('/<int:class_id>', methods=['GET'])
def api_get_class(class_id):
    try:
        class_info = app_globals.class_roster.get_class(class_id)
    except AttendanceError as exc:
        return error_response(exc, 'get_class')
    payload = class_info.to_dict()
    payload['student_count'] = len(app_globals.class_roster.student_ids(class_id))
    return jsonify({'success': True, 'data': payload})


@class_api_bp.route('/<int:class_id>/schedule', methods=['GET'])
def api_get_schedule(class_id):
    """Lấy lịch học của lớp"""
    try:
        class_info = app_globals.class_roster.get_class(class_id)
    except AttendanceError as exc:
        return error_response(exc, 'get_schedule')
    return jsonify({
        'success': True,
        'class_id': class_id,
        'schedule': [entry.to_dict() for entry in class_info.schedule],
    })


@class_api_bp.route('/<int:class_id>/schedule', methods=['POST'])
def api_regenerate_schedule(class_id):
    """Tạo lại lịch học (chỉ khi lớp chưa mở phiên nào)"""
    try:
        schedule = app_globals.schedule_generator.regenerate(class_id)
    except AttendanceError as exc:
        return error_response(exc, 'regenerate_schedule')
    return jsonify({
        'success': True,
        'class_id': class_id,
        'schedule': [entry.to_dict() for entry in schedule],
    })


@class_api_bp.route('/<int:class_id>/students', methods=['GET'])
def api_get_class_students(class_id):
    try:
        app_globals.class_roster.get_class(class_id)
        profiles = app_globals.class_roster.profiles(class_id)
    except AttendanceError as exc:
        return error_response(exc, 'list_students')
    return jsonify({
        'success': True,
        'class_id': class_id,
        'students': [profile.to_dict() for profile in profiles],
        'count': len(profiles),
    })


@class_api_bp.route('/<int:class_id>/students', methods=['POST'])
def api_enroll_student(class_id):
    """Đăng ký sinh viên vào lớp kèm descriptor 128 chiều."""
    data = get_request_data()
    try:
        profile = app_globals.class_roster.enroll_student(
            class_id=class_id,
            student_id=data.get('student_id'),
            descriptor=data.get('descriptor'),
            full_name=data.get('full_name') or '',
            image_path=data.get('image_path'),
        )
    except AttendanceError as exc:
        return error_response(exc, 'enroll_student')
    return jsonify({'success': True, 'data': profile.to_dict()}), 201


@class_api_bp.route('/<int:class_id>/sessions', methods=['GET'])
def api_get_class_sessions(class_id):
    """Lịch sử các phiên điểm danh của lớp"""
    status = request.args.get('status') or None
    try:
        sessions = app_globals.session_manager.list_sessions(class_id, status=status)
    except AttendanceError as exc:
        return error_response(exc, 'list_sessions')
    return jsonify({
        'success': True,
        'class_id': class_id,
        'sessions': [serialize_session_payload(s) for s in sessions],
        'count': len(sessions),
    })


@class_api_bp.route('/<int:class_id>/stats', methods=['GET'])
def api_get_class_stats(class_id):
    """Thống kê vắng mặt theo sinh viên và trạng thái cấm thi"""
    try:
        rollup = app_globals.session_manager.class_stats(class_id)
    except AttendanceError as exc:
        return error_response(exc, 'class_stats')
    return jsonify({'success': True, 'data': rollup.to_dict()})
