"""
API routes for system status
Các API cho trạng thái hệ thống
"""
from flask import Blueprint, current_app, jsonify

from app import globals as app_globals

system_api_bp = Blueprint('system_api', __name__, url_prefix='/api')


@system_api_bp.route('/status')
def api_system_status():
    """API trạng thái hệ thống"""
    matcher = app_globals.face_matcher
    return jsonify({
        'success': True,
        'database_path': current_app.config['DATABASE_PATH'],
        'face_match_threshold': matcher.threshold if matcher else None,
        'descriptor_length': matcher.descriptor_length if matcher else None,
        'session_cadence_days': current_app.config['SESSION_CADENCE_DAYS'],
        'max_absence_percent': current_app.config['MAX_ABSENCE_PERCENT'],
    })
