"""
Data utilities
Helper functions cho data transformation và validation
"""
from flask import request


def get_request_data():
    """Lấy request data từ JSON hoặc form."""
    if request.is_json:
        data = request.get_json(silent=True)
        # Chỉ chấp nhận JSON object; list/số/chuỗi coi như body rỗng
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def parse_bool(value, default=None):
    """
    Phân tích giá trị boolean từ string, int, hoặc bool.
    Returns: True, False, hoặc default nếu không xác định được.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lower = value.strip().lower()
        if lower in ('true', '1', 'yes', 'on', 'present'):
            return True
        if lower in ('false', '0', 'no', 'off', 'absent'):
            return False
    return default


def parse_int(value, default=None):
    """Chuyển sang int; trả về default nếu không hợp lệ (bool và số lẻ như 1.9 không được chấp nhận)."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, float) and not value.is_integer():
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
