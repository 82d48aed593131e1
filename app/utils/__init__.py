"""
Utils package
"""
from .data_utils import (
    get_request_data,
    parse_bool,
    parse_int
)
from .session_utils import (
    error_response,
    error_status,
    serialize_match_payload,
    serialize_session_payload
)

__all__ = [
    'get_request_data',
    'parse_bool',
    'parse_int',
    'error_response',
    'error_status',
    'serialize_match_payload',
    'serialize_session_payload'
]
