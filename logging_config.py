"""
Cấu hình logging cho hệ thống điểm danh
"""

import logging
import logging.handlers
from datetime import datetime
from pathlib import Path


def setup_logging(app, log_level='INFO', log_dir='logs', max_log_size=10*1024*1024, backup_count=5):
    """
    Thiết lập logging cho ứng dụng Flask

    Args:
        app: Flask app instance
        log_level: Mức độ log (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Thư mục chứa file log
        max_log_size: Kích thước tối đa của file log (bytes)
        backup_count: Số lượng file log backup
    """

    # Tạo thư mục logs nếu chưa có
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    log_level = getattr(logging, str(log_level).upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # File handler với rotation
    file_handler = logging.handlers.RotatingFileHandler(
        log_dir / 'attendance_system.log',
        maxBytes=max_log_size,
        backupCount=backup_count,
        encoding='utf-8'
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    # Handler cho file lỗi
    error_handler = logging.handlers.RotatingFileHandler(
        log_dir / 'errors.log',
        maxBytes=max_log_size,
        backupCount=backup_count,
        encoding='utf-8'
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Xóa handlers cũ nếu có (create_app có thể được gọi nhiều lần)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(error_handler)

    for name in ('attendance', 'face_match', 'database', 'api'):
        logging.getLogger(name).setLevel(log_level)

    app.logger.setLevel(log_level)

    app.logger.info("=" * 50)
    app.logger.info("ATTENDANCE ENGINE STARTUP")
    app.logger.info(f"Timestamp: {datetime.now().isoformat()}")
    app.logger.info(f"Log Level: {logging.getLevelName(log_level)}")
    app.logger.info(f"Log Directory: {log_dir.absolute()}")
    app.logger.info("=" * 50)


class AttendanceLogger:
    """Logger chuyên dụng cho vòng đời phiên điểm danh"""

    def __init__(self):
        self.logger = logging.getLogger('attendance')

    def log_session_opened(self, session_id, class_id, session_number):
        self.logger.info(f"SESSION OPENED - Session: {session_id}, Class: {class_id}, Number: {session_number}")

    def log_presence_recorded(self, session_id, student_id, present, method, confidence=None):
        """Log ghi nhận điểm danh"""
        confidence_info = f", Confidence: {confidence:.3f}" if confidence is not None else ""
        status = "PRESENT" if present else "ABSENT"
        self.logger.info(
            f"PRESENCE {status} - Session: {session_id}, Student: {student_id}, Method: {method}{confidence_info}"
        )

    def log_session_completed(self, session_id, stats):
        self.logger.info(
            f"SESSION COMPLETED - Session: {session_id}, Present: {stats.present_count}/"
            f"{stats.total_students}, Rate: {stats.attendance_rate:.2f}%"
        )

    def log_rejected(self, operation, error):
        """Log thao tác bị từ chối do xung đột trạng thái hoặc dữ liệu sai"""
        self.logger.warning(f"REJECTED - {operation}: [{error.code}] {error.message}")


class FaceMatchLogger:
    """Logger chuyên dụng cho so khớp khuôn mặt"""

    def __init__(self):
        self.logger = logging.getLogger('face_match')

    def log_match(self, session_id, result):
        if result.accepted:
            self.logger.info(
                f"Face matched - Session: {session_id}, Student: {result.student_id}, "
                f"Distance: {result.distance:.4f}, Candidates: {result.candidates}"
            )
        else:
            self.logger.info(
                f"No match - Session: {session_id}, Best distance: {result.distance:.4f}, "
                f"Threshold: {result.threshold:.2f}"
            )


class DatabaseLogger:
    """Logger chuyên dụng cho database operations"""

    def __init__(self):
        self.logger = logging.getLogger('database')

    def log_query(self, query_type, table, duration=None):
        """Log truy vấn database"""
        duration_info = f", Duration: {duration:.3f}s" if duration else ""
        self.logger.debug(f"DB Query - Type: {query_type}, Table: {table}{duration_info}")

    def log_error(self, operation, error_message):
        """Log lỗi database"""
        self.logger.error(f"DB Error - Operation: {operation}, Error: {error_message}")


class APILogger:
    """Logger chuyên dụng cho API calls"""

    def __init__(self):
        self.logger = logging.getLogger('api')

    def log_request(self, method, endpoint, ip_address=None):
        """Log yêu cầu API"""
        ip_info = f", IP: {ip_address}" if ip_address else ""
        self.logger.info(f"API Request - {method} {endpoint}{ip_info}")

    def log_error(self, endpoint, error_message, status_code=500):
        """Log lỗi API"""
        self.logger.error(f"API Error - {endpoint}, Status: {status_code}, Error: {error_message}")


# Các instance logger toàn cục
attendance_logger = AttendanceLogger()
face_match_logger = FaceMatchLogger()
database_logger = DatabaseLogger()
api_logger = APILogger()


def get_client_ip(request):
    """Lấy IP address của client"""
    if request.headers.get('X-Forwarded-For'):
        return request.headers.get('X-Forwarded-For').split(',')[0].strip()
    elif request.headers.get('X-Real-IP'):
        return request.headers.get('X-Real-IP')
    else:
        return request.remote_addr


def log_request_info(request):
    """Log thông tin request"""
    ip_address = get_client_ip(request)
    api_logger.log_request(request.method, request.endpoint, ip_address=ip_address)
    return ip_address
