"""
Application entry point
File khởi chạy ứng dụng Flask
"""
import os

from dotenv import load_dotenv

load_dotenv()

from app import create_app  # noqa: E402

# Tạo Flask application
app = create_app()

if __name__ == '__main__':
    # Lấy cấu hình từ environment variables
    host = os.getenv('FLASK_HOST', '0.0.0.0')
    port = int(os.getenv('FLASK_PORT', 5000))
    debug = os.getenv('FLASK_DEBUG', 'False').lower() in ('true', '1', 'yes')

    app.logger.info(f"🚀 Starting Flask application on {host}:{port}")
    app.logger.info(f"🔧 Debug mode: {debug}")

    # Chạy ứng dụng
    app.run(
        host=host,
        port=port,
        debug=debug,
        threaded=True
    )
