"""
Request logging with timing and a per-request id
"""
import time
import logging
import json
from typing import Dict, Any
from flask import request, g

from kioskinstall.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)

# Bodies can carry base64 frames; only small JSON payloads are logged
MAX_LOGGED_BODY_BYTES = 1024


class RequestLogger:
    """Request logging hooks"""

    @staticmethod
    def init_app(app):
        app.before_request(RequestLogger.before_request)
        app.after_request(RequestLogger.after_request)

    @staticmethod
    def before_request():
        """Record request start time"""
        g.start_time = time.time()
        g.request_id = f"{int(time.time() * 1000000)}"  # Microsecond precision

    @staticmethod
    def after_request(response):
        """Log request information with duration"""
        if not hasattr(g, 'start_time'):
            return response

        duration_ms = (time.time() - g.start_time) * 1000

        log_data = {
            'timestamp': utc_now().isoformat(),
            'request_id': getattr(g, 'request_id', 'unknown'),
            'method': request.method,
            'path': request.path,
            'endpoint': request.endpoint,
            'remote_addr': request.remote_addr,
            'content_length': request.content_length,
            'content_type': request.content_type,
            'duration_ms': round(duration_ms, 2),
            'status_code': response.status_code,
        }

        if request.args:
            log_data['query_params'] = dict(request.args)

        if request.is_json and request.content_length and request.content_length < MAX_LOGGED_BODY_BYTES:
            log_data['json_body'] = request.get_json(silent=True)

        log_level = logging.INFO
        if response.status_code >= 500:
            log_level = logging.ERROR
        elif response.status_code >= 400:
            log_level = logging.WARNING

        logger.log(log_level, f"REQUEST_LOG: {json.dumps(log_data, default=str)}")

        response.headers['X-Request-ID'] = log_data['request_id']
        return response


def get_request_metrics() -> Dict[str, Any]:
    """Get current request metrics"""
    if not hasattr(g, 'start_time'):
        return {}

    duration_ms = (time.time() - g.start_time) * 1000

    return {
        'request_duration_ms': round(duration_ms, 2),
        'request_id': getattr(g, 'request_id', 'unknown'),
        'start_time': g.start_time
    }
