"""
Access log for the API: one line per request with caller, status and timing.
Health probes are not logged.
"""
import time
import logging
from flask import request, g
from flask_security import current_user

logger = logging.getLogger(__name__)

QUIET_PATHS = ('/api/health',)
SLOW_REQUEST_MS = 1000


def _caller_id():
    try:
        return current_user.id if current_user.is_authenticated else None
    except Exception:
        # Outside a Flask-Security request (e.g. a 404 before auth runs)
        return None


class RequestLogger:
    @staticmethod
    def before_request():
        g.request_started = time.perf_counter()

    @staticmethod
    def after_request(response):
        started = getattr(g, 'request_started', None)
        if started is None or request.path in QUIET_PATHS:
            return response

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400 or duration_ms > SLOW_REQUEST_MS:
            level = logging.WARNING
        else:
            level = logging.INFO

        logger.log(
            level,
            f"{request.method} {request.full_path.rstrip('?')} -> {response.status_code} "
            f"in {duration_ms}ms (user={_caller_id()}, endpoint={request.endpoint})"
        )
        return response
