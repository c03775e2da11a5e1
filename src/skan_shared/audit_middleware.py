import logging
import time

from flask import Flask, Response, g, request

from .jwt_middleware import get_current_user

logger = logging.getLogger("audit")


def init_audit_middleware(app: Flask):
    """
    Register the request access log.

    One line per response: USER|ACTION|TYPE|CODE|RETVAL|SESSION|TIME
    """

    @app.before_request
    def start_timer():
        g.start_time = time.time()

    @app.after_request
    def log_request(response: Response):
        try:
            user = get_current_user()
            user_id = user.get("email") if user else "ANONYMOUS"

            action = f"{request.method} {request.path}"

            trace_id = request.headers.get("X-Request-ID") or "NO_SESSION"
            if len(trace_id) > 20:
                trace_id = trace_id[:8] + "..."

            duration = 0
            if hasattr(g, "start_time"):
                duration = int((time.time() - g.start_time) * 1000)

            status_code = response.status_code
            if response.direct_passthrough:
                content_length = 0
            else:
                content_length = response.content_length or 0

            log_line = (
                f"{user_id}|{action}|RESPONSE|{status_code}|{content_length} bytes"
                f"|{trace_id}|{duration}ms"
            )

            if status_code >= 500:
                logger.error(log_line)
            elif status_code >= 400:
                logger.warning(log_line)
            else:
                logger.info(log_line)

        except Exception as e:
            # The access log must never break the response.
            logger.error(f"SYSTEM|AUDIT_FAIL|ERROR|500|{e!s}|UNKNOWN|0ms")

        return response
