import logging
import json
import time
import random
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# Configure a specific logger for structured events
# We don't propagate to the root logger to avoid double logging if root captures everything
structured_logger = logging.getLogger("api.structured_log")
structured_logger.propagate = False

# Ensure it has a handler if not already configured (ideally configured in logging.ini)
if not structured_logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(message)s"
    )  # Raw message only (which will be JSON)
    handler.setFormatter(formatter)
    structured_logger.addHandler(handler)
    structured_logger.setLevel(logging.INFO)

# Query parameters that must never reach the logs
REDACTED_PARAMS = {"token", "password"}


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to implement wide-event structured logging with tail sampling.

    Rules:
    1. Always log errors (Status >= 500)
    2. Always log slow requests (> 500ms)
    3. Otherwise sample SAMPLE_RATE of requests
    """

    SLOW_THRESHOLD_MS = 500
    SAMPLE_RATE = 0.05

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = None
        error_details = None
        status_code = 500  # Default to 500 if exception occurs

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            error_details = str(e)
            raise e  # Re-raise exception after capturing it
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000

            should_log = (
                status_code >= 500
                or duration_ms > self.SLOW_THRESHOLD_MS
                or random.random() < self.SAMPLE_RATE
            )

            if should_log:
                # Set by the auth guard on authenticated requests
                user_id = getattr(request.state, "user_id", None)

                log_payload = {
                    "timestamp": time.time(),
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_ms": round(duration_ms, 2),
                    "client_ip": request.client.host if request.client else None,
                    "user_agent": request.headers.get("user-agent"),
                    "query_params": {
                        key: value
                        for key, value in request.query_params.items()
                        if key not in REDACTED_PARAMS
                    },
                    "error": error_details,
                    "user_id": str(user_id) if user_id else None,
                }

                # Dump to JSON and log
                structured_logger.info(json.dumps(log_payload))

        return response
