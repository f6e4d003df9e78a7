from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import logging
import time
import uuid

logger = logging.getLogger("foodorder.access")

class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags every request with an X-Request-ID and writes one access log line."""
    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = req_id
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = req_id
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("[%s] %s %s -> %s (%.1f ms)",
                    req_id, request.method, request.url.path, response.status_code, elapsed_ms)
        return response
