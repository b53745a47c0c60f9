import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from dispensary.core.request_context import set_request_id, reset_request_id

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and log its outcome"""

    EXCLUDED_ROUTES = ["/health", "/docs", "/redoc", "/openapi.json"]

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = set_request_id(request_id)
        start_time = time.time()
        try:
            response = await call_next(request)

            path = request.url.path
            if not any(path.startswith(route) or path.endswith(route) for route in self.EXCLUDED_ROUTES):
                processing_time = (time.time() - start_time) * 1000
                message = f"{request.method} {path} -> {response.status_code} ({processing_time:.1f} ms)"
                if response.status_code >= 500:
                    logger.error(message)
                elif response.status_code >= 400:
                    logger.warning(message)
                else:
                    logger.info(message)

            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            reset_request_id(token)
