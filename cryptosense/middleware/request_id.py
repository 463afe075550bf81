"""
Request ID Middleware
Tags every HTTP request and response with a correlation id
"""
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from cryptosense.core.logging.structured_logger import get_logger

logger = get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to add unique request ID to each request."""

    def __init__(self, app, header_name: str = "X-Request-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next):
        # Reuse the id from an upstream proxy when present
        request_id = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = request_id

        logger.debug("Request started", {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else None
        })

        response = await call_next(request)
        response.headers[self.header_name] = request_id

        logger.debug("Request completed", {
            "request_id": request_id,
            "status_code": response.status_code
        })
        return response
