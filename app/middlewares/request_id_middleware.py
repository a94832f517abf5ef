import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.utils.context import set_admin_id, set_request_id
from app.utils.logging import get_logger

REQUEST_ID_HEADER = "X-Request-ID"

logger = get_logger()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags each request with a UUID, echoed back in the response header and every log line."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            request_id = str(uuid.UUID(request.headers.get(REQUEST_ID_HEADER)))
        except (ValueError, TypeError):
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id
        set_request_id(request_id)
        # Filled in once the admin dependency resolves
        set_admin_id(None)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)"
        )
        return response
