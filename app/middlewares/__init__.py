from .request_id_middleware import RequestIDMiddleware
from .security_middleware import SecurityHeadersMiddleware

__all__ = [
    "RequestIDMiddleware",
    "SecurityHeadersMiddleware",
]
