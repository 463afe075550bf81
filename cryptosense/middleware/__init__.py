"""HTTP middleware."""
from .request_id import RequestIDMiddleware

__all__ = ["RequestIDMiddleware"]
