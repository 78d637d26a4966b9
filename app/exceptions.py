"""Domain exceptions raised by the service layer.

Routers do not catch these; the handlers registered in ``app.main`` turn
them into JSON error responses.
"""
from typing import Any, Optional


class NotFoundError(Exception):
    """Document, user or order is absent or not visible to the caller (404)."""


class InvalidRequestError(Exception):
    """Request is well formed but not allowed in the current state (400)."""


class PermissionDeniedError(Exception):
    """Caller is authenticated but may not touch the resource (403)."""


class GatewayError(Exception):
    """Transport failure or non-2xx answer from the payment provider (502).

    ``status_code`` and ``body`` hold the provider's response when there was
    one, for diagnostics.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body
