"""
Error taxonomy for the resource access layer.

Each error maps onto one HTTP status; `backend.app` installs the handlers
that render them.
"""

from __future__ import annotations


class AccessError(Exception):
    """Base class for terminal, caller-visible request failures."""

    status_code: int = 500
    default_detail: str = "Request failed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthorized(AccessError):
    status_code = 401
    default_detail = "Unauthorized"


class Forbidden(AccessError):
    status_code = 403
    default_detail = "Forbidden"


class NotFound(AccessError):
    status_code = 404
    default_detail = "Not found"


class ValidationFailed(AccessError):
    status_code = 400
    default_detail = "Missing required fields"
