"""
Error types raised by the tool handlers.

Every error carries the HTTP status it maps to; the application exception
handler in main.py renders them as {"error": ..., "details": ...}.
"""

from typing import Any


class ToolError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Any = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict:
        payload = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class BadRequest(ToolError):
    status_code = 400


class InvalidPortSpec(BadRequest):
    """No usable port tokens were found in the port specification."""


class TooManyPorts(BadRequest):
    """The expanded port set is larger than the configured cap."""


class NotFound(ToolError):
    status_code = 404


class UpstreamTimeout(ToolError):
    status_code = 504


class UpstreamError(ToolError):
    status_code = 500


class InternalError(ToolError):
    status_code = 500
