"""
wecom-robot error types.

Every failure raised below the tool dispatcher is a WeComError carrying one
of the ErrorKind values, a numeric code and optional details.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    PARSE_ERROR = "ParseError"
    PROTOCOL_ERROR = "ProtocolError"
    INVALID_INPUT = "InvalidInput"
    NOT_FOUND = "NotFound"
    REMOTE_ERROR = "RemoteError"
    INTERNAL_ERROR = "InternalError"


class WeComError(Exception):
    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        code: int = -1,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code
        self.details = details

    def __str__(self) -> str:
        return f"{self.kind.value} [{self.code}]: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "message": self.message, "code": self.code}
        if self.details:
            data["detail"] = self.details
        return data


class InvalidInputError(WeComError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(ErrorKind.INVALID_INPUT, message, details=details)


class NotFoundError(WeComError):
    def __init__(self, message: str):
        super().__init__(ErrorKind.NOT_FOUND, message)


class RemoteError(WeComError):
    """Non-zero errcode from the webhook, a non-2xx status or a transport failure."""

    def __init__(self, message: str, code: int = -1, details: Optional[dict[str, Any]] = None):
        super().__init__(ErrorKind.REMOTE_ERROR, message, code, details)


class ProtocolError(WeComError):
    """JSON-RPC level failure; `code` is the JSON-RPC error code."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(ErrorKind.PROTOCOL_ERROR, message, code)
        self.data = data
