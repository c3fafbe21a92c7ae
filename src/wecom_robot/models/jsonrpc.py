"""
JSON-RPC 2.0 envelopes used on the stdio transport.
"""

from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel

JSONRPC_VERSION = "2.0"


class JsonRpcErrorCode(IntEnum):
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class JsonRpcRequest(BaseModel):
    jsonrpc: str
    id: Any = None
    method: str
    params: Optional[dict[str, Any]] = None

    @property
    def is_notification(self) -> bool:
        """A request without an `id` member expects no response."""
        return "id" not in self.model_fields_set


class JsonRpcErrorBody(BaseModel):
    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    id: Any = None
    result: Optional[dict[str, Any]] = None
    error: Optional[JsonRpcErrorBody] = None

    @classmethod
    def success(cls, id: Any, result: dict[str, Any]) -> "JsonRpcResponse":
        return cls(id=id, result=result)

    @classmethod
    def failure(cls, id: Any, code: int, message: str, data: Any = None) -> "JsonRpcResponse":
        return cls(id=id, error=JsonRpcErrorBody(code=code, message=message, data=data))

    def to_dict(self) -> dict[str, Any]:
        """Wire form: exactly one of `result`/`error`, `error.data` only when set."""
        out: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            out["error"] = self.error.model_dump(exclude_none=True)
        else:
            out["result"] = self.result if self.result is not None else {}
        return out


class JsonRpcNotification(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    method: str
    params: dict[str, Any] = {}


class ToolCallParams(BaseModel):
    """tools/call params"""
    name: str
    arguments: Optional[dict[str, Any]] = None
