"""
Tool descriptors and tool-call results (MCP shapes).
"""

import json
from typing import Any, Literal

from pydantic import BaseModel, Field


class ToolDescriptor(BaseModel):
    name: str
    description: str
    input_schema: dict[str, Any] = Field(alias="inputSchema")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    content: list[TextContent]
    is_error: bool = Field(default=False, alias="isError")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_data(cls, data: Any, is_error: bool = False) -> "ToolResult":
        text = json.dumps(data, indent=2, ensure_ascii=False)
        return cls(content=[TextContent(text=text)], is_error=is_error)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"content": [c.model_dump() for c in self.content]}
        if self.is_error:
            out["isError"] = True
        return out
