"""
Webhook call results.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel


class SendResult(BaseModel):
    """Result of POST /send; `data` is the raw remote body."""
    success: bool = True
    message: str = "message sent"
    data: dict[str, Any] = {}


class UploadResult(BaseModel):
    """Result of POST /upload_media. The media id expires after 3 days."""
    success: bool = True
    message: str = "media uploaded"
    media_id: str
    type: Optional[str] = None
    created_at: Optional[Union[str, int]] = None
