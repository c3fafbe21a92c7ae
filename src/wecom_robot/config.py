"""
Process configuration, read once at startup and injected where needed.
"""

import os
from typing import Mapping, Optional

from pydantic import BaseModel

DEFAULT_BASE_URL = "https://qyapi.weixin.qq.com/cgi-bin/webhook"

ENV_WEBHOOK_KEY = "WECOM_WEBHOOK_KEY"
ENV_BASE_URL = "WECOM_BASE_URL"
ENV_LOG_LEVEL = "WECOM_LOG_LEVEL"


class Settings(BaseModel):
    webhook_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    log_level: str = "INFO"
    send_timeout: float = 30.0
    upload_timeout: float = 60.0
    download_timeout: float = 30.0

    model_config = {"frozen": True}

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: object) -> "Settings":
        """Build settings from the environment; non-None overrides win."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {
            "webhook_key": env.get(ENV_WEBHOOK_KEY) or None,
            "base_url": env.get(ENV_BASE_URL) or DEFAULT_BASE_URL,
            "log_level": env.get(ENV_LOG_LEVEL) or "INFO",
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def masked_key(self) -> Optional[str]:
        return mask_key(self.webhook_key) if self.webhook_key else None


def mask_key(key: str) -> str:
    if len(key) > 16:
        return f"{key[:8]}...{key[-8:]}"
    return "***"
