from __future__ import annotations

import os

DMCHAT_API_URL = "DMCHAT_API_URL"
DMCHAT_USERNAME = "DMCHAT_USERNAME"
DMCHAT_PASSWORD = "DMCHAT_PASSWORD"
DMCHAT_PERSIST = "DMCHAT_PERSIST"
DMCHAT_INTERVAL = "DMCHAT_INTERVAL"
DMCHAT_TIMEOUT = "DMCHAT_TIMEOUT"
DMCHAT_DATA_DIR = "DMCHAT_DATA_DIR"
DMCHAT_LOG_FILE = "DMCHAT_LOG_FILE"
DMCHAT_LOG_LEVEL = "DMCHAT_LOG_LEVEL"


def read_env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def read_bool_env(name: str, *, default: bool = False) -> bool:
    value = read_env(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}
