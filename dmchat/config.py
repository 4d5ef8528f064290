from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from dmchat.domain.errors import ConfigError
from dmchat.protocol.models import StoredSession
from dmchat.settings.env import (
    DMCHAT_API_URL,
    DMCHAT_DATA_DIR,
    DMCHAT_INTERVAL,
    DMCHAT_PASSWORD,
    DMCHAT_PERSIST,
    DMCHAT_TIMEOUT,
    DMCHAT_USERNAME,
    read_bool_env,
    read_env,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://127.0.0.1:8080"
DEFAULT_INTERVAL = 5.0
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class ClientConfig:
    api_url: str
    username: str | None
    password: str | None
    persist: bool
    interval: float
    timeout: float
    data_dir: Path


def _coerce_path(value: Path | str) -> Path:
    return Path(value).expanduser()


def parse_seconds(value: float | str | None, *, name: str, default: float) -> float:
    if value is None:
        return default
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"<{name}> must be a number of seconds, got {value!r}") from None
    if not math.isfinite(seconds) or seconds <= 0:
        raise ConfigError(f"<{name}> must be a positive number of seconds, got {value!r}")
    return seconds


def resolve_client_config(
    *,
    api_url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    persist: bool | None = None,
    interval: float | str | None = None,
    timeout: float | str | None = None,
    data_dir: Path | None = None,
) -> ClientConfig:
    """Merge explicit values with ``DMCHAT_*`` environment fallbacks.

    Raises ``ConfigError`` for malformed numbers so the CLI can fail before
    any network traffic.
    """
    if interval is None:
        interval = read_env(DMCHAT_INTERVAL)
    if timeout is None:
        timeout = read_env(DMCHAT_TIMEOUT)
    if data_dir is None:
        env_data_dir = read_env(DMCHAT_DATA_DIR)
        data_dir = _coerce_path(env_data_dir) if env_data_dir else Path.home() / ".dmchat"
    else:
        data_dir = _coerce_path(data_dir)

    return ClientConfig(
        api_url=(api_url or read_env(DMCHAT_API_URL) or DEFAULT_API_URL).rstrip("/"),
        username=username or read_env(DMCHAT_USERNAME),
        password=password or read_env(DMCHAT_PASSWORD),
        persist=read_bool_env(DMCHAT_PERSIST) if persist is None else persist,
        interval=parse_seconds(interval, name="interval", default=DEFAULT_INTERVAL),
        timeout=parse_seconds(timeout, name="timeout", default=DEFAULT_TIMEOUT),
        data_dir=data_dir,
    )


def session_path_for(config: ClientConfig, username: str) -> Path:
    return config.data_dir / f"session.{username}.json"


def load_stored_session(path: Path) -> StoredSession | None:
    if not path.exists():
        return None
    try:
        return StoredSession.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError:
        logger.warning("Ignoring unreadable session file %s", path)
        return None


def save_stored_session(path: Path, session: StoredSession) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(session.model_dump_json(), encoding="utf-8")
    path.chmod(0o600)


def clear_stored_session(path: Path) -> None:
    path.unlink(missing_ok=True)
