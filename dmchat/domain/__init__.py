"""Domain state shared by the inbox and thread views."""

from dmchat.domain.directory import UNKNOWN_SENDER, AccountDirectory
from dmchat.domain.errors import ConfigError, DmChatError, FatalAuthError, FetchError, SendError

__all__ = [
    "AccountDirectory",
    "ConfigError",
    "DmChatError",
    "FatalAuthError",
    "FetchError",
    "SendError",
    "UNKNOWN_SENDER",
]
