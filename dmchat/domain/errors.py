"""Exception hierarchy for dmchat."""


class DmChatError(Exception):
    """Base exception for all dmchat errors."""


class ConfigError(DmChatError):
    """Configuration value is malformed."""


class FatalAuthError(DmChatError):
    """The messaging provider rejected the credentials or session token."""


class FetchError(DmChatError):
    """Failed to fetch the inbox or a thread."""


class SendError(DmChatError):
    """Failed to send a message to a thread."""
