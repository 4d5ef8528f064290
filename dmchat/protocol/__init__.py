from dmchat.protocol.models import (
    Account,
    InboxPage,
    LikeMessage,
    MediaItem,
    MediaMessage,
    Message,
    OtherMessage,
    TextMessage,
    ThreadSummary,
)

__all__ = [
    "Account",
    "InboxPage",
    "LikeMessage",
    "MediaItem",
    "MediaMessage",
    "Message",
    "OtherMessage",
    "TextMessage",
    "ThreadSummary",
]
