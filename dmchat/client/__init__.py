from dmchat.client.base import InboxFeed, MessagingClient
from dmchat.client.http import HttpInboxFeed, HttpMessagingClient

__all__ = [
    "HttpInboxFeed",
    "HttpMessagingClient",
    "InboxFeed",
    "MessagingClient",
]
