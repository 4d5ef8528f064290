"""Terminal client for direct-message inboxes."""

__version__ = "0.1.0"
