"""Client-side pieces: API access and the transient notification store."""

from app.client.api import CRMClient
from app.client.errors import error_message, notify_error
from app.client.notifications import (
    AsyncioScheduler,
    Notification,
    NotificationHandle,
    NotificationStore,
)

__all__ = [
    "AsyncioScheduler",
    "CRMClient",
    "Notification",
    "NotificationHandle",
    "NotificationStore",
    "error_message",
    "notify_error",
]
