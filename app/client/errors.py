"""Surface API failures to the user as notifications."""

import logging

import httpx

from app.client.notifications import NotificationStore

logger = logging.getLogger(__name__)


def error_message(error: Exception) -> str:
    """Prefer the server's ``message`` field, then the exception text."""
    response = getattr(error, "response", None)
    if isinstance(response, httpx.Response):
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("message"), str) and body["message"]:
            return body["message"]
    return str(error) or type(error).__name__


def notify_error(store: NotificationStore, error: Exception, title: str = "Error") -> str:
    """Push a destructive notification describing ``error`` and return its message."""
    message = error_message(error)
    logger.debug("Notifying error: %s", message)
    store.notify(title=title, description=message, variant="destructive")
    return message
