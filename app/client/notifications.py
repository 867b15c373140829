"""In-memory store of transient notifications with auto-expiry.

The store holds at most ``limit`` notifications, newest first. Each entry has
at most one pending timer, kept in a table keyed by notification id; replacing
a timer always cancels and removes the old handle before inserting the new one.
Observers subscribe to receive the full notification tuple after every change.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Iterator, Protocol

logger = logging.getLogger(__name__)

NOTIFICATION_LIMIT = 5
# Milliseconds
NOTIFICATION_REMOVE_DELAY = 5000


@dataclass(frozen=True, slots=True)
class Notification:
    id: str | None = None
    title: str | None = None
    description: str | None = None
    variant: str = "default"
    duration: int = NOTIFICATION_REMOVE_DELAY
    open: bool = True
    data: dict[str, Any] = field(default_factory=dict)


_NOTIFICATION_FIELDS = frozenset(f.name for f in fields(Notification))

Listener = Callable[[tuple[Notification, ...]], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Schedules callbacks on the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


@dataclass(frozen=True, slots=True)
class NotificationHandle:
    """Controls for one notification, as returned by ``NotificationStore.notify``."""

    id: str
    store: NotificationStore

    def update(self, **changes: Any) -> None:
        self.store.update(self.id, **changes)

    def dismiss(self) -> None:
        self.store.dismiss(self.id)


class NotificationStore:
    """
    Authoritative list of visible notifications shared by all subscribers.

    Args:
        limit: Maximum number of notifications held at once
        remove_delay: Milliseconds between a dismissal and the removal
        scheduler: Timer source. The default schedules on the running asyncio
            loop, so ``add``, ``notify``, ``update`` and ``dismiss`` then raise
            ``RuntimeError`` when called outside a coroutine; pass a scheduler
            of your own for synchronous use.
    """

    def __init__(
        self,
        limit: int = NOTIFICATION_LIMIT,
        remove_delay: int = NOTIFICATION_REMOVE_DELAY,
        scheduler: Scheduler | None = None,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.remove_delay = remove_delay
        self._scheduler = scheduler or AsyncioScheduler()
        self._notifications: tuple[Notification, ...] = ()
        self._timers: dict[str, TimerHandle] = {}
        self._listeners: list[Listener] = []
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def notifications(self) -> tuple[Notification, ...]:
        return self._notifications

    @property
    def pending_timers(self) -> frozenset[str]:
        return frozenset(self._timers)

    def get(self, notification_id: str) -> Notification | None:
        for notification in self._notifications:
            if notification.id == notification_id:
                return notification
        return None

    def __len__(self) -> int:
        return len(self._notifications)

    def __iter__(self) -> Iterator[Notification]:
        return iter(self._notifications)

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; the returned callable unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, notifications: tuple[Notification, ...]) -> None:
        self._notifications = notifications
        # Snapshot: listeners may (un)subscribe while being called
        for listener in list(self._listeners):
            listener(notifications)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _cancel_timer(self, notification_id: str) -> None:
        handle = self._timers.pop(notification_id, None)
        if handle is not None:
            handle.cancel()

    def _schedule_removal(self, notification_id: str, delay_ms: int) -> None:
        self._cancel_timer(notification_id)
        handle: TimerHandle | None = None

        def expire() -> None:
            # A superseded handle must not remove its replacement's entry
            if self._timers.get(notification_id) is not handle:
                return
            del self._timers[notification_id]
            logger.debug("Notification %s expired", notification_id)
            self.remove(notification_id)

        handle = self._scheduler.call_later(delay_ms / 1000, expire)
        self._timers[notification_id] = handle

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _next_id(self) -> str:
        return f"notification-{next(self._ids)}"

    def add(self, notification: Notification) -> Notification:
        """
        Insert ``notification`` at the front, evicting the oldest beyond the limit.

        A fresh id is assigned when the notification has none. Unless its
        duration is 0 an auto-removal timer is (re)scheduled for it.
        """
        if not notification.id:
            notification = replace(notification, id=self._next_id())
        notification = replace(notification, open=True)

        self._cancel_timer(notification.id)
        if notification.duration != 0:
            self._schedule_removal(notification.id, notification.duration)

        others = [n for n in self._notifications if n.id != notification.id]
        kept = (notification, *others)[: self.limit]
        for evicted in (notification, *others)[self.limit :]:
            self._cancel_timer(evicted.id)

        self._publish(kept)
        return notification

    def notify(
        self,
        title: str | None = None,
        description: str | None = None,
        variant: str = "default",
        duration: int | None = None,
        **data: Any,
    ) -> NotificationHandle:
        """Build and add a notification; return a handle bound to its id."""
        notification = self.add(
            Notification(
                title=title,
                description=description,
                variant=variant,
                duration=NOTIFICATION_REMOVE_DELAY if duration is None else duration,
                data=data,
            )
        )
        return NotificationHandle(notification.id, self)

    def update(self, notification_id: str | None, **changes: Any) -> None:
        """
        Merge ``changes`` into an existing notification.

        Unknown keys and an explicit ``data`` mapping are both merged into
        ``data``. Missing or unknown ids are a no-op. The entry's timer is
        replaced according to the merged duration.
        """
        if not notification_id:
            return
        current = self.get(notification_id)
        if current is None:
            return

        changes.pop("id", None)
        known = {k: v for k, v in changes.items() if k in _NOTIFICATION_FIELDS}
        extra = {k: v for k, v in changes.items() if k not in _NOTIFICATION_FIELDS}
        if extra or "data" in known:
            known["data"] = {**current.data, **(known.get("data") or {}), **extra}
        merged = replace(current, **known)

        self._cancel_timer(notification_id)
        if isinstance(merged.duration, (int, float)) and merged.duration > 0:
            self._schedule_removal(notification_id, merged.duration)

        self._publish(
            tuple(merged if n.id == notification_id else n for n in self._notifications)
        )

    def dismiss(self, notification_id: str | None = None) -> None:
        """
        Close the matching notification, or every notification when no id is given.

        Notifications with duration 0 stay open. Closed entries are removed after
        ``remove_delay`` unless a removal timer is already pending for them.
        """
        dismissed = []
        for notification in self._notifications:
            if notification_id is not None and notification.id != notification_id:
                continue
            if notification.duration == 0:
                continue
            dismissed.append(notification.id)
            if notification.id not in self._timers:
                self._schedule_removal(notification.id, self.remove_delay)

        if not dismissed:
            return
        self._publish(
            tuple(
                replace(n, open=False) if n.id in dismissed else n for n in self._notifications
            )
        )

    def remove(self, notification_id: str | None = None) -> None:
        """Delete the matching notification, or all of them when no id is given."""
        if notification_id is None:
            for pending in list(self._timers):
                self._cancel_timer(pending)
            self._publish(())
            return

        self._cancel_timer(notification_id)
        self._publish(tuple(n for n in self._notifications if n.id != notification_id))
