"""Notifications module: per-user inboxes fed by every other module.

The module subscribes ``<module>.*`` for each other business module and turns
events that name a user into inbox entries. It never subscribes to its own
topics; a notification about a notification would loop forever.
"""

import arrow
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from arena_server.api.dependencies import service
from arena_server.constants import ALL_MODULES, MODULE_NOTIFICATIONS, MODULE_USERS
from arena_server.domains.contracts import NotificationCreatedPayload, NotificationsTopics
from arena_server.event_bus import Event, module_pattern
from arena_server.modules.base import Module
from arena_server.utils.id_generator import generate_short_id

# Payload fields that identify a user to notify
RECIPIENT_FIELDS = ("user_id", "friend_id", "captain_id", "organizer_id")


class NotificationResponse(BaseModel):
    notification_id: str
    recipient_id: str
    source_topic: str
    source_event_id: str
    text: str
    created_at: str = Field(default_factory=lambda: arrow.utcnow().isoformat())
    read: bool = False


def recipients_of(event: Event) -> list[str]:
    """Distinct user ids named by the event payload, in field order."""
    recipients: list[str] = []
    for field in RECIPIENT_FIELDS:
        value = event.payload.get(field)
        if isinstance(value, str) and value and value not in recipients:
            recipients.append(value)
    return recipients


def describe(event: Event) -> str:
    entity_action = event.topic.split(".", 1)[1] if "." in event.topic else event.topic
    return f"{event.module}: {entity_action.replace('.', ' ')} ({event.aggregate_id})"


class NotificationService:
    def __init__(self, module: Module):
        self._module = module
        self._inboxes: dict[str, list[NotificationResponse]] = {}
        self.received_by_module: dict[str, int] = {}

    def notify(self, event: Event) -> list[NotificationResponse]:
        """Create one notification per recipient named by the event."""
        self.received_by_module[event.module] = self.received_by_module.get(event.module, 0) + 1

        created = []
        for recipient in recipients_of(event):
            notification = NotificationResponse(
                notification_id=generate_short_id(prefix="ntf"),
                recipient_id=recipient,
                source_topic=event.topic,
                source_event_id=event.event_id,
                text=describe(event),
            )
            self._inboxes.setdefault(recipient, []).append(notification)
            self._module.publish(
                NotificationsTopics.NOTIFICATION_CREATED,
                notification.notification_id,
                "Notification",
                NotificationCreatedPayload(
                    notification_id=notification.notification_id,
                    recipient_id=recipient,
                    source_topic=event.topic,
                ),
                caused_by=event,
            )
            created.append(notification)
        return created

    def inbox(self, user_id: str, unread_only: bool = False) -> list[NotificationResponse]:
        notifications = self._inboxes.get(user_id, [])
        if unread_only:
            notifications = [n for n in notifications if not n.read]
        return list(notifications)

    def mark_read(self, user_id: str) -> int:
        """Mark the whole inbox read. Returns how many were unread."""
        unread = [n for n in self._inboxes.get(user_id, []) if not n.read]
        for notification in unread:
            notification.read = True
        return len(unread)


class NotificationsModule(Module):
    name = MODULE_NOTIFICATIONS
    version = "1.0.0"
    description = "User notification inboxes"
    depends_on = (MODULE_USERS,)
    publishes = {NotificationsTopics.NOTIFICATION_CREATED: NotificationCreatedPayload}

    def __init__(self, context):
        super().__init__(context)
        self.notifications = NotificationService(self)

    def _register_handlers(self) -> None:
        for module_name in ALL_MODULES:
            if module_name != self.name:
                self.subscribe(module_pattern(module_name), self.on_event)

    async def on_event(self, event: Event) -> None:
        created = self.notifications.notify(event)
        if created:
            self.log.debug(f"{len(created)} notifications from {event.topic}")

    async def _initialize(self) -> None:
        self.services.register_singleton(NotificationService, self.notifications)

    def _build_router(self) -> APIRouter:
        router = APIRouter()

        @router.get("/inbox/{user_id}", response_model=list[NotificationResponse])
        async def inbox(
            user_id: str,
            unread_only: bool = False,
            notifications: NotificationService = Depends(service(NotificationService)),
        ) -> list[NotificationResponse]:
            return notifications.inbox(user_id, unread_only)

        @router.post("/inbox/{user_id}/read")
        async def mark_read(
            user_id: str,
            notifications: NotificationService = Depends(service(NotificationService)),
        ) -> dict[str, int]:
            return {"marked_read": notifications.mark_read(user_id)}

        return router
