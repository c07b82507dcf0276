"""Notifications telling owners their request was received or finished."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any
from uuid import UUID

from verdict.logging_config import get_logger
from verdict.services.events import REQUEST_COMPLETED, REQUEST_CREATED, EventBus

logger = get_logger(__name__)


class NotificationSender(ABC):
    @abstractmethod
    async def send(
        self,
        account_id: UUID,
        notification_type: str,
        title: str,
        body: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        ...


class LoggingNotificationSender(NotificationSender):
    """Default sender: records the notification in the structured log."""

    async def send(
        self,
        account_id: UUID,
        notification_type: str,
        title: str,
        body: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        logger.info(
            "notification_sent",
            account_id=str(account_id),
            notification_type=notification_type,
            title=title,
            body=body,
            metadata=metadata or {},
        )


def register_notification_handlers(bus: EventBus, sender: NotificationSender) -> None:
    """Subscribe owner notifications to request lifecycle events."""

    async def on_created(event: dict[str, Any]) -> None:
        await sender.send(
            UUID(event["owner_id"]),
            "request_received",
            "Your request is live",
            f"We'll collect {event['target_verdict_count']} verdicts for your request.",
            {"request_id": event["request_id"], "tier": event.get("tier")},
        )

    async def on_completed(event: dict[str, Any]) -> None:
        await sender.send(
            UUID(event["owner_id"]),
            "results_ready",
            "Your results are ready",
            "All verdicts are in. Open your request to see the consensus.",
            {"request_id": event["request_id"], "variant": event.get("variant")},
        )

    bus.subscribe(REQUEST_CREATED, on_created)
    bus.subscribe(REQUEST_COMPLETED, on_completed)
