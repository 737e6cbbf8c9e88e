"""
In-app notification channel: rows in the Notification table.
"""
import logging
from typing import Iterable, List

from django.utils import timezone

from notifications.models import Employee, Notification
from notifications.services.templates import NotificationMessage

logger = logging.getLogger(__name__)


def send_in_app(employee: Employee, message: NotificationMessage) -> Notification:
    notification = Notification.objects.create(
        recipient=employee,
        event_type=message.event,
        title=message.title,
        body=message.body,
        priority=message.priority,
        entity_type=message.entity_type,
        entity_id=message.entity_id,
        metadata=message.metadata,
    )
    logger.debug(f"In-app notification {notification.id} created for employee {employee.id}")
    return notification


def mark_read(notification_ids: Iterable[int]) -> int:
    return Notification.objects.filter(
        id__in=list(notification_ids), read_at__isnull=True
    ).update(read_at=timezone.now())


def mark_all_read(employee: Employee) -> int:
    return Notification.objects.filter(
        recipient=employee, read_at__isnull=True
    ).update(read_at=timezone.now())


def dismiss(notification_id: int) -> bool:
    """Hide a notification from the feed but keep it in history."""
    return bool(
        Notification.objects.filter(id=notification_id).update(dismissed_at=timezone.now())
    )


def unread_count(employee: Employee) -> int:
    return Notification.objects.filter(
        recipient=employee, read_at__isnull=True, dismissed_at__isnull=True
    ).count()


def recent(employee: Employee, limit: int = 20) -> List[Notification]:
    return list(
        Notification.objects.filter(recipient=employee, dismissed_at__isnull=True)
        .order_by('-created_at', '-id')[:limit]
    )
