"""
Email notification channel.

Immediate sends go through Django's configured email backend. Anything
that arrives during the recipient's quiet hours, or below their priority
threshold, is queued for the next morning's digest instead.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from notifications.models import (
    PRIORITY_ORDER,
    DigestQueueItem,
    Employee,
    Notification,
    NotificationPreferences,
    Priority,
)
from notifications.services.templates import NotificationMessage, entity_link

logger = logging.getLogger(__name__)

SENT = 'sent'
QUEUED = 'queued'
SKIPPED = 'skipped'

EMAIL_SUBJECT_SUFFIX = ' - New Stream Logistics'

_SUBJECT_PREFIX = {
    Priority.HIGH: '⚠️ ',
    Priority.URGENT: '\U0001f6a8 ',
}


def _zone(name: Optional[str]) -> ZoneInfo:
    default = getattr(settings, 'NOTIFICATION_DEFAULT_TIMEZONE', 'America/Los_Angeles')
    try:
        return ZoneInfo(name or default)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{name}', using {default}")
        return ZoneInfo(default)


def is_in_quiet_hours(quiet_hours: Optional[dict], now: Optional[datetime] = None) -> bool:
    """
    True when `now` falls inside the HH:MM quiet window in the configured
    timezone. A start later than the end means the window spans midnight.
    """
    if not quiet_hours or not quiet_hours.get('enabled'):
        return False
    start, end = quiet_hours.get('start'), quiet_hours.get('end')
    if not start or not end:
        return False

    now = now or timezone.now()
    current = now.astimezone(_zone(quiet_hours.get('timezone'))).strftime('%H:%M')
    if start > end:
        return current >= start or current < end
    return start <= current < end


def meets_priority_threshold(priority: str, threshold: str) -> bool:
    try:
        return PRIORITY_ORDER.index(priority) >= PRIORITY_ORDER.index(threshold)
    except ValueError:
        return False


def next_digest_date(preferences: Optional[NotificationPreferences],
                     now: Optional[datetime] = None) -> date:
    """The day after `now` in the recipient's timezone; digests go out at 9 AM."""
    now = now or timezone.now()
    tz_name = (preferences.quiet_hours or {}).get('timezone') if preferences else None
    return now.astimezone(_zone(tz_name)).date() + timedelta(days=1)


def queue_for_digest(employee: Employee, message: NotificationMessage,
                     preferences: Optional[NotificationPreferences] = None,
                     notification: Optional[Notification] = None,
                     now: Optional[datetime] = None) -> DigestQueueItem:
    item = DigestQueueItem.objects.create(
        employee=employee,
        notification=notification,
        event_type=message.event,
        title=message.title,
        body=message.body,
        entity_type=message.entity_type,
        entity_id=message.entity_id,
        scheduled_for=next_digest_date(preferences, now),
    )
    logger.debug(f"{message.event} queued for {employee.id} digest on {item.scheduled_for}")
    return item


def send_email_notification(
    employee: Employee,
    message: NotificationMessage,
    preferences: Optional[NotificationPreferences],
    notification: Optional[Notification] = None,
    now: Optional[datetime] = None
) -> Tuple[str, Optional[DigestQueueItem]]:
    """
    Send, queue or skip an email for one recipient.

    Returns:
        (outcome, digest_item) where outcome is 'sent', 'queued' or 'skipped'

    Raises:
        Exception: Whatever the email backend raises on a failed send
    """
    if preferences and not preferences.channel_enabled('email'):
        return SKIPPED, None
    if preferences and preferences.event_channel_override(message.event, 'email') is False:
        return SKIPPED, None

    defer = False
    if preferences and message.priority != Priority.URGENT and is_in_quiet_hours(preferences.quiet_hours, now):
        defer = True
    else:
        threshold = preferences.email_priority_threshold if preferences else Priority.HIGH
        defer = not meets_priority_threshold(message.priority, threshold)

    if defer:
        return QUEUED, queue_for_digest(employee, message, preferences, notification, now)

    if not employee.email:
        raise ValueError(f"Employee {employee.id} has no email address")

    link = entity_link(settings.SITE_URL, message.entity_type, message.entity_id)
    lines = [message.title, '', message.body or '']
    if link:
        lines += ['', f"View details: {link}"]
    lines += [
        '',
        '---',
        'New Stream Logistics',
        'You can manage your notification preferences in your admin settings.',
    ]

    send_mail(
        subject=f"{_SUBJECT_PREFIX.get(message.priority, '')}{message.title}{EMAIL_SUBJECT_SUFFIX}",
        message='\n'.join(lines).strip(),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[employee.email],
        fail_silently=False,
    )
    logger.info(f"Email notification {message.event} sent to employee {employee.id}")
    return SENT, None


def send_digest(employee: Employee, today: Optional[date] = None) -> int:
    """
    Send one email with every unsent digest item scheduled for `today`.

    Items are marked sent so they are never included again.

    Returns:
        Number of notifications included (0 when nothing was sent)
    """
    today = today or timezone.localdate()
    items = list(
        DigestQueueItem.objects
        .filter(employee=employee, scheduled_for=today, sent_at__isnull=True)
        .order_by('created_at', 'id')
    )
    if not items:
        return 0
    if not employee.email:
        logger.warning(f"Employee {employee.id} has {len(items)} digest items but no email address")
        return 0

    entries = []
    for item in items:
        entry = f"• {item.title}"
        if item.body:
            entry += f"\n  {item.body}"
        link = entity_link(settings.SITE_URL, item.entity_type, item.entity_id)
        if link:
            entry += f"\n  View: {link}"
        entries.append(entry)

    count = len(items)
    plural = 's' if count > 1 else ''
    body = '\n'.join([
        'Your Daily Notification Digest',
        '==============================',
        '',
        '\n\n'.join(entries),
        '',
        '---',
        'New Stream Logistics',
        f"Manage your notification preferences: {settings.SITE_URL}/admin/settings",
    ])

    send_mail(
        subject=f"Daily Digest: {count} notification{plural}{EMAIL_SUBJECT_SUFFIX}",
        message=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[employee.email],
        fail_silently=False,
    )
    DigestQueueItem.objects.filter(id__in=[item.id for item in items]).update(sent_at=timezone.now())
    logger.info(f"Digest with {count} notification{plural} sent to employee {employee.id}")
    return count
