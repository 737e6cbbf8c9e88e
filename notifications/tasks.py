"""
Celery tasks for notifications.
"""
import logging
from datetime import date
from typing import Optional
from zoneinfo import ZoneInfo

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from notifications.models import DigestQueueItem, Employee
from notifications.services.channels.email import send_digest

logger = logging.getLogger(__name__)


@shared_task
def send_notification_digests(today: Optional[str] = None):
    """
    Daily at 9 AM: send each employee one email with their queued items.

    Args:
        today: ISO date override; defaults to today in NOTIFICATION_DEFAULT_TIMEZONE
    """
    if today:
        day = date.fromisoformat(today)
    else:
        day = timezone.now().astimezone(ZoneInfo(settings.NOTIFICATION_DEFAULT_TIMEZONE)).date()

    employee_ids = (
        DigestQueueItem.objects.filter(scheduled_for=day, sent_at__isnull=True)
        .values_list('employee_id', flat=True).distinct()
    )
    sent = failed = items = 0
    for employee in Employee.objects.filter(id__in=list(employee_ids)):
        try:
            count = send_digest(employee, day)
        except Exception as e:
            # One bad address must not block the other digests
            logger.error(f"Digest for employee {employee.id} failed: {e}", exc_info=True)
            failed += 1
            continue
        if count:
            sent += 1
            items += count

    summary = {'date': day.isoformat(), 'digests_sent': sent, 'items': items, 'failed': failed}
    logger.info(f"Notification digests: {summary}")
    return summary
