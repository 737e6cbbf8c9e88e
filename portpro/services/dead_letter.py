"""
Dead-letter queue for webhook events that failed processing.

Entries live in the database (DeadLetterEntry) so they survive worker
restarts. Retries are driven by the `retry_dead_letters` beat task with
exponential backoff: base_delay * 2**retry_count, capped at max_delay.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union

from django.conf import settings
from django.db.models import Count, Min
from django.utils import timezone

from portpro.models import DeadLetterEntry
from portpro.services.errors import SyncError, VendorUnavailable

logger = logging.getLogger(__name__)

DEFAULT_BASE_DELAY = timedelta(seconds=60)
DEFAULT_MAX_DELAY = timedelta(hours=4)
DEFAULT_MAX_RETRIES = 5
DEFAULT_ALERT_THRESHOLD = 50

# Vendor outages tend to last longer than a minute
VENDOR_UNAVAILABLE_DELAY_FACTOR = 5

RetryHandler = Callable[[str, str], object]


class DeadLetterQueue:
    """Stores failed events and schedules their retries."""

    def __init__(self, base_delay: timedelta = DEFAULT_BASE_DELAY,
                 max_delay: timedelta = DEFAULT_MAX_DELAY,
                 max_retries: int = DEFAULT_MAX_RETRIES):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_retries = max_retries

    @classmethod
    def from_settings(cls) -> 'DeadLetterQueue':
        return cls(
            base_delay=timedelta(seconds=getattr(settings, 'DLQ_BASE_DELAY_SECONDS', 60)),
            max_delay=timedelta(seconds=getattr(settings, 'DLQ_MAX_DELAY_SECONDS', 4 * 60 * 60)),
            max_retries=getattr(settings, 'DLQ_MAX_RETRIES', DEFAULT_MAX_RETRIES),
        )

    def get_backoff_delay(self, retry_count: int) -> timedelta:
        """Delay before the next attempt after `retry_count` failed retries."""
        seconds = self.base_delay.total_seconds() * (2 ** retry_count)
        return min(timedelta(seconds=seconds), self.max_delay)

    def push(self, event_type: str, payload: str, error: Union[Exception, str],
             error_kind: Optional[str] = None, now: Optional[datetime] = None) -> DeadLetterEntry:
        """
        Record a failed event for later retry.

        Args:
            event_type: Vendor event tag (e.g. 'load#status_updated')
            payload: Raw request body
            error: The exception (or message) that stopped processing
            error_kind: Overrides the kind derived from the exception class

        Returns:
            The created DeadLetterEntry
        """
        now = now or timezone.now()
        if error_kind is None:
            error_kind = error.kind if isinstance(error, SyncError) else 'unknown'

        delay = self.base_delay
        if isinstance(error, VendorUnavailable) or error_kind == VendorUnavailable.kind:
            delay = min(self.base_delay * VENDOR_UNAVAILABLE_DELAY_FACTOR, self.max_delay)

        entry = DeadLetterEntry.objects.create(
            event_type=event_type or 'unknown',
            payload=payload,
            error_message=str(error),
            error_kind=error_kind,
            retry_count=0,
            next_retry_at=now + delay,
            status=DeadLetterEntry.Status.PENDING,
            first_failed_at=now,
            last_attempt_at=now,
        )
        logger.warning(
            f"Event {event_type} added to DLQ as entry {entry.id} "
            f"({error_kind}): {error}"
        )
        return entry

    def list_due(self, now: Optional[datetime] = None) -> List[DeadLetterEntry]:
        now = now or timezone.now()
        return list(
            DeadLetterEntry.objects
            .filter(next_retry_at__lte=now)
            .exclude(status=DeadLetterEntry.Status.EXHAUSTED)
            .order_by('next_retry_at', 'id')
        )

    def retry(self, entry: DeadLetterEntry, handler: RetryHandler,
              now: Optional[datetime] = None) -> bool:
        """
        Re-run one entry through `handler(event_type, payload)`.

        On success the entry is deleted. On failure the retry count and
        schedule are updated; once the count reaches max_retries the entry
        is marked exhausted and left for an operator.

        Returns:
            True if the handler succeeded
        """
        now = now or timezone.now()
        entry.status = DeadLetterEntry.Status.RETRYING
        entry.last_attempt_at = now
        entry.save(update_fields=['status', 'last_attempt_at'])

        try:
            handler(entry.event_type, entry.payload)
        except Exception as e:
            entry.retry_count += 1
            entry.error_message = str(e)
            if isinstance(e, SyncError):
                entry.error_kind = e.kind
            if entry.retry_count >= self.max_retries:
                entry.status = DeadLetterEntry.Status.EXHAUSTED
                entry.next_retry_at = None
                logger.error(
                    f"DLQ entry {entry.id} ({entry.event_type}) exhausted after "
                    f"{entry.retry_count} retries: {e}"
                )
            else:
                entry.status = DeadLetterEntry.Status.PENDING
                entry.next_retry_at = now + self.get_backoff_delay(entry.retry_count)
                logger.warning(
                    f"DLQ entry {entry.id} retry {entry.retry_count}/{self.max_retries} "
                    f"failed, next attempt at {entry.next_retry_at.isoformat()}: {e}"
                )
            entry.save()
            return False

        logger.info(f"DLQ entry {entry.id} ({entry.event_type}) reprocessed successfully")
        entry.delete()
        return True

    def retry_due(self, handler: RetryHandler, now: Optional[datetime] = None) -> dict:
        """Retry every due entry. Returns counts of retried/succeeded/failed."""
        now = now or timezone.now()
        due = self.list_due(now)
        succeeded = 0
        failed = 0
        for entry in due:
            if self.retry(entry, handler, now=now):
                succeeded += 1
            else:
                failed += 1
        if due:
            logger.info(f"DLQ retry pass: {len(due)} retried, {succeeded} succeeded, {failed} failed")
        return {'retried': len(due), 'succeeded': succeeded, 'failed': failed}

    def get(self, entry_id: int) -> Optional[DeadLetterEntry]:
        return DeadLetterEntry.objects.filter(id=entry_id).first()

    def remove(self, entry_id: int) -> bool:
        deleted, _ = DeadLetterEntry.objects.filter(id=entry_id).delete()
        if deleted:
            logger.info(f"DLQ entry {entry_id} removed")
        return bool(deleted)

    def list_entries(self, limit: int = 100) -> List[DeadLetterEntry]:
        return list(DeadLetterEntry.objects.order_by('-last_attempt_at', '-id')[:limit])

    def stats(self) -> dict:
        entries = DeadLetterEntry.objects.all()
        by_event_type = {
            row['event_type']: row['total']
            for row in entries.values('event_type').annotate(total=Count('id')).order_by()
        }
        oldest = entries.aggregate(oldest=Min('first_failed_at'))['oldest']
        return {
            'count': entries.count(),
            'max_retries_reached': entries.filter(status=DeadLetterEntry.Status.EXHAUSTED).count(),
            'by_event_type': by_event_type,
            'oldest_item': oldest.isoformat() if oldest else None,
        }

    def is_over_threshold(self, threshold: int = DEFAULT_ALERT_THRESHOLD) -> bool:
        return DeadLetterEntry.objects.count() >= threshold
