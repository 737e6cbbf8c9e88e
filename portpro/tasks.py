"""
Celery tasks for PortPro sync: webhook processing, dead-letter retries,
polling, reconciliation, health checks and log cleanup.
"""
import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from portpro.models import SyncRun, WebhookLog
from portpro.services import monitoring
from portpro.services.dead_letter import DeadLetterQueue
from portpro.services.errors import VendorUnavailable
from portpro.services.idempotency import IdempotencyStore
from portpro.services.reconciliation import Reconciler
from portpro.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)


def _vendor_configured() -> bool:
    return bool(settings.PORTPRO_ACCESS_TOKEN and settings.PORTPRO_REFRESH_TOKEN)


@shared_task
def process_webhook_event(raw_body: str):
    """
    Run one verified webhook body through the sync engine.

    Failures are dead-lettered by the engine, so this task never retries.
    """
    result = SyncEngine.from_settings().handle(raw_body)
    summary = {
        'outcome': result.outcome.value,
        'event_type': result.event_type,
        'load_id': result.load_id,
        'dead_letter_id': result.dead_letter_id,
    }
    if result.error:
        logger.warning(f"Webhook {result.event_type} dead-lettered as {result.dead_letter_id}: {result.error}")
    return summary


@shared_task
def retry_dead_letters():
    """Every 15 minutes: alert on DLQ overflow, then retry every due entry."""
    dead_letters = DeadLetterQueue.from_settings()

    if dead_letters.is_over_threshold(settings.DLQ_ALERT_THRESHOLD):
        stats = dead_letters.stats()
        logger.warning(f"DLQ over threshold: {stats['count']} entries")
        monitoring.send_alert('dlq_overflow', stats)

    engine = SyncEngine.from_settings()
    return dead_letters.retry_due(engine.reprocess)


@shared_task(
    bind=True,
    autoretry_for=(VendorUnavailable,),
    retry_backoff=60,  # Exponential backoff starting at 60s
    retry_backoff_max=240,
    max_retries=2,
    retry_jitter=False
)
def poll_portpro_loads(self):
    """Every 5 minutes: pull one page of loads from the stored cursor."""
    if not _vendor_configured():
        logger.warning("PortPro poll skipped: credentials not configured")
        return {'skipped': True}
    return Reconciler.from_settings().poll()


@shared_task
def reconcile_portpro_loads(triggered_by: str = 'schedule'):
    """Every 4 hours: full reconciliation against the vendor's load list."""
    if not _vendor_configured():
        logger.warning("PortPro reconciliation skipped: credentials not configured")
        return {'skipped': True}
    return Reconciler.from_settings().reconcile(triggered_by=triggered_by)


@shared_task
def check_sync_health():
    """Hourly: compute sync metrics and raise stale / failure-rate alerts."""
    return monitoring.check_sync_health()


@shared_task
def cleanup_sync_logs():
    """
    Daily: drop webhook logs older than WEBHOOK_LOG_RETENTION_DAYS, sync runs
    older than SYNC_RUN_RETENTION_DAYS, and dedup keys that lost their TTL.
    """
    now = timezone.now()
    webhook_logs, _ = WebhookLog.objects.filter(
        received_at__lt=now - timedelta(days=settings.WEBHOOK_LOG_RETENTION_DAYS)
    ).delete()
    sync_runs, _ = SyncRun.objects.filter(
        started_at__lt=now - timedelta(days=settings.SYNC_RUN_RETENTION_DAYS)
    ).delete()
    dedup_keys = IdempotencyStore.from_settings().cleanup_keys_without_ttl()

    summary = {'webhook_logs': webhook_logs, 'sync_runs': sync_runs, 'dedup_keys': dedup_keys}
    logger.info(f"Sync log cleanup: {summary}")
    return summary
