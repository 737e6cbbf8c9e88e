"""
Sync health metrics and operator alerts.

Alerts go to the default chat webhook (SLACK_WEBHOOK_URL). When it is not
configured, alerting is disabled and `send_alert` returns False.
"""
import json
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from django.conf import settings
from django.utils import timezone

from notifications.services.channels.chat import post_message
from portpro.models import DeadLetterEntry, SyncRun, WebhookLog
from portpro.services.dead_letter import DeadLetterQueue

logger = logging.getLogger(__name__)

ALERT_TYPES = ('dlq_overflow', 'high_failure_rate', 'reconciliation_drift', 'sync_stale')

HEALTHY = 'healthy'
DEGRADED = 'degraded'
CRITICAL = 'critical'

DLQ_DEGRADED_COUNT = 20
DLQ_CRITICAL_COUNT = 50
EXHAUSTED_CRITICAL_COUNT = 10
RECONCILE_STALE_HOURS = 8
MIN_WEBHOOKS_FOR_RATE_ALERT = 10


def _header(text: str) -> dict:
    return {'type': 'header', 'text': {'type': 'plain_text', 'text': text, 'emoji': True}}


def _fields(*texts: str) -> dict:
    return {'type': 'section', 'fields': [{'type': 'mrkdwn', 'text': t} for t in texts]}


def _text(text: str) -> dict:
    return {'type': 'section', 'text': {'type': 'mrkdwn', 'text': text}}


def build_alert(alert_type: str, details: dict) -> dict:
    """Build the chat payload ({"text", "blocks"}) for an alert."""
    timestamp = details.get('timestamp') or timezone.now().isoformat()

    if alert_type == 'dlq_overflow':
        text = f"⚠️ PortPro DLQ Alert: {details.get('count')} failed webhooks"
        blocks = [
            _header('⚠️ PortPro Dead Letter Queue Alert'),
            _fields(
                f"*Failed Webhooks:*\n{details.get('count')}",
                f"*Max Retries Reached:*\n{details.get('max_retries_reached')}",
            ),
            _text(f"*By Event Type:*\n```{json.dumps(details.get('by_event_type') or {}, indent=2)}```"),
        ]
    elif alert_type == 'high_failure_rate':
        text = f"\U0001f6a8 PortPro High Failure Rate: {details.get('rate')}%"
        blocks = [
            _header('\U0001f6a8 PortPro High Webhook Failure Rate'),
            _fields(
                f"*Failure Rate:*\n{details.get('rate')}%",
                f"*Period:*\n{details.get('period')}",
                f"*Failed:*\n{details.get('failed')}",
                f"*Total:*\n{details.get('total')}",
            ),
        ]
    elif alert_type == 'reconciliation_drift':
        text = f"⚠️ PortPro Reconciliation: {details.get('discrepancies') or 'Error'}"
        if details.get('error'):
            summary = f"*Error:* {details['error']}"
        else:
            summary = (
                f"*Discrepancies Found:* {details.get('discrepancies')} "
                f"out of {details.get('total')} loads"
            )
        blocks = [_header('⚠️ PortPro Reconciliation Alert'), _text(summary)]
    elif alert_type == 'sync_stale':
        text = f"⚠️ PortPro Sync Stale: No sync in {details.get('hours')} hours"
        blocks = [
            _header('⚠️ PortPro Sync Stale'),
            _text(
                f"No successful sync in *{details.get('hours')}* hours.\n"
                f"Last sync: {details.get('last_sync') or 'Unknown'}"
            ),
        ]
    else:
        return {
            'text': f"PortPro Alert: {alert_type}",
            'blocks': [_text(f"*Alert Type:* {alert_type}\n```{json.dumps(details, indent=2, default=str)}```")],
        }

    blocks.append({
        'type': 'context',
        'elements': [{'type': 'mrkdwn', 'text': f"\U0001f550 {timestamp}"}],
    })
    return {'text': text, 'blocks': blocks}


def send_alert(alert_type: str, details: dict) -> bool:
    """Post an operator alert. Returns False when alerting is not configured or the post fails."""
    url = getattr(settings, 'SLACK_WEBHOOK_URL', '')
    if not url:
        logger.warning(f"Alert {alert_type} not sent: SLACK_WEBHOOK_URL not configured")
        return False

    ok, error = post_message(url, build_alert(alert_type, details))
    if ok:
        logger.info(f"Alert {alert_type} sent")
    else:
        logger.error(f"Alert {alert_type} failed: {error}")
    return ok


def get_sync_metrics(now: Optional[datetime] = None,
                     dead_letters: Optional[DeadLetterQueue] = None) -> dict:
    """
    Webhook volume, DLQ backlog and reconciliation recency, with an overall
    health verdict and the issues behind it.
    """
    now = now or timezone.now()
    dead_letters = dead_letters or DeadLetterQueue.from_settings()
    since = now - timedelta(hours=24)

    total = WebhookLog.objects.filter(received_at__gte=since).count()
    failed = DeadLetterEntry.objects.filter(first_failed_at__gte=since).count()
    dlq = dead_letters.stats()
    last_reconcile = (
        SyncRun.objects.filter(sync_type=SyncRun.SyncType.RECONCILE)
        .order_by('-started_at').first()
    )

    health = HEALTHY
    issues = []

    if dlq['count'] > DLQ_CRITICAL_COUNT:
        health = CRITICAL
        issues.append(f"DLQ has {dlq['count']} failed webhooks")
    elif dlq['count'] > DLQ_DEGRADED_COUNT:
        health = DEGRADED
        issues.append(f"DLQ has {dlq['count']} failed webhooks")

    if dlq['max_retries_reached'] > EXHAUSTED_CRITICAL_COUNT:
        health = CRITICAL
        issues.append(f"{dlq['max_retries_reached']} webhooks reached max retries")

    if last_reconcile is not None:
        hours_since = (now - last_reconcile.started_at).total_seconds() / 3600
        if hours_since > RECONCILE_STALE_HOURS:
            if health != CRITICAL:
                health = DEGRADED
            issues.append(f"No reconciliation in {round(hours_since)} hours")

    return {
        'webhooks_last_24h': {
            'total': total,
            'failed': failed,
            'rate': round(failed / total * 100) if total else 0,
        },
        'dlq': {
            'count': dlq['count'],
            'max_retries_reached': dlq['max_retries_reached'],
            'by_event_type': dlq['by_event_type'],
            'oldest_item': dlq['oldest_item'],
        },
        'last_reconciliation': {
            'time': last_reconcile.started_at.isoformat() if last_reconcile else None,
            'discrepancies': (last_reconcile.metadata or {}).get('discrepancies', 0) if last_reconcile else 0,
            'status': last_reconcile.status if last_reconcile else None,
        },
        'health': health,
        'issues': issues,
    }


def check_sync_health(now: Optional[datetime] = None,
                      alert: Callable[[str, dict], bool] = None) -> dict:
    """
    Compute metrics and raise sync_stale / high_failure_rate alerts.

    Stale means no completed sync run of any kind within SYNC_STALE_HOURS.
    """
    now = now or timezone.now()
    alert = alert or send_alert
    metrics = get_sync_metrics(now)
    alerts = []

    stale_hours = getattr(settings, 'SYNC_STALE_HOURS', 8)
    last_success = (
        SyncRun.objects.filter(status=SyncRun.Status.COMPLETED)
        .order_by('-started_at').first()
    )
    if last_success is None or last_success.started_at < now - timedelta(hours=stale_hours):
        hours = round((now - last_success.started_at).total_seconds() / 3600) if last_success else stale_hours
        alert('sync_stale', {
            'hours': hours,
            'last_sync': last_success.started_at.isoformat() if last_success else None,
        })
        alerts.append('sync_stale')

    webhooks = metrics['webhooks_last_24h']
    threshold = getattr(settings, 'WEBHOOK_FAILURE_RATE_THRESHOLD', 20)
    if webhooks['total'] >= MIN_WEBHOOKS_FOR_RATE_ALERT and webhooks['rate'] > threshold:
        alert('high_failure_rate', {
            'rate': webhooks['rate'],
            'period': '24 hours',
            'failed': webhooks['failed'],
            'total': webhooks['total'],
        })
        alerts.append('high_failure_rate')

    if metrics['health'] != HEALTHY:
        logger.warning(f"PortPro sync health {metrics['health']}: {metrics['issues']}")

    return {
        'healthy': metrics['health'] == HEALTHY,
        'health': metrics['health'],
        'issues': metrics['issues'],
        'alerts': alerts,
    }
