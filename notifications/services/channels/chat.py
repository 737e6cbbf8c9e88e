"""
Chat channel: Slack-compatible incoming webhooks.
"""
import logging
from datetime import datetime
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

import httpx
from django.conf import settings
from django.utils import timezone

from notifications.models import Priority
from notifications.services.templates import NotificationMessage, entity_link, get_event_config

logger = logging.getLogger(__name__)

PRIORITY_EMOJI = {
    Priority.LOW: '\U0001f4dd',
    Priority.NORMAL: '\U0001f4cb',
    Priority.HIGH: '⚠️',
    Priority.URGENT: '\U0001f6a8',
}

ENTITY_EMOJI = {
    'quote': '\U0001f4b0',
    'load': '\U0001f69b',
    'customer': '\U0001f464',
}

LINK_TEXT = {
    'quote': 'View Quote',
    'load': 'View Load',
}

SENT = 'sent'
SKIPPED = 'skipped'
FAILED = 'failed'


def _format_amount(amount) -> str:
    try:
        return f"${float(amount):,.2f}"
    except (TypeError, ValueError):
        return str(amount)


def build_blocks(message: NotificationMessage, now: Optional[datetime] = None) -> list:
    """Header, body, metadata fields, link button and a timestamp footer."""
    blocks = [{
        'type': 'header',
        'text': {
            'type': 'plain_text',
            'text': f"{PRIORITY_EMOJI.get(message.priority, '')} {message.title}",
            'emoji': True,
        },
    }]

    if message.body:
        blocks.append({'type': 'section', 'text': {'type': 'mrkdwn', 'text': message.body}})

    metadata = message.metadata or {}
    fields = []
    if metadata.get('reference'):
        fields.append({'type': 'mrkdwn', 'text': f"*Reference:*\n{metadata['reference']}"})
    if metadata.get('contact_name'):
        fields.append({'type': 'mrkdwn', 'text': f"*Contact:*\n{metadata['contact_name']}"})
    if metadata.get('amount'):
        fields.append({'type': 'mrkdwn', 'text': f"*Amount:*\n{_format_amount(metadata['amount'])}"})
    if metadata.get('container'):
        fields.append({'type': 'mrkdwn', 'text': f"*Container:*\n{metadata['container']}"})
    if fields:
        blocks.append({'type': 'section', 'fields': fields})

    link = entity_link(settings.SITE_URL, message.entity_type, message.entity_id)
    if link:
        blocks.append({
            'type': 'actions',
            'elements': [{
                'type': 'button',
                'text': {
                    'type': 'plain_text',
                    'text': f"{ENTITY_EMOJI.get(message.entity_type, '')} {LINK_TEXT[message.entity_type]}",
                    'emoji': True,
                },
                'url': link,
                'style': 'danger' if message.priority == Priority.URGENT else 'primary',
            }],
        })

    sent_at = (now or timezone.now()).astimezone(ZoneInfo('America/Los_Angeles'))
    blocks.append({
        'type': 'context',
        'elements': [{
            'type': 'mrkdwn',
            'text': f"Notification sent at {sent_at.strftime('%m/%d/%Y, %I:%M:%S %p')} PT",
        }],
    })
    return blocks


def resolve_webhook_url(event: str) -> Optional[str]:
    """Channel-specific webhook for the event, else the default webhook."""
    channel = get_event_config(event).chat_channel
    if channel:
        url = (getattr(settings, 'SLACK_CHANNEL_WEBHOOKS', {}) or {}).get(channel)
        if url:
            return url
    return getattr(settings, 'SLACK_WEBHOOK_URL', '') or None


def post_message(url: str, payload: dict) -> Tuple[bool, Optional[str]]:
    """
    POST a message to a chat webhook.

    Returns:
        (success, error). Only 2xx counts as success.
    """
    try:
        response = httpx.post(url, json=payload, timeout=settings.SLACK_TIMEOUT_SECONDS)
    except httpx.HTTPError as e:
        logger.error(f"Chat webhook request failed: {e}")
        return False, str(e)

    if not 200 <= response.status_code < 300:
        logger.error(f"Chat webhook returned {response.status_code}: {response.text}")
        return False, f"Slack API error: {response.status_code}"
    return True, None


def send_chat_notification(message: NotificationMessage,
                           now: Optional[datetime] = None) -> Tuple[str, Optional[str]]:
    """Send one shared chat message for a dispatch. Returns (outcome, error)."""
    if not getattr(settings, 'SLACK_NOTIFICATIONS_ENABLED', True):
        return SKIPPED, None
    if message.event in getattr(settings, 'SLACK_DISABLED_EVENTS', ()):
        return SKIPPED, None

    url = resolve_webhook_url(message.event)
    if not url:
        return SKIPPED, None

    ok, error = post_message(url, {'text': message.title, 'blocks': build_blocks(message, now)})
    if ok:
        logger.info(f"Chat notification {message.event} sent")
        return SENT, None
    return FAILED, error
