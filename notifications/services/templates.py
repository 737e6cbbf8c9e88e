"""
Notification event catalogue and template interpolation.
"""
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from django.core.serializers.json import DjangoJSONEncoder

from notifications.models import Priority


@dataclass(frozen=True)
class EventConfig:
    title_template: str
    body_template: Optional[str]
    priority: str
    entity_type: str
    permission: str
    chat_channel: Optional[str] = None


# Events that always go to every permission holder, even when assigned
BROADCAST_EVENTS = frozenset({'quote_submitted'})

EVENT_CONFIGS: Dict[str, EventConfig] = {
    # Quote journey (customer activity)
    'quote_email_opened': EventConfig(
        'Quote {{reference}} email opened',
        '{{contact_name}} opened the quote email',
        Priority.NORMAL, 'quote', 'quotes',
    ),
    'quote_status_viewed': EventConfig(
        'Quote {{reference}} status page viewed',
        'Customer is checking quote status',
        Priority.NORMAL, 'quote', 'quotes',
    ),
    'quote_accept_page_viewed': EventConfig(
        'Quote {{reference}} accept page viewed',
        '{{contact_name}} is reviewing the quote to accept/decline',
        Priority.HIGH, 'quote', 'quotes',
    ),
    'quote_acceptance_started': EventConfig(
        'Quote {{reference}} acceptance in progress',
        '{{contact_name}} started filling the acceptance form',
        Priority.HIGH, 'quote', 'quotes',
    ),
    'quote_accepted': EventConfig(
        'Quote {{reference}} ACCEPTED',
        '{{contact_name}} accepted the quote for {{amount}}',
        Priority.URGENT, 'quote', 'quotes', chat_channel='quotes-accepted',
    ),
    'quote_rejected': EventConfig(
        'Quote {{reference}} declined',
        '{{contact_name}} declined: {{reason}}',
        Priority.HIGH, 'quote', 'quotes',
    ),
    'quote_expired': EventConfig(
        'Quote {{reference}} expired',
        'Quote expired without customer action',
        Priority.NORMAL, 'quote', 'quotes',
    ),
    'quote_expiring_soon': EventConfig(
        'Quote {{reference}} expires in 24h',
        "Customer hasn't responded. Consider following up.",
        Priority.HIGH, 'quote', 'quotes',
    ),
    # Quote admin
    'quote_submitted': EventConfig(
        'New quote request',
        '{{contact_name}} requested a quote for {{container}} to {{delivery_zip}}',
        Priority.HIGH, 'quote', 'quotes', chat_channel='new-quotes',
    ),
    'quote_assigned': EventConfig(
        'Quote {{reference}} assigned to you',
        "You've been assigned to handle this quote",
        Priority.NORMAL, 'quote', 'quotes',
    ),
    'quote_sent': EventConfig(
        'Quote {{reference}} sent',
        'Quote for {{amount}} sent to {{contact_name}}',
        Priority.NORMAL, 'quote', 'quotes',
    ),
    # Loads
    'load_status_changed': EventConfig(
        'Load {{reference}} status: {{status}}',
        'Container {{container}} moved to {{status}}',
        Priority.NORMAL, 'load', 'loads',
    ),
    'load_delayed': EventConfig(
        'Load {{reference}} DELAYED',
        'Delivery date pushed from {{old_date}} to {{new_date}}',
        Priority.HIGH, 'load', 'loads', chat_channel='load-alerts',
    ),
    'load_delivered': EventConfig(
        'Load {{reference}} delivered',
        'Container {{container}} delivered successfully',
        Priority.NORMAL, 'load', 'loads',
    ),
    'load_issue': EventConfig(
        'Load {{reference}} ISSUE',
        '{{issue_description}}',
        Priority.URGENT, 'load', 'loads', chat_channel='load-alerts',
    ),
}

_PLACEHOLDER = re.compile(r'\{\{(\w+)\}\}')


class UnknownEventError(Exception):
    """Raised when dispatching an event that has no configuration."""
    pass


def interpolate(template: str, data: Dict[str, Any]) -> str:
    """Replace {{key}} with str(data[key]); missing or None values become ''."""
    def _replace(match):
        value = data.get(match.group(1))
        return '' if value is None else str(value)
    return _PLACEHOLDER.sub(_replace, template)


@dataclass
class NotificationMessage:
    event: str
    title: str
    body: Optional[str]
    priority: str
    entity_type: str
    entity_id: str
    metadata: Dict[str, Any]


def get_event_config(event: str) -> EventConfig:
    try:
        return EVENT_CONFIGS[event]
    except KeyError:
        raise UnknownEventError(f"Unknown notification event: {event}") from None


def build_message(event: str, entity_id: Any, data: Dict[str, Any]) -> NotificationMessage:
    config = get_event_config(event)
    return NotificationMessage(
        event=event,
        title=interpolate(config.title_template, data),
        body=interpolate(config.body_template, data) if config.body_template else None,
        priority=config.priority,
        entity_type=config.entity_type,
        entity_id=str(entity_id),
        metadata=json.loads(json.dumps(data, cls=DjangoJSONEncoder)),
    )


def entity_link(site_url: str, entity_type: Optional[str], entity_id: Any) -> str:
    if entity_type == 'quote':
        return f"{site_url}/admin/quotes/{entity_id}"
    if entity_type == 'load':
        return f"{site_url}/admin/loads/{entity_id}"
    return ''
