"""
Notification dispatcher.

Resolves recipients for an event, delivers in-app and email per recipient,
and posts a single chat message per dispatch. A failure in one channel or
for one recipient never stops the others; it is recorded in the result.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.apps import apps
from django.conf import settings

from notifications.models import Employee, NotificationPreferences
from notifications.services.channels import chat, email, in_app
from notifications.services.templates import (
    BROADCAST_EVENTS,
    NotificationMessage,
    build_message,
    get_event_config,
)

logger = logging.getLogger(__name__)

_ENTITY_MODELS = {
    'quote': 'quotes.Quote',
    'load': 'portpro.Load',
}


def _empty_channels() -> Dict[str, Dict[str, int]]:
    return {
        'in_app': {'sent': 0, 'failed': 0},
        'email': {'sent': 0, 'queued': 0, 'skipped': 0, 'failed': 0},
        'chat': {'sent': 0, 'skipped': 0, 'failed': 0},
    }


@dataclass
class DispatchResult:
    employees_notified: int = 0
    channels: Dict[str, Dict[str, int]] = field(default_factory=_empty_channels)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.employees_notified > 0 or self.channels['chat']['sent'] > 0


class NotificationDispatcher:

    def __init__(self, chat_enabled: bool = True):
        self.chat_enabled = chat_enabled

    @classmethod
    def from_settings(cls) -> 'NotificationDispatcher':
        return cls(chat_enabled=getattr(settings, 'SLACK_NOTIFICATIONS_ENABLED', True))

    # Recipient resolution

    @staticmethod
    def permission_holders(permission: str) -> List[Employee]:
        # Filtered in Python: JSONField containment lookups are not portable to SQLite
        return [e for e in Employee.objects.filter(is_active=True) if e.has_permission(permission)]

    @staticmethod
    def super_admins() -> List[Employee]:
        return list(Employee.objects.filter(is_active=True, is_super_admin=True))

    def broadcast_recipients(self, permission: str) -> List[Employee]:
        return _unique(self.permission_holders(permission) + self.super_admins())

    @staticmethod
    def entity_assignee(entity_type: str, entity_id: Any) -> Optional[Employee]:
        model_label = _ENTITY_MODELS.get(entity_type)
        if model_label is None:
            return None
        model = apps.get_model(model_label)
        try:
            entity = model.objects.select_related('assignee').get(pk=entity_id)
        except (model.DoesNotExist, ValueError, TypeError):
            logger.warning(f"{entity_type} {entity_id} not found while resolving notification recipients")
            return None
        assignee = entity.assignee
        return assignee if assignee is not None and assignee.is_active else None

    def resolve_recipients(self, event: str, entity_id: Any) -> List[Employee]:
        """
        Broadcast events go to every permission holder plus super admins.
        Entity events go to the entity's assignee plus super admins, or to
        the broadcast set when nobody is assigned.
        """
        config = get_event_config(event)
        if event in BROADCAST_EVENTS:
            return self.broadcast_recipients(config.permission)
        assignee = self.entity_assignee(config.entity_type, entity_id)
        if assignee is not None:
            return _unique([assignee] + self.super_admins())
        return self.broadcast_recipients(config.permission)

    # Delivery

    def _notify_employee(self, employee: Employee, message: NotificationMessage,
                         result: DispatchResult) -> None:
        notification = None
        try:
            notification = in_app.send_in_app(employee, message)
            result.channels['in_app']['sent'] += 1
        except Exception as e:
            logger.exception(f"In-app notification {message.event} failed for employee {employee.id}")
            result.channels['in_app']['failed'] += 1
            result.errors.append(f"Employee {employee.id} in_app: {e}")

        try:
            preferences, _ = NotificationPreferences.objects.get_or_create(employee=employee)
            outcome, _ = email.send_email_notification(employee, message, preferences, notification)
            result.channels['email'][outcome] += 1
        except Exception as e:
            logger.exception(f"Email notification {message.event} failed for employee {employee.id}")
            result.channels['email']['failed'] += 1
            result.errors.append(f"Employee {employee.id} email: {e}")

        result.employees_notified += 1

    def _send_chat(self, message: NotificationMessage, result: DispatchResult) -> None:
        if not self.chat_enabled:
            result.channels['chat']['skipped'] = 1
            return
        try:
            outcome, error = chat.send_chat_notification(message)
        except Exception as e:
            logger.exception(f"Chat notification {message.event} failed")
            outcome, error = chat.FAILED, str(e)
        result.channels['chat'][outcome] = 1
        if error:
            result.errors.append(f"Chat: {error}")

    def dispatch(self, event: str, entity_id: Any, data: Dict[str, Any]) -> DispatchResult:
        """
        Deliver `event` for an entity to every resolved recipient.

        Raises:
            UnknownEventError: If the event has no configuration
        """
        message = build_message(event, entity_id, data)
        result = DispatchResult()

        recipients = self.resolve_recipients(event, entity_id)
        logger.info(f"Dispatching {event} for {message.entity_type} {entity_id} to {len(recipients)} employees")

        for employee in recipients:
            self._notify_employee(employee, message, result)

        self._send_chat(message, result)

        if result.errors:
            logger.warning(f"Dispatch of {event} finished with errors: {result.errors}")
        return result

    def notify_direct(self, employee: Employee, message: NotificationMessage) -> DispatchResult:
        """In-app and email to a single employee; no chat message."""
        result = DispatchResult()
        self._notify_employee(employee, message, result)
        return result


def _unique(employees: List[Employee]) -> List[Employee]:
    seen = set()
    unique = []
    for employee in employees:
        if employee.id not in seen:
            seen.add(employee.id)
            unique.append(employee)
    return unique


# Customer activity on a quote -> notification event
QUOTE_ACTIVITY_EVENTS = {
    'email_sent': None,
    'email_opened': 'quote_email_opened',
    'status_viewed': 'quote_status_viewed',
    'accept_page_viewed': 'quote_accept_page_viewed',
    'acceptance_started': 'quote_acceptance_started',
    'accepted': 'quote_accepted',
    'rejected': 'quote_rejected',
}


def log_quote_activity(quote, activity_type: str, ip_address: Optional[str] = None,
                       user_agent: Optional[str] = None, metadata: Optional[dict] = None,
                       skip_notification: bool = False,
                       dispatcher: Optional[NotificationDispatcher] = None):
    """
    Record customer activity on a quote and notify the assigned employee.

    Admin-initiated activity (email_sent) is logged without a notification.

    Returns:
        The QuoteAuditLog row, and the DispatchResult when one was sent
    """
    from quotes.models import QuoteAuditLog

    if activity_type not in QUOTE_ACTIVITY_EVENTS:
        raise ValueError(f"Unknown quote activity: {activity_type}")

    entry = QuoteAuditLog.objects.create(
        quote=quote,
        action=activity_type,
        actor_type='customer',
        metadata={
            **(metadata or {}),
            'ip_address': ip_address,
            'user_agent': user_agent,
        },
    )

    event = QUOTE_ACTIVITY_EVENTS[activity_type]
    if skip_notification or event is None:
        return entry, None

    dispatcher = dispatcher or NotificationDispatcher.from_settings()
    result = dispatcher.dispatch(event, quote.id, {
        'reference': quote.reference_number,
        'contact_name': quote.contact_name or 'Customer',
        'amount': quote.quoted_price,
        'reason': quote.rejection_reason,
        **(metadata or {}),
    })
    return entry, result
