"""
Sync engine for PortPro webhook events.

Per event: claim idempotency key -> map -> persist (one transaction) ->
mark processed -> dispatch notifications. Failures never raise out of
`handle`; they come back as a failed SyncResult after the event has been
pushed to the dead-letter queue.
"""
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from django.db import DatabaseError, transaction
from django.utils import timezone

from portpro.models import Load, LoadEvent, LoadStatus
from portpro.services import mapping
from portpro.services.dead_letter import DeadLetterQueue
from portpro.services.errors import DuplicateEvent, MappingError, PersistError, SyncError
from portpro.services.idempotency import IdempotencyStore, generate_key
from portpro.services.repositories import EventRepository, LoadRepository

logger = logging.getLogger(__name__)

# Raised by mapping code on payloads that do not have the expected shape.
MAPPING_FAILURES = (KeyError, TypeError, ValueError, AttributeError)

# Everything a single vendor record can fail with.
RECORD_FAILURES = (SyncError, DatabaseError) + MAPPING_FAILURES


def to_sync_error(error: Exception, context: str) -> SyncError:
    """Classify an exception from mapping or persisting one record."""
    if isinstance(error, SyncError):
        return error
    if isinstance(error, DatabaseError):
        return PersistError(f"Database error: {error}")
    return MappingError(f"Invalid {context} payload: {error}")


def event_name(payload: Dict[str, Any]) -> str:
    """Event type of a webhook body; `event_type`, then `eventType`, then `event`."""
    return str(payload.get('event_type') or payload.get('eventType') or payload.get('event') or '')


class SyncOutcome(str, Enum):
    PROCESSED = 'processed'
    DUPLICATE = 'duplicate'
    IGNORED = 'ignored'
    FAILED = 'failed'


@dataclass
class InboundEvent:
    event_type: str
    reference_number: Optional[str]
    timestamp: Optional[str]
    payload: Dict[str, Any]
    raw_body: str

    @property
    def data(self) -> Dict[str, Any]:
        data = self.payload.get('data')
        return data if isinstance(data, dict) else {}

    @property
    def changes(self) -> Dict[str, Any]:
        """`changedValues` when present, otherwise `data`."""
        changed = self.payload.get('changedValues')
        return changed if isinstance(changed, dict) and changed else self.data

    @property
    def idempotency_key(self) -> str:
        return generate_key(self.event_type, self.reference_number, self.timestamp)


def parse_event(raw_body: Any) -> InboundEvent:
    """
    Parse a webhook body into an InboundEvent.

    Raises:
        MappingError: If the body is not a JSON object
    """
    if isinstance(raw_body, bytes):
        raw_body = raw_body.decode('utf-8')
    if isinstance(raw_body, dict):
        payload = raw_body
        raw_body = json.dumps(raw_body)
    else:
        try:
            payload = json.loads(raw_body)
        except (TypeError, ValueError) as e:
            raise MappingError(f"Malformed webhook body: {e}") from e
    if not isinstance(payload, dict):
        raise MappingError("Webhook body must be a JSON object")

    data = payload.get('data') if isinstance(payload.get('data'), dict) else {}
    event_type = event_name(payload)
    return InboundEvent(
        event_type=event_type,
        reference_number=payload.get('reference_number') or data.get('reference_number'),
        timestamp=payload.get('timestamp') or data.get('updatedAt') or data.get('createdAt'),
        payload=payload,
        raw_body=raw_body,
    )


@dataclass
class PendingNotification:
    event: str
    entity_id: Any
    data: Dict[str, Any]


@dataclass
class SyncResult:
    outcome: SyncOutcome
    event_type: str = ''
    load_id: Optional[int] = None
    error: Optional[SyncError] = None
    dead_letter_id: Optional[int] = None
    notifications: List[PendingNotification] = field(default_factory=list)
    notification_errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncEngine:
    """
    Orchestrates ingestion of PortPro events into loads and load events.

    All collaborators are injected; `from_settings` wires the production
    ones.
    """

    def __init__(self, idempotency: IdempotencyStore, dead_letters: DeadLetterQueue,
                 loads: Optional[LoadRepository] = None, events: Optional[EventRepository] = None,
                 dispatcher=None, client=None):
        self.idempotency = idempotency
        self.dead_letters = dead_letters
        self.loads = loads or LoadRepository()
        self.events = events or EventRepository()
        self.dispatcher = dispatcher
        self.client = client
        self._handlers: Dict[str, Callable[[InboundEvent, list], Optional[Load]]] = {
            'load#created': self._handle_load_created,
            'load#status_updated': self._handle_status_updated,
            'load#info_updated': self._handle_info_updated,
            'load#dates_updated': self._handle_info_updated,
            'load#equipment_updated': self._handle_info_updated,
            'document#pod_added': lambda event, notes: self._handle_document(event, notes, 'POD'),
            'document#delivery_order_added': lambda event, notes: self._handle_document(event, notes, 'DO'),
            'tender#status_changed': self._handle_tender_status,
            'customer#created': self._handle_customer_created,
        }

    @classmethod
    def from_settings(cls) -> 'SyncEngine':
        from notifications.services.dispatcher import NotificationDispatcher

        return cls(
            IdempotencyStore.from_settings(),
            DeadLetterQueue.from_settings(),
            dispatcher=NotificationDispatcher.from_settings(),
        )

    def supports(self, event_type: str) -> bool:
        return event_type in self._handlers

    # Webhook entry points

    def handle(self, raw_body: Any) -> SyncResult:
        """
        Process one webhook delivery end to end.

        Returns:
            SyncResult; never raises for mapping/persist/vendor failures
        """
        try:
            event = parse_event(raw_body)
        except MappingError as e:
            body = raw_body.decode('utf-8', 'replace') if isinstance(raw_body, bytes) else str(raw_body)
            entry = self.dead_letters.push('unknown', body, e)
            return SyncResult(SyncOutcome.FAILED, error=e, dead_letter_id=entry.id)

        key = event.idempotency_key
        try:
            self._claim(event, key)
        except DuplicateEvent as e:
            logger.info(f"{e} (key={key})")
            return SyncResult(SyncOutcome.DUPLICATE, event_type=event.event_type)

        result = self._run(event)
        if result.error:
            self.idempotency.remove_marker(key)
            entry = self.dead_letters.push(event.event_type, event.raw_body, result.error)
            result.dead_letter_id = entry.id
            return result

        self.idempotency.mark_processed(key)
        self._notify(result)
        return result

    def _claim(self, event: InboundEvent, key: str) -> None:
        """
        Raises:
            DuplicateEvent: If another delivery already claimed the key
        """
        if not self.idempotency.claim(key):
            raise DuplicateEvent(f"Duplicate PortPro event {event.event_type} skipped")

    def reprocess(self, event_type: str, raw_payload: str) -> SyncResult:
        """
        Re-run a dead-lettered event.

        Raises:
            SyncError: If processing fails again
        """
        event = parse_event(raw_payload)
        if not event.event_type:
            event.event_type = event_type
        result = self._run(event)
        if result.error:
            raise result.error
        self.idempotency.mark_processed(event.idempotency_key)
        self._notify(result)
        return result

    def _run(self, event: InboundEvent) -> SyncResult:
        handler = self._handlers.get(event.event_type)
        if handler is None:
            logger.info(f"Unhandled PortPro event type: {event.event_type}")
            return SyncResult(SyncOutcome.IGNORED, event_type=event.event_type)

        notifications: List[PendingNotification] = []
        try:
            with transaction.atomic():
                load = handler(event, notifications)
        except RECORD_FAILURES as e:
            error = to_sync_error(e, event.event_type)
        else:
            logger.info(
                f"Processed PortPro {event.event_type} "
                f"(ref={event.reference_number}, load={load.id if load else None})"
            )
            return SyncResult(
                SyncOutcome.PROCESSED,
                event_type=event.event_type,
                load_id=load.id if load else None,
                notifications=notifications,
            )

        logger.error(f"PortPro {event.event_type} failed ({error.kind}): {error}")
        return SyncResult(SyncOutcome.FAILED, event_type=event.event_type, error=error)

    def _notify(self, result: SyncResult) -> None:
        """Dispatch queued notifications. The event is already persisted, so failures are only recorded."""
        if self.dispatcher is None:
            return
        for note in result.notifications:
            try:
                self.dispatcher.dispatch(note.event, note.entity_id, note.data)
            except Exception as e:
                logger.exception(f"Notification {note.event} for load {note.entity_id} failed: {e}")
                result.notification_errors.append(f"{note.event}: {e}")

    def dispatch_notifications(self, notifications: List[PendingNotification]) -> None:
        self._notify(SyncResult(SyncOutcome.PROCESSED, notifications=notifications))

    # Shared upsert used by webhooks, poll and reconciliation

    def upsert_vendor_load(self, vendor_load: dict, notifications: list,
                           sync_events: bool = True) -> Tuple[Load, bool, str]:
        """
        Create or update the local load for a full vendor record.

        Returns:
            (load, created, previous_status)
        """
        fields = mapping.build_load_fields(vendor_load)
        existing = self.loads.find_match(
            fields['portpro_load_id'], fields['container_number'], fields['portpro_reference']
        )
        if existing is None:
            if not (fields['portpro_load_id'] or fields['container_number'] or fields['portpro_reference']):
                raise MappingError("Load has no id, container number or reference")
            load = self.loads.create(fields)
            created, previous_status = True, ''
        else:
            previous_status, previous_eta = existing.status, existing.eta
            load = self.loads.update(existing, fields)
            created = False
            self._queue_change_notifications(load, previous_status, previous_eta, notifications)

        if sync_events and vendor_load.get('driverOrder'):
            self.sync_tracking_events(load, vendor_load['driverOrder'])
        return load, created, previous_status

    def sync_tracking_events(self, load: Load, driver_orders: Any) -> int:
        return self.events.replace_tracking_events(load, mapping.build_tracking_events(driver_orders))

    def _queue_change_notifications(self, load: Load, previous_status: str, previous_eta,
                                    notifications: list) -> None:
        data = {
            'reference': load.portpro_reference or load.tracking_number,
            'container': load.container_number or '',
            'status': load.get_status_display(),
        }
        if load.status != previous_status:
            event = 'load_delivered' if load.status == LoadStatus.DELIVERED else 'load_status_changed'
            notifications.append(PendingNotification(event, load.id, data))
        if previous_eta and load.eta and load.eta > previous_eta:
            notifications.append(PendingNotification('load_delayed', load.id, {
                **data,
                'old_date': previous_eta.date().isoformat(),
                'new_date': load.eta.date().isoformat(),
            }))

    def _find_existing(self, event: InboundEvent, data: dict, reference: Optional[str] = None,
                       by_container: bool = False) -> Load:
        reference = reference or event.reference_number
        load = self.loads.find_match(
            data.get('_id'),
            data.get('containerNo') if by_container else None,
            reference,
        )
        if load is None:
            raise PersistError(f"No load found for PortPro reference {reference}")
        return load

    # Event handlers

    def _handle_load_created(self, event: InboundEvent, notifications: list) -> Load:
        data = dict(event.data)
        if not data:
            raise MappingError("load#created without data")
        data.setdefault('reference_number', event.reference_number)

        load, created, _ = self.upsert_vendor_load(data, notifications)
        if created:
            self.events.add(
                load,
                event_type=LoadEvent.EventType.STATUS,
                status=load.status,
                description=f"Load created in PortPro: {load.portpro_reference}",
            )
        return load

    def _handle_status_updated(self, event: InboundEvent, notifications: list) -> Load:
        data = event.data or event.changes
        new_status = data.get('status') or data.get('newStatus')
        if not (event.reference_number or data.get('_id') or data.get('containerNo')):
            raise MappingError("load#status_updated without a load reference")
        if not new_status:
            raise MappingError("load#status_updated without a status")

        load = self._find_existing(event, data, by_container=True)
        previous_status, previous_eta = load.status, load.eta
        mapped = mapping.map_vendor_status(new_status)
        self.loads.update(load, {'status': mapped})
        self.events.add(
            load,
            event_type=LoadEvent.EventType.STATUS,
            status=mapped,
            description=mapping.STATUS_DESCRIPTIONS.get(mapped, f"Status updated to {new_status}"),
        )
        if data.get('driverOrder'):
            self.sync_tracking_events(load, data['driverOrder'])
        self._queue_change_notifications(load, previous_status, previous_eta, notifications)
        return load

    def _handle_info_updated(self, event: InboundEvent, notifications: list) -> Load:
        data = event.changes
        if not event.reference_number and not data.get('_id'):
            raise MappingError(f"{event.event_type} without a load reference")

        load = self._find_existing(event, data)
        updates = mapping.build_event_updates(event.event_type, data)
        previous_status, previous_eta = load.status, load.eta
        if updates:
            self.loads.update(load, updates)
            self._queue_change_notifications(load, previous_status, previous_eta, notifications)
        if data.get('driverOrder'):
            self.sync_tracking_events(load, data['driverOrder'])
        return load

    def _handle_document(self, event: InboundEvent, notifications: list, doc_type: str) -> Load:
        if not event.reference_number:
            raise MappingError(f"{event.event_type} without a load reference")

        load = self._find_existing(event, event.data)
        self.events.add(
            load,
            event_type=LoadEvent.EventType.DOCUMENT,
            status='document',
            description=f"{doc_type} document added",
        )
        if doc_type == 'POD':
            previous_status, previous_eta = load.status, load.eta
            self.loads.update(load, {
                'status': LoadStatus.DELIVERED,
                'delivery_time': load.delivery_time or timezone.now(),
            })
            self.events.add(
                load,
                event_type=LoadEvent.EventType.STATUS,
                status=LoadStatus.DELIVERED,
                description='Proof of delivery received',
            )
            self._queue_change_notifications(load, previous_status, previous_eta, notifications)
        return load

    def _handle_tender_status(self, event: InboundEvent, notifications: list) -> Optional[Load]:
        data = event.data
        reference = data.get('loadReferenceNumber')
        tender_status = str(data.get('status') or '').lower()
        logger.info(f"Tender {data.get('tenderReferenceNumber')} status: {tender_status}")

        load = self.loads.find_match(reference=reference) if reference else None
        if load is None:
            logger.info(f"Tender update for unknown load {reference}, nothing to record")
            return None
        self.events.add(
            load,
            event_type=LoadEvent.EventType.TENDER,
            status='tender',
            description=f"Tender {tender_status}",
        )
        return load

    def _handle_customer_created(self, event: InboundEvent, notifications: list) -> None:
        logger.info(f"New PortPro customer created: {event.data.get('company_name') or event.data.get('_id')}")
        return None
