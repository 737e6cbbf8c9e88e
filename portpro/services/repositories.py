"""
Data access for loads and their events.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from django.utils import timezone

from portpro.models import Load, LoadEvent
from portpro.services.mapping import generate_tracking_number

logger = logging.getLogger(__name__)


class LoadRepository:

    def get(self, load_id: int) -> Optional[Load]:
        return Load.objects.filter(id=load_id).first()

    def find_match(self, portpro_load_id: Optional[str] = None,
                   container_number: Optional[str] = None,
                   reference: Optional[str] = None) -> Optional[Load]:
        """
        Find the local load for a vendor record.

        The vendor's internal id is tried first, then container number,
        then vendor reference. Containers are re-used across loads, so when
        several rows match the most recently updated one wins.
        """
        if portpro_load_id:
            load = Load.objects.filter(portpro_load_id=portpro_load_id).first()
            if load:
                return load
        if container_number:
            load = (
                Load.objects.filter(container_number=container_number)
                .order_by('-updated_at', '-id').first()
            )
            if load:
                return load
        if reference:
            return (
                Load.objects.filter(portpro_reference=reference)
                .order_by('-updated_at', '-id').first()
            )
        return None

    def create(self, fields: Dict[str, Any]) -> Load:
        load = Load.objects.create(
            tracking_number=generate_tracking_number(),
            updated_at=timezone.now(),
            **fields
        )
        logger.info(
            f"Created load {load.tracking_number} from PortPro "
            f"{load.portpro_reference} ({load.container_number})"
        )
        return load

    def update(self, load: Load, fields: Dict[str, Any],
               updated_at: Optional[datetime] = None) -> Load:
        for name, value in fields.items():
            setattr(load, name, value)
        load.updated_at = updated_at or timezone.now()
        load.save()
        return load


class EventRepository:

    def add(self, load: Load, **fields) -> LoadEvent:
        return LoadEvent.objects.create(load=load, **fields)

    def replace_tracking_events(self, load: Load, events: Iterable[Dict[str, Any]]) -> int:
        """Delete the load's move/stop events and insert `events` in their place."""
        deleted, _ = LoadEvent.objects.filter(
            load=load, event_type__in=LoadEvent.TRACKING_TYPES
        ).delete()
        created = LoadEvent.objects.bulk_create(
            [LoadEvent(load=load, **fields) for fields in events]
        )
        logger.debug(
            f"Load {load.id}: replaced {deleted} tracking events with {len(created)}"
        )
        return len(created)
