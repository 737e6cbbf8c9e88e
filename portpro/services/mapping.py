"""
Translation of PortPro payloads into Load / LoadEvent fields.

Everything here is pure: dicts in, dicts or dataclasses out. Vendor shapes
(lookup objects, nested or flat driver orders, several fallback field
names) are resolved at this boundary so the sync engine only ever sees
canonical records.
"""
import json
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, time as dt_time
from datetime import timezone as dt_timezone
from typing import Any, Dict, List, Optional

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from portpro.models import LoadEvent, LoadStatus
from portpro.services.errors import MappingError

PORTPRO_STATUS_MAP = {
    'PENDING': LoadStatus.BOOKED,
    'CUSTOMS HOLD': LoadStatus.AT_PORT,
    'FREIGHT HOLD': LoadStatus.AT_PORT,
    'AVAILABLE': LoadStatus.AT_PORT,
    'DISPATCHED': LoadStatus.IN_TRANSIT,
    'DROPPED': LoadStatus.OUT_FOR_DELIVERY,
    'COMPLETED': LoadStatus.DELIVERED,
    'BILLING': LoadStatus.DELIVERED,
    'PARTIAL_PAID': LoadStatus.DELIVERED,
    'FULL_PAID': LoadStatus.DELIVERED,
}

DEFAULT_STATUS = LoadStatus.BOOKED

STATUS_DESCRIPTIONS = {
    LoadStatus.BOOKED: 'Load booked and confirmed',
    LoadStatus.AT_PORT: 'Container at port',
    LoadStatus.IN_TRANSIT: 'Container dispatched and in transit',
    LoadStatus.OUT_FOR_DELIVERY: 'Container dropped for delivery',
    LoadStatus.DELIVERED: 'Load completed',
}

MOVE_TYPE_TO_STOP_TYPE = {
    'PULLCONTAINER': LoadEvent.StopType.PICKUP,
    'HOOKCONTAINER': LoadEvent.StopType.HOOK,
    'DROPCONTAINER': LoadEvent.StopType.DROP,
    'DELIVERLOAD': LoadEvent.StopType.DELIVER,
    'RETURNCONTAINER': LoadEvent.StopType.RETURN,
    'GETLOADED': LoadEvent.StopType.PICKUP,
    'GETUNLOADED': LoadEvent.StopType.DELIVER,
}

STOP_TYPE_LABELS = {
    LoadEvent.StopType.PICKUP: 'Pick Up Container',
    LoadEvent.StopType.HOOK: 'Hook Container',
    LoadEvent.StopType.DROP: 'Drop Container',
    LoadEvent.StopType.DELIVER: 'Deliver Container',
    LoadEvent.StopType.RETURN: 'Return Container',
}

_AT_PORT_STATUSES = ('PENDING', 'CUSTOMS HOLD', 'FREIGHT HOLD', 'AVAILABLE')
_AT_CONSIGNEE_STATUSES = ('DROPPED', 'COMPLETED', 'BILLING')

_COMPLETED_MOVE_STATUSES = ('completed', 'delivered')
_ACTIVE_MOVE_STATUSES = ('in_progress', 'dispatched', 'started')

_TRACKING_ALPHABET = string.digits + string.ascii_uppercase


def map_vendor_status(vendor_status: Any) -> str:
    """Map a PortPro status to a LoadStatus value. Unknown values map to booked."""
    if not isinstance(vendor_status, str):
        return DEFAULT_STATUS
    return PORTPRO_STATUS_MAP.get(vendor_status.strip().upper(), DEFAULT_STATUS)


def extract_lookup_value(value: Any) -> Optional[str]:
    """
    Normalize a lookup field to a plain string.

    PortPro sends some attributes (container size/type) either as a bare
    string, as an object with `label` and/or `name`, or as that object
    serialized to JSON. `label` wins over `name`.
    """
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith('{'):
            try:
                decoded = json.loads(stripped)
            except ValueError:
                return value
            if isinstance(decoded, dict):
                return extract_lookup_value(decoded)
        return value or None
    if isinstance(value, dict):
        label = value.get('label') or value.get('name')
        return str(label) if label else None
    return str(value)


def _address_line(address: Optional[dict], include_country: bool = True) -> Optional[str]:
    if not isinstance(address, dict):
        return None
    parts = []
    if address.get('address1'):
        parts.append(address['address1'])
    if address.get('city'):
        parts.append(address['city'])
    if address.get('state'):
        if address.get('zip'):
            parts.append(f"{address['state']} {address['zip']}")
        else:
            parts.append(address['state'])
    country = address.get('country')
    if include_country and country and country != 'US':
        parts.append(country)
    return ', '.join(parts) if parts else None


def format_location(location: Optional[dict]) -> Optional[str]:
    """
    Build a readable address from a PortPro location.

    A pre-formatted `fullAddress` is returned as is. Otherwise the company
    name and the street/city/state line are joined with a newline.
    """
    if not isinstance(location, dict) or not location:
        return None
    if location.get('fullAddress'):
        return location['fullAddress']

    parts = []
    if location.get('company_name'):
        parts.append(location['company_name'])
    line = _address_line(location.get('address'))
    if line:
        parts.append(line)
    return '\n'.join(parts) if parts else None


def _amount(item: dict, *keys: str) -> float:
    for key in keys:
        value = item.get(key)
        if value:
            return float(value)
    return 0.0


def compute_margin(load: dict) -> Optional[float]:
    """
    Revenue minus costs for a vendor load.

    Costs are the sum of `expense` (finalAmount or amount), `vendorPay`
    (totalAmount, else the sum of its pricing lines) and `driverPay`
    (totalAmount or amount). Returns None when the load has no totalAmount.
    """
    revenue = load.get('totalAmount')
    if revenue is None:
        return None

    try:
        costs = sum(_amount(e, 'finalAmount', 'amount') for e in load.get('expense') or [])
        for vendor_pay in load.get('vendorPay') or []:
            if vendor_pay.get('totalAmount') is not None:
                costs += float(vendor_pay['totalAmount'])
            else:
                costs += sum(
                    _amount(p, 'finalAmount', 'amount') for p in vendor_pay.get('pricing') or []
                )
        costs += sum(_amount(d, 'totalAmount', 'amount') for d in load.get('driverPay') or [])
        return float(revenue) - costs
    except (TypeError, ValueError, AttributeError) as e:
        raise MappingError(f"Invalid billing data: {e}") from e


def map_move_type_to_stop_type(move_type: Optional[str]) -> Optional[str]:
    if not move_type or not isinstance(move_type, str):
        return None
    return MOVE_TYPE_TO_STOP_TYPE.get(move_type.upper())


def parse_vendor_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO date or datetime from PortPro into an aware datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = parse_datetime(str(value))
            if parsed is None:
                day = parse_date(str(value))
                parsed = datetime.combine(day, dt_time.min) if day else None
        except ValueError:
            parsed = None
    if parsed is None:
        raise MappingError(f"Unparseable date value: {value!r}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def _as_float(value: Any) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise MappingError(f"Invalid numeric value: {value!r}") from e


def _as_int(value: Any) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise MappingError(f"Invalid integer value: {value!r}") from e


def _as_object(value: Any) -> dict:
    """Nested PortPro objects arrive as dicts; ids or names in their place are ignored."""
    return value if isinstance(value, dict) else {}


def _first_time(entries: Any, key: str) -> Optional[datetime]:
    if isinstance(entries, list) and entries and isinstance(entries[0], dict):
        return parse_vendor_datetime(entries[0].get(key))
    return None


def get_load_location(vendor_load: dict) -> Optional[str]:
    """Coarse current location derived from the vendor status."""
    vendor_status = vendor_load.get('status')
    if vendor_status in _AT_PORT_STATUSES:
        return _as_object(vendor_load.get('shipper')).get('company_name') or 'At Port'
    if vendor_status == 'DISPATCHED':
        return 'In Transit'
    if vendor_status in _AT_CONSIGNEE_STATUSES:
        return _as_object(vendor_load.get('consignee')).get('company_name') or 'Delivered'
    return None


def generate_tracking_number() -> str:
    """NSL + base36 epoch millis + 4 random base36 characters."""
    millis = int(time.time() * 1000)
    encoded = ''
    while millis:
        millis, rem = divmod(millis, 36)
        encoded = _TRACKING_ALPHABET[rem] + encoded
    suffix = ''.join(secrets.choice(_TRACKING_ALPHABET) for _ in range(4))
    return f"NSL{encoded or '0'}{suffix}"


def build_load_fields(vendor_load: dict) -> Dict[str, Any]:
    """
    Map a full PortPro load to Load model fields.

    The tracking number is not included; it is assigned on insert only.
    """
    if not isinstance(vendor_load, dict):
        raise MappingError("Load payload must be an object")

    caller = _as_object(vendor_load.get('caller'))
    origin = (
        format_location(vendor_load.get('pickupLocation'))
        or format_location(vendor_load.get('shipper'))
        or format_location(vendor_load.get('terminal'))
    )
    destination = (
        format_location(vendor_load.get('deliveryLocation'))
        or format_location(vendor_load.get('consignee'))
    )

    return {
        'portpro_load_id': vendor_load.get('_id') or None,
        'portpro_reference': vendor_load.get('reference_number') or None,
        'container_number': vendor_load.get('containerNo') or None,
        'container_size': extract_lookup_value(vendor_load.get('containerSize')),
        'container_type': extract_lookup_value(vendor_load.get('containerType')),
        'chassis_number': vendor_load.get('chassisNo') or None,
        'seal_number': vendor_load.get('sealNo') or None,
        'weight': _as_float(vendor_load.get('weight')),
        'booking_number': vendor_load.get('bookingNo') or None,
        'shipping_line': vendor_load.get('ssl') or None,
        'commodity': vendor_load.get('commodity') or None,
        'status': map_vendor_status(vendor_load.get('status') or 'PENDING'),
        'current_location': get_load_location(vendor_load),
        'origin': origin,
        'destination': destination,
        'return_location': format_location(vendor_load.get('returnLocation')),
        'customer_name': caller.get('company_name') or None,
        'customer_email': caller.get('email') or None,
        'customer_phone': caller.get('phone') or None,
        'eta': _first_time(vendor_load.get('deliveryTimes'), 'deliveryFromTime'),
        'pickup_time': _first_time(vendor_load.get('pickupTimes'), 'pickupFromTime'),
        'last_free_day': parse_vendor_datetime(vendor_load.get('lastFreeDay')),
        'total_miles': _as_float(vendor_load.get('totalMiles')),
        'billing_total': _as_float(vendor_load.get('totalAmount')),
        'load_margin': compute_margin(vendor_load),
    }


def build_event_updates(event_type: str, data: dict) -> Dict[str, Any]:
    """Partial Load updates carried by info/dates/equipment webhooks."""
    updates = {}
    if not isinstance(data, dict):
        return updates

    if event_type in ('load#info_updated', 'load#dates_updated'):
        eta = _first_time(data.get('deliveryTimes'), 'deliveryFromTime')
        if eta:
            updates['eta'] = eta
        pickup = _first_time(data.get('pickupTimes'), 'pickupFromTime')
        if pickup:
            updates['pickup_time'] = pickup
        if data.get('lastFreeDay'):
            updates['last_free_day'] = parse_vendor_datetime(data['lastFreeDay'])
        if data.get('containerNo'):
            updates['container_number'] = data['containerNo']
        if data.get('containerSize'):
            updates['container_size'] = extract_lookup_value(data['containerSize'])
    elif event_type == 'load#equipment_updated':
        if data.get('containerNo'):
            updates['container_number'] = data['containerNo']
        if data.get('chassisNo'):
            updates['chassis_number'] = data['chassisNo']
        if data.get('sealNo'):
            updates['seal_number'] = data['sealNo']
    return updates


# Driver orders

@dataclass
class StopRecord:
    stop_number: int
    stop_type: Optional[str]
    label: str
    location_name: Optional[str]
    location_address: Optional[str]
    is_completed: bool
    arrived: Optional[datetime]
    departed: Optional[datetime]
    duration_minutes: Optional[int]
    distance_miles: Optional[float]
    portpro_stop_id: Optional[str]
    appointment: Optional[datetime] = None


@dataclass
class MoveRecord:
    move_number: int
    status: str
    driver_id: Optional[str]
    driver_name: str
    distance_miles: Optional[float]
    portpro_move_id: Optional[str]
    stops: List[StopRecord] = field(default_factory=list)


def get_driver_name(order: dict) -> str:
    driver = _as_object(order.get('driver'))
    if driver.get('name'):
        return driver['name']
    if driver.get('firstName') and driver.get('lastName'):
        return f"{driver['firstName']} {driver['lastName']}"
    if driver.get('firstName'):
        return driver['firstName']
    if isinstance(order.get('driverName'), str):
        return order['driverName']
    return 'Unknown Driver'


def _move_status(raw_status: Any) -> str:
    value = str(raw_status or 'pending').lower()
    if value in _COMPLETED_MOVE_STATUSES:
        return 'completed'
    if value in _ACTIVE_MOVE_STATUSES:
        return 'in_progress'
    return 'pending'


def _stop_location(stop: dict) -> tuple:
    address = stop.get('address') if isinstance(stop.get('address'), dict) else {}
    name = stop.get('company_name') or address.get('company_name') or None
    if address.get('address'):
        location_address = _address_line(address['address'], include_country=False)
    else:
        location_address = address.get('fullAddress') or None
    return name, location_address


def _normalize_stop(stop: dict, stop_number: int, fallback_distance: Any = None,
                    fallback_id: Any = None, use_duration: bool = True) -> StopRecord:
    if not isinstance(stop, dict):
        raise MappingError(f"Stop {stop_number} must be an object")
    move_type = stop.get('type') if isinstance(stop.get('type'), str) else None
    stop_type = map_move_type_to_stop_type(move_type)
    name, address = _stop_location(stop)

    arrived = parse_vendor_datetime(stop.get('arrived'))
    departed = parse_vendor_datetime(stop.get('departed'))
    if arrived and departed:
        duration = round((departed - arrived).total_seconds() / 60)
    elif use_duration and stop.get('duration'):
        duration = _as_int(stop['duration'])
    else:
        duration = None

    label = STOP_TYPE_LABELS.get(stop_type) or move_type or f"Stop {stop_number}"
    return StopRecord(
        stop_number=stop_number,
        stop_type=stop_type,
        label=label,
        location_name=name,
        location_address=address,
        is_completed=stop.get('isCompleted') is True or stop.get('status') == 'COMPLETED',
        arrived=arrived,
        departed=departed,
        duration_minutes=duration,
        distance_miles=_as_float(stop.get('distance') or fallback_distance),
        portpro_stop_id=stop.get('_id') or fallback_id,
        appointment=parse_vendor_datetime(stop.get('appointmentFrom')),
    )


def normalize_driver_orders(orders: Any) -> List[MoveRecord]:
    """
    Normalize `driverOrder` into MoveRecords.

    An order either nests its stops under `moves`, or is itself a single
    stop (type/address/arrived on the order). Both shapes produce the
    same MoveRecord/StopRecord structure.
    """
    if not orders:
        return []
    if not isinstance(orders, list):
        raise MappingError("driverOrder must be a list")

    moves = []
    for index, order in enumerate(orders):
        if not isinstance(order, dict):
            raise MappingError(f"driverOrder[{index}] must be an object")

        nested = order.get('moves') or []
        distance = order.get('distance')
        if not distance and nested:
            distance = sum(_as_float(_as_object(m).get('distance')) or 0 for m in nested) or None

        move = MoveRecord(
            move_number=_as_int(order.get('moveNumber')) or index + 1,
            status=_move_status(order.get('status')),
            driver_id=_as_object(order.get('driver')).get('_id'),
            driver_name=get_driver_name(order),
            distance_miles=_as_float(distance),
            portpro_move_id=order.get('_id'),
        )
        if nested:
            move.stops = [
                _normalize_stop(stop, stop_index + 1)
                for stop_index, stop in enumerate(nested)
            ]
        else:
            move.stops = [
                _normalize_stop(order, 1, fallback_distance=order.get('distance'),
                                fallback_id=order.get('_id'), use_duration=False)
            ]
        moves.append(move)
    return moves


def build_move_start_event(move: MoveRecord) -> Dict[str, Any]:
    return {
        'event_type': LoadEvent.EventType.MOVE_START,
        'status': move.status,
        'description': f"Container Move {move.move_number} - {move.driver_name}",
        'move_number': move.move_number,
        'driver_id': move.driver_id,
        'driver_name': move.driver_name,
        'distance_miles': move.distance_miles,
        'portpro_move_id': move.portpro_move_id,
        'portpro_event': True,
        'occurred_at': timezone.now(),
    }


def build_stop_event(move: MoveRecord, stop: StopRecord) -> Dict[str, Any]:
    if stop.is_completed:
        stop_status = 'completed'
    elif stop.arrived:
        stop_status = 'in_progress'
    else:
        stop_status = 'pending'

    description = stop.label
    if stop.location_name:
        description = f"{description} at {stop.location_name}"

    return {
        'event_type': LoadEvent.EventType.STOP,
        'status': stop_status,
        'description': description,
        'move_number': move.move_number,
        'stop_number': stop.stop_number,
        'stop_type': stop.stop_type,
        'location_name': stop.location_name,
        'location_address': stop.location_address,
        'driver_id': move.driver_id,
        'driver_name': move.driver_name,
        'arrival_time': stop.arrived,
        'departure_time': stop.departed,
        'duration_minutes': stop.duration_minutes,
        'distance_miles': stop.distance_miles,
        'portpro_move_id': move.portpro_move_id,
        'portpro_stop_id': stop.portpro_stop_id,
        'portpro_event': True,
        'occurred_at': stop.arrived or stop.appointment or timezone.now(),
    }


def build_tracking_events(driver_orders: Any) -> List[Dict[str, Any]]:
    """Move-start and stop event fields for every move in `driverOrder`."""
    events = []
    for move in normalize_driver_orders(driver_orders):
        events.append(build_move_start_event(move))
        events.extend(build_stop_event(move, stop) for stop in move.stops)
    return events
