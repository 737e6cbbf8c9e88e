"""
Unit tests for PortPro payload mapping.
"""
from datetime import datetime, timezone as dt_timezone

import pytest
from hypothesis import given, settings, strategies as st

from portpro.models import LoadEvent, LoadStatus
from portpro.services.errors import MappingError
from portpro.services.mapping import (
    build_event_updates,
    build_load_fields,
    build_tracking_events,
    compute_margin,
    extract_lookup_value,
    format_location,
    generate_tracking_number,
    get_driver_name,
    get_load_location,
    map_vendor_status,
    normalize_driver_orders,
    parse_vendor_datetime,
)


class TestStatusMapping:
    """Tests for map_vendor_status."""

    @pytest.mark.parametrize('vendor_status,expected', [
        ('PENDING', LoadStatus.BOOKED),
        ('CUSTOMS HOLD', LoadStatus.AT_PORT),
        ('AVAILABLE', LoadStatus.AT_PORT),
        ('DISPATCHED', LoadStatus.IN_TRANSIT),
        ('DROPPED', LoadStatus.OUT_FOR_DELIVERY),
        ('COMPLETED', LoadStatus.DELIVERED),
        ('FULL_PAID', LoadStatus.DELIVERED),
        ('dispatched', LoadStatus.IN_TRANSIT),
    ])
    def test_known_statuses(self, vendor_status, expected):
        """Test known vendor statuses map to their domain status."""
        assert map_vendor_status(vendor_status) == expected

    def test_unknown_status_defaults_to_booked(self):
        """Test unknown and non-string statuses map to booked."""
        assert map_vendor_status('SOMETHING_NEW') == LoadStatus.BOOKED
        assert map_vendor_status(None) == LoadStatus.BOOKED
        assert map_vendor_status(42) == LoadStatus.BOOKED

    @settings(max_examples=100)
    @given(vendor_status=st.one_of(st.text(), st.none(), st.integers()))
    def test_mapping_is_total(self, vendor_status):
        """
        Property: Every input maps to a valid LoadStatus without raising.
        """
        assert map_vendor_status(vendor_status) in LoadStatus.values


class TestLookupValues:
    """Tests for extract_lookup_value."""

    def test_plain_string(self):
        """Test a plain string is returned unchanged."""
        assert extract_lookup_value("40'") == "40'"

    def test_label_wins_over_name(self):
        """Test label is preferred over name."""
        assert extract_lookup_value({'label': "40' HC", 'name': '40HC'}) == "40' HC"
        assert extract_lookup_value({'name': '40HC'}) == '40HC'

    def test_json_encoded_object(self):
        """Test a JSON-serialized lookup object is decoded."""
        assert extract_lookup_value('{"label": "20\'"}') == "20'"

    def test_empty_values(self):
        """Test None, empty strings and empty objects become None."""
        assert extract_lookup_value(None) is None
        assert extract_lookup_value('') is None
        assert extract_lookup_value({}) is None


class TestMargin:
    """Tests for compute_margin."""

    def test_margin_subtracts_all_costs(self, vendor_load):
        """Test revenue 1000 minus expense 100, vendor pay 150 and driver pay 200 is 550."""
        assert compute_margin(vendor_load) == 550.0

    def test_no_revenue_gives_none(self):
        """Test a load without totalAmount has no margin."""
        assert compute_margin({'expense': [{'amount': 10}]}) is None

    def test_no_costs_gives_full_revenue(self):
        """Test a load without cost lines keeps the full revenue."""
        assert compute_margin({'totalAmount': 800}) == 800.0

    def test_vendor_pay_total_overrides_pricing(self):
        """Test a vendorPay totalAmount is used instead of its pricing lines."""
        load = {'totalAmount': 500, 'vendorPay': [{'totalAmount': 100, 'pricing': [{'amount': 999}]}]}

        assert compute_margin(load) == 400.0

    def test_invalid_amount_raises_mapping_error(self):
        """Test non-numeric billing data raises MappingError."""
        with pytest.raises(MappingError):
            compute_margin({'totalAmount': 'lots'})


class TestLocations:
    """Tests for location formatting."""

    def test_full_address_wins(self):
        """Test a pre-formatted fullAddress is returned as is."""
        assert format_location({'fullAddress': '1 Pier Rd, Long Beach, CA'}) == '1 Pier Rd, Long Beach, CA'

    def test_company_and_address_lines(self):
        """Test company name and address line are joined with a newline."""
        location = {
            'company_name': 'Acme Warehouse',
            'address': {'address1': '100 Main St', 'city': 'Ontario', 'state': 'CA', 'zip': '91761'},
        }

        assert format_location(location) == 'Acme Warehouse\n100 Main St, Ontario, CA 91761'

    def test_non_us_country_appended(self):
        """Test non-US countries are appended to the address line."""
        location = {'address': {'city': 'Vancouver', 'state': 'BC', 'country': 'CA'}}

        assert format_location(location) == 'Vancouver, BC, CA'

    def test_empty_location(self):
        """Test empty or missing locations give None."""
        assert format_location(None) is None
        assert format_location({}) is None

    def test_current_location_from_status(self, vendor_load):
        """Test the coarse location follows the vendor status."""
        assert get_load_location(vendor_load) == 'In Transit'
        assert get_load_location({**vendor_load, 'status': 'PENDING'}) == 'Port of Long Beach'
        assert get_load_location({**vendor_load, 'status': 'COMPLETED'}) == 'Acme Warehouse'
        assert get_load_location({'status': 'AVAILABLE'}) == 'At Port'
        assert get_load_location({'status': 'UNKNOWN'}) is None


class TestDates:
    """Tests for vendor date parsing."""

    def test_iso_datetime(self):
        """Test ISO datetimes are parsed as aware datetimes."""
        assert parse_vendor_datetime('2026-01-28T16:00:00Z') == datetime(2026, 1, 28, 16, tzinfo=dt_timezone.utc)

    def test_date_only(self):
        """Test bare dates become midnight UTC."""
        assert parse_vendor_datetime('2026-01-30') == datetime(2026, 1, 30, tzinfo=dt_timezone.utc)

    def test_empty_is_none(self):
        """Test empty values are None."""
        assert parse_vendor_datetime(None) is None
        assert parse_vendor_datetime('') is None

    def test_garbage_raises(self):
        """Test unparseable dates raise MappingError."""
        with pytest.raises(MappingError):
            parse_vendor_datetime('next tuesday')


class TestBuildLoadFields:
    """Tests for build_load_fields."""

    def test_full_load(self, vendor_load):
        """Test a complete vendor load maps to Load fields."""
        fields = build_load_fields(vendor_load)

        assert fields['portpro_load_id'] == '65b3f0c2a1'
        assert fields['portpro_reference'] == 'REF-123'
        assert fields['container_number'] == 'MSCU1234567'
        assert fields['container_size'] == "40'"
        assert fields['status'] == LoadStatus.IN_TRANSIT
        assert fields['current_location'] == 'In Transit'
        assert fields['customer_name'] == 'Acme Imports'
        assert fields['origin'] == 'Port of Long Beach\nLong Beach, CA'
        assert fields['destination'] == 'Acme Warehouse\n100 Main St, Ontario, CA 91761'
        assert fields['eta'] == datetime(2026, 1, 28, 16, tzinfo=dt_timezone.utc)
        assert fields['billing_total'] == 1000.0
        assert fields['load_margin'] == 550.0
        assert 'tracking_number' not in fields

    def test_missing_status_is_booked(self):
        """Test a load without status maps to booked."""
        assert build_load_fields({'containerNo': 'X'})['status'] == LoadStatus.BOOKED

    def test_non_dict_rejected(self):
        """Test non-object payloads raise MappingError."""
        with pytest.raises(MappingError):
            build_load_fields(['not', 'a', 'load'])

    def test_nested_objects_given_as_strings(self):
        """Test caller, shipper and consignee given as plain strings are ignored instead of crashing."""
        fields = build_load_fields({
            'containerNo': 'X', 'status': 'AVAILABLE', 'caller': 'Acme', 'shipper': 'LBCT',
        })

        assert fields['customer_name'] is None
        assert fields['current_location'] == 'At Port'

    def test_info_updates(self):
        """Test info events only carry the fields that are present."""
        updates = build_event_updates('load#info_updated', {
            'deliveryTimes': [{'deliveryFromTime': '2026-02-01T10:00:00Z'}],
            'containerNo': 'MSCU7654321',
        })

        assert updates == {
            'eta': datetime(2026, 2, 1, 10, tzinfo=dt_timezone.utc),
            'container_number': 'MSCU7654321',
        }

    def test_equipment_updates(self):
        """Test equipment events update container, chassis and seal numbers."""
        updates = build_event_updates('load#equipment_updated', {'chassisNo': 'CH-1', 'sealNo': 'S-9'})

        assert updates == {'chassis_number': 'CH-1', 'seal_number': 'S-9'}

    def test_tracking_number_format(self):
        """Test tracking numbers start with NSL and are unique."""
        first, second = generate_tracking_number(), generate_tracking_number()

        assert first.startswith('NSL')
        assert first.isalnum() and first.upper() == first
        assert first != second


class TestDriverOrders:
    """Tests for driverOrder normalization."""

    def test_nested_moves(self):
        """Test an order with nested moves produces one stop per move."""
        orders = [{
            '_id': 'order-1',
            'status': 'dispatched',
            'driver': {'_id': 'drv-1', 'firstName': 'Sam', 'lastName': 'Reyes'},
            'moves': [
                {'type': 'PULLCONTAINER', 'distance': 12, 'company_name': 'APM Terminal',
                 'arrived': '2026-01-26T08:00:00Z', 'departed': '2026-01-26T08:45:00Z', 'isCompleted': True},
                {'type': 'DELIVERLOAD', 'distance': 30, 'address': {'company_name': 'Acme'}},
            ],
        }]

        moves = normalize_driver_orders(orders)

        assert len(moves) == 1
        move = moves[0]
        assert move.move_number == 1
        assert move.status == 'in_progress'
        assert move.driver_name == 'Sam Reyes'
        assert move.distance_miles == 42.0
        assert [s.stop_type for s in move.stops] == [LoadEvent.StopType.PICKUP, LoadEvent.StopType.DELIVER]
        assert move.stops[0].duration_minutes == 45
        assert move.stops[0].is_completed is True
        assert move.stops[1].location_name == 'Acme'

    def test_flat_order_is_single_stop(self):
        """Test an order that is itself a stop yields one stop."""
        orders = [{'_id': 'o-2', 'type': 'DROPCONTAINER', 'distance': 5, 'driverName': 'Lee', 'status': 'COMPLETED'}]

        move = normalize_driver_orders(orders)[0]

        assert move.status == 'completed'
        assert move.driver_name == 'Lee'
        assert len(move.stops) == 1
        assert move.stops[0].stop_type == LoadEvent.StopType.DROP
        assert move.stops[0].portpro_stop_id == 'o-2'
        assert move.stops[0].label == 'Drop Container'

    def test_invalid_shape_raises(self):
        """Test non-list or non-object orders raise MappingError."""
        with pytest.raises(MappingError):
            normalize_driver_orders({'moves': []})
        with pytest.raises(MappingError):
            normalize_driver_orders(['stop'])

    @pytest.mark.parametrize('orders', [
        [{'moves': [{'type': 'PULLCONTAINER', 'duration': '15 min'}]}],
        [{'moves': [{'type': 'PULLCONTAINER', 'distance': 'far'}]}],
        [{'moveNumber': 'first', 'type': 'PULLCONTAINER'}],
        [{'moves': ['PULLCONTAINER']}],
    ])
    def test_bad_values_raise_mapping_error(self, orders):
        """Test unparseable numbers and non-object stops raise MappingError."""
        with pytest.raises(MappingError):
            normalize_driver_orders(orders)

    def test_driver_given_as_id(self):
        """Test a driver given as a bare id falls back to the placeholder name."""
        move = normalize_driver_orders([{'type': 'DROPCONTAINER', 'driver': 'd-1'}])[0]

        assert move.driver_id is None
        assert move.driver_name == 'Unknown Driver'

    def test_unknown_driver(self):
        """Test orders without driver info get a placeholder name."""
        assert get_driver_name({}) == 'Unknown Driver'

    def test_tracking_events(self):
        """Test each move yields a move-start event followed by its stops."""
        orders = [{'moves': [{'type': 'HOOKCONTAINER'}, {'type': 'RETURNCONTAINER'}], 'driver': {'name': 'Pat'}}]

        events = build_tracking_events(orders)

        assert [e['event_type'] for e in events] == [
            LoadEvent.EventType.MOVE_START, LoadEvent.EventType.STOP, LoadEvent.EventType.STOP,
        ]
        assert events[0]['description'] == 'Container Move 1 - Pat'
        assert events[1]['description'] == 'Hook Container'
        assert events[2]['status'] == 'pending'
