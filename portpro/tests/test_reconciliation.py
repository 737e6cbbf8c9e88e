"""
Unit tests for reconciliation, polling and manual page sync.
"""
from datetime import datetime, timezone as dt_timezone
from unittest.mock import Mock

import pytest

from conftest import FakeRedis
from portpro.models import Load, LoadStatus, SyncCursor, SyncRun
from portpro.services.dead_letter import DeadLetterQueue
from portpro.services.errors import VendorUnavailable
from portpro.services.idempotency import IdempotencyStore
from portpro.services.reconciliation import Reconciler
from portpro.services.sync_engine import SyncEngine


def make_vendor_load(base, index, **overrides):
    load = dict(base)
    load.update({
        '_id': f'pp-{index}',
        'reference_number': f'REF-{index}',
        'containerNo': f'MSCU{1000000 + index}',
    })
    load.update(overrides)
    return load


@pytest.mark.django_db
class TestReconciler:
    """Tests for Reconciler."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = Mock()
        self.alert = Mock(return_value=True)
        self.engine = SyncEngine(IdempotencyStore(FakeRedis()), DeadLetterQueue(), dispatcher=Mock())
        self.reconciler = Reconciler(
            self.engine, self.client, batch_size=2, poll_limit=2, drift_threshold=0, alert=self.alert,
        )

    def test_reconcile_pages_until_short_page(self, vendor_load):
        """Test reconciliation walks pages and upserts every load with a container."""
        self.client.get_loads.side_effect = [
            [make_vendor_load(vendor_load, 1), make_vendor_load(vendor_load, 2)],
            [make_vendor_load(vendor_load, 3, containerNo=None)],
        ]

        summary = self.reconciler.reconcile(triggered_by='manual')

        assert self.client.get_loads.call_args_list[0].kwargs == {'skip': 0, 'limit': 2}
        assert self.client.get_loads.call_args_list[1].kwargs == {'skip': 2, 'limit': 2}
        assert summary['total'] == 3
        assert summary['synced'] == 2
        assert summary['discrepancies'] == 0
        assert Load.objects.count() == 2
        run = SyncRun.objects.get(sync_type=SyncRun.SyncType.RECONCILE)
        assert run.status == SyncRun.Status.COMPLETED
        assert run.metadata['triggered_by'] == 'manual'
        self.alert.assert_not_called()

    def test_reconcile_counts_discrepancies_and_alerts(self, vendor_load):
        """Test a status mismatch is corrected, counted and alerted above the threshold."""
        Load.objects.create(
            tracking_number='NSL1', portpro_load_id='pp-1', container_number='MSCU1000001',
            status=LoadStatus.BOOKED,
        )
        self.client.get_loads.return_value = [make_vendor_load(vendor_load, 1, status='COMPLETED')]

        summary = self.reconciler.reconcile()

        assert summary['updated'] == 1
        assert summary['discrepancies'] == 1
        assert Load.objects.get(portpro_load_id='pp-1').status == LoadStatus.DELIVERED
        self.alert.assert_called_once_with('reconciliation_drift', {'discrepancies': 1, 'total': 1})
        self.engine.dispatcher.dispatch.assert_not_called()

    def test_reconcile_vendor_failure_alerts_and_raises(self):
        """Test a failed fetch marks the run failed, alerts and re-raises."""
        self.client.get_loads.side_effect = VendorUnavailable('PortPro API error: 503')

        with pytest.raises(VendorUnavailable):
            self.reconciler.reconcile()

        assert SyncRun.objects.get().status == SyncRun.Status.FAILED
        self.alert.assert_called_once_with('reconciliation_drift', {'error': 'PortPro API error: 503'})

    def test_reconcile_continues_past_bad_record(self, vendor_load):
        """Test one unmappable load is counted as an error without stopping the pass."""
        self.client.get_loads.return_value = [
            make_vendor_load(vendor_load, 1, totalAmount='lots'),
            make_vendor_load(vendor_load, 2),
        ]

        summary = self.reconciler.reconcile()

        assert summary['errors'] == 1
        assert summary['synced'] == 1

    def test_poll_advances_cursor_on_full_page(self, vendor_load):
        """Test a full page moves the cursor forward by the page size."""
        self.client.get_loads.return_value = [make_vendor_load(vendor_load, 1), make_vendor_load(vendor_load, 2)]

        summary = self.reconciler.poll()

        assert summary['synced'] == 2
        assert summary['next_skip'] == 2
        assert SyncCursor.objects.get(sync_type=SyncRun.SyncType.POLL).skip == 2

    def test_poll_wraps_cursor_on_short_page(self, vendor_load):
        """Test a short page resets the cursor to zero."""
        SyncCursor.objects.create(sync_type=SyncRun.SyncType.POLL, skip=40, limit=2)
        self.client.get_loads.return_value = [make_vendor_load(vendor_load, 41)]

        summary = self.reconciler.poll()

        self.client.get_loads.assert_called_once_with(skip=40, limit=2)
        assert summary['next_skip'] == 0

    def test_poll_skips_loads_not_newer_than_local(self, vendor_load):
        """Test existing loads are only rewritten when the vendor copy is newer."""
        Load.objects.create(
            tracking_number='NSL1', portpro_load_id='pp-1', container_number='MSCU1000001',
            status=LoadStatus.BOOKED, updated_at=datetime(2026, 1, 27, tzinfo=dt_timezone.utc),
        )
        Load.objects.create(
            tracking_number='NSL2', portpro_load_id='pp-2', container_number='MSCU1000002',
            status=LoadStatus.BOOKED, updated_at=datetime(2026, 1, 25, tzinfo=dt_timezone.utc),
        )
        self.client.get_loads.return_value = [
            make_vendor_load(vendor_load, 1, updatedAt='2026-01-26T10:00:00Z'),
            make_vendor_load(vendor_load, 2, updatedAt='2026-01-26T10:00:00Z'),
        ]

        summary = self.reconciler.poll()

        assert summary['unchanged'] == 1
        assert summary['updated'] == 1
        assert Load.objects.get(portpro_load_id='pp-1').status == LoadStatus.BOOKED
        assert Load.objects.get(portpro_load_id='pp-2').status == LoadStatus.IN_TRANSIT

    def test_sync_page_skips_loads_without_container(self, vendor_load):
        """Test manual sync skips container-less loads and reports paging."""
        self.client.get_loads.return_value = [
            make_vendor_load(vendor_load, 1),
            make_vendor_load(vendor_load, 2, containerNo=''),
        ]

        summary = self.reconciler.sync_page(skip=10, limit=2)

        self.client.get_loads.assert_called_once_with(skip=10, limit=2)
        assert summary['synced'] == 1
        assert summary['skipped'] == 1
        assert summary['has_more'] is True
        assert summary['next_skip'] == 12
        assert SyncRun.objects.get().sync_type == SyncRun.SyncType.MANUAL

    def test_sync_page_reports_errors(self, vendor_load):
        """Test per-load failures are listed in error_details."""
        self.client.get_loads.return_value = [make_vendor_load(vendor_load, 1, lastFreeDay='soonish')]

        summary = self.reconciler.sync_page(limit=5)

        assert summary['errors'] == 1
        assert summary['error_details'][0].startswith('Process REF-1:')
        assert summary['has_more'] is False

    def test_reconcile_unparseable_stop_duration_does_not_abort(self, vendor_load):
        """Test a stop with a free-text duration fails only its own load and the run completes."""
        bad = make_vendor_load(vendor_load, 1, driverOrder=[
            {'moveNumber': 1, 'moves': [{'type': 'PULLCONTAINER', 'duration': '15 min'}]},
        ])
        self.client.get_loads.return_value = [bad, make_vendor_load(vendor_load, 2)]

        summary = self.reconciler.reconcile()

        assert summary['errors'] == 1
        assert summary['synced'] == 1
        assert list(Load.objects.values_list('portpro_load_id', flat=True)) == ['pp-2']
        run = SyncRun.objects.get()
        assert run.status == SyncRun.Status.COMPLETED
        assert run.records_failed == 1

    def test_reconcile_unexpected_error_fails_run(self, vendor_load):
        """Test an error outside per-record handling closes the run as failed and re-raises."""
        self.client.get_loads.return_value = [make_vendor_load(vendor_load, 1)]
        self.engine.upsert_vendor_load = Mock(side_effect=RuntimeError('boom'))

        with pytest.raises(RuntimeError):
            self.reconciler.reconcile()

        run = SyncRun.objects.get()
        assert run.status == SyncRun.Status.FAILED
        assert run.metadata['error'] == 'boom'

    def test_poll_tolerates_string_caller_and_advances_past_bad_record(self, vendor_load):
        """Test a caller given as a name still syncs, a bad record is skipped and the cursor moves."""
        self.client.get_loads.return_value = [
            make_vendor_load(vendor_load, 1, caller='Acme'),
            make_vendor_load(vendor_load, 2, driverOrder=[{'moveNumber': 'first', 'type': 'PULLCONTAINER'}]),
        ]

        summary = self.reconciler.poll()

        assert summary['synced'] == 1
        assert summary['errors'] == 1
        assert Load.objects.get(portpro_load_id='pp-1').customer_name is None
        assert SyncCursor.objects.get(sync_type=SyncRun.SyncType.POLL).skip == 2
        assert SyncRun.objects.get().status == SyncRun.Status.COMPLETED

    def test_poll_non_object_record_is_an_error(self, vendor_load):
        """Test a record that is not an object is counted as an error."""
        self.client.get_loads.return_value = ['pp-9', make_vendor_load(vendor_load, 1)]

        summary = self.reconciler.poll()

        assert summary['errors'] == 1
        assert summary['synced'] == 1
        assert summary['next_skip'] == 2

    def test_sync_page_non_object_record_is_an_error(self, vendor_load):
        """Test manual sync reports a non-object record instead of crashing."""
        self.client.get_loads.return_value = [None, make_vendor_load(vendor_load, 1)]

        summary = self.reconciler.sync_page(limit=5)

        assert summary['errors'] == 1
        assert summary['synced'] == 1
        assert summary['error_details'][0].startswith('Process None:')
