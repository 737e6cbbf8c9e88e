"""
Pull-based synchronization with PortPro: full reconciliation, incremental
polling and manual page sync.

These paths catch events that webhook delivery missed. They share the sync
engine's upsert so a load looks the same whichever path wrote it.
"""
import logging
import time
from typing import Callable, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from portpro.models import SyncCursor, SyncRun
from portpro.services.errors import SyncError, VendorUnavailable
from portpro.services.mapping import parse_vendor_datetime
from portpro.services.sync_engine import RECORD_FAILURES, SyncEngine, to_sync_error

logger = logging.getLogger(__name__)

MAX_ERROR_DETAILS = 10


def _reference(vendor_load) -> Optional[str]:
    return vendor_load.get('reference_number') if isinstance(vendor_load, dict) else None


def _raise_record_error(error: Exception) -> None:
    sync_error = to_sync_error(error, 'PortPro load')
    if sync_error is error:
        raise error
    raise sync_error from error


class Reconciler:

    def __init__(self, engine, client, batch_size: int = 100, poll_limit: int = 100,
                 drift_threshold: int = 20, alert: Optional[Callable[[str, dict], bool]] = None):
        self.engine = engine
        self.client = client
        self.batch_size = batch_size
        self.poll_limit = poll_limit
        self.drift_threshold = drift_threshold
        if alert is None:
            from portpro.services.monitoring import send_alert
            alert = send_alert
        self.alert = alert

    @classmethod
    def from_settings(cls, engine=None, client=None) -> 'Reconciler':
        from portpro.services.client import PortProClient

        return cls(
            engine or SyncEngine.from_settings(),
            client or PortProClient.from_settings(),
            batch_size=settings.PORTPRO_RECONCILE_BATCH_SIZE,
            poll_limit=settings.PORTPRO_POLL_LIMIT,
            drift_threshold=settings.RECONCILE_DRIFT_THRESHOLD,
        )

    def _apply(self, vendor_load, sync_events: bool = True):
        """
        Upsert one vendor record in its own transaction.

        Raises:
            SyncError: If the record cannot be mapped or written
        """
        try:
            with transaction.atomic():
                return self.engine.upsert_vendor_load(vendor_load, [], sync_events=sync_events)
        except RECORD_FAILURES as e:
            _raise_record_error(e)

    def _is_stale(self, vendor_load) -> bool:
        """
        True when a local load exists and is at least as new as the vendor record.

        Raises:
            SyncError: If the record cannot be read
        """
        try:
            existing = self.engine.loads.find_match(
                vendor_load.get('_id'),
                vendor_load.get('containerNo'),
                vendor_load.get('reference_number'),
            )
            if existing is None:
                return False
            vendor_updated = parse_vendor_datetime(vendor_load.get('updatedAt'))
        except RECORD_FAILURES as e:
            _raise_record_error(e)
        return vendor_updated is None or vendor_updated <= existing.updated_at

    @staticmethod
    def _finish(run: SyncRun, processed: int, failed: int, metadata: dict,
                status: str = SyncRun.Status.COMPLETED) -> SyncRun:
        run.status = status
        run.completed_at = timezone.now()
        run.records_processed = processed
        run.records_failed = failed
        run.metadata = {**run.metadata, **metadata}
        run.save()
        return run

    def reconcile(self, triggered_by: str = 'schedule') -> dict:
        """
        Page through every PortPro load and upsert it locally.

        A discrepancy is a local load whose status differs from the vendor's.
        More than `drift_threshold` discrepancies raises a
        reconciliation_drift alert; so does a failed fetch. A record that
        cannot be mapped or written is counted as an error and skipped.

        Raises:
            VendorUnavailable: If a page cannot be fetched
        """
        started = time.monotonic()
        run = SyncRun.objects.create(
            sync_type=SyncRun.SyncType.RECONCILE,
            metadata={'triggered_by': triggered_by},
        )
        created = updated = errors = discrepancies = total = 0
        skip = 0

        try:
            while True:
                page = self.client.get_loads(skip=skip, limit=self.batch_size)
                total += len(page)
                for vendor_load in page:
                    if isinstance(vendor_load, dict) and not vendor_load.get('containerNo'):
                        continue
                    try:
                        load, was_created, previous_status = self._apply(vendor_load)
                    except SyncError as e:
                        errors += 1
                        logger.error(f"Reconcile failed for {_reference(vendor_load)}: {e}")
                        continue
                    if was_created:
                        created += 1
                    else:
                        updated += 1
                        if previous_status != load.status:
                            discrepancies += 1
                            logger.info(
                                f"Discrepancy: {load.portpro_reference} status "
                                f"{previous_status} -> {load.status}"
                            )
                if len(page) < self.batch_size:
                    break
                skip += self.batch_size
        except VendorUnavailable as e:
            self._finish(run, total, errors, {'error': str(e)}, status=SyncRun.Status.FAILED)
            logger.error(f"Reconciliation failed: {e}")
            self.alert('reconciliation_drift', {'error': str(e)})
            raise
        except Exception as e:
            self._finish(run, total, errors, {'error': str(e)}, status=SyncRun.Status.FAILED)
            logger.exception(f"Reconciliation aborted: {e}")
            raise

        duration_ms = int((time.monotonic() - started) * 1000)
        summary = {
            'total': total,
            'synced': created,
            'updated': updated,
            'discrepancies': discrepancies,
            'errors': errors,
            'duration_ms': duration_ms,
        }
        self._finish(run, total, errors, summary)
        logger.info(f"Reconciliation completed: {summary}")

        if discrepancies > self.drift_threshold:
            self.alert('reconciliation_drift', {'discrepancies': discrepancies, 'total': total})
        return summary

    def poll(self) -> dict:
        """
        Fetch one page from the stored cursor and apply vendor changes.

        Existing loads are only rewritten when the vendor's `updatedAt` is
        newer than the local `updated_at`. The cursor advances by the page
        size and wraps to 0 after a short page, whether or not individual
        records failed.
        """
        cursor, _ = SyncCursor.objects.get_or_create(
            sync_type=SyncRun.SyncType.POLL,
            defaults={'limit': self.poll_limit},
        )
        run = SyncRun.objects.create(
            sync_type=SyncRun.SyncType.POLL,
            metadata={'skip': cursor.skip, 'limit': cursor.limit},
        )

        try:
            page = self.client.get_loads(skip=cursor.skip, limit=cursor.limit)
        except VendorUnavailable as e:
            self._finish(run, 0, 0, {'error': str(e)}, status=SyncRun.Status.FAILED)
            raise

        created = updated = unchanged = errors = 0
        try:
            for vendor_load in page:
                try:
                    if self._is_stale(vendor_load):
                        unchanged += 1
                        continue
                    _, was_created, _ = self._apply(vendor_load)
                except SyncError as e:
                    errors += 1
                    logger.error(f"Poll failed for {_reference(vendor_load)}: {e}")
                    continue
                if was_created:
                    created += 1
                else:
                    updated += 1

            if len(page) >= cursor.limit:
                cursor.skip += len(page)
            else:
                cursor.skip = 0
            cursor.save()
        except Exception as e:
            self._finish(run, len(page), errors, {'error': str(e)}, status=SyncRun.Status.FAILED)
            logger.exception(f"PortPro poll aborted: {e}")
            raise

        summary = {
            'fetched': len(page),
            'synced': created,
            'updated': updated,
            'unchanged': unchanged,
            'errors': errors,
            'next_skip': cursor.skip,
        }
        self._finish(run, len(page), errors, summary)
        if created or updated:
            logger.info(f"PortPro poll: {summary}")
        return summary

    def sync_page(self, skip: int = 0, limit: int = 50) -> dict:
        """
        Sync one page on demand, including tracking events.

        Loads without a container number are skipped.
        """
        run = SyncRun.objects.create(
            sync_type=SyncRun.SyncType.MANUAL,
            metadata={'skip': skip, 'limit': limit},
        )
        try:
            page = self.client.get_loads(skip=skip, limit=limit)
        except VendorUnavailable as e:
            self._finish(run, 0, 0, {'error': str(e)}, status=SyncRun.Status.FAILED)
            raise

        synced = skipped = errors = 0
        error_details = []
        try:
            for vendor_load in page:
                reference = _reference(vendor_load)
                if isinstance(vendor_load, dict) and not vendor_load.get('containerNo'):
                    logger.info(f"Skipping load {reference} - no container number")
                    skipped += 1
                    continue
                try:
                    self._apply(vendor_load, sync_events=True)
                except SyncError as e:
                    errors += 1
                    error_details.append(f"Process {reference}: {e}")
                    logger.error(f"Manual sync failed for {reference}: {e}")
                    continue
                synced += 1
        except Exception as e:
            self._finish(run, len(page), errors, {'error': str(e)}, status=SyncRun.Status.FAILED)
            logger.exception(f"Manual sync aborted: {e}")
            raise

        summary = {
            'total': len(page),
            'synced': synced,
            'skipped': skipped,
            'errors': errors,
            'error_details': error_details[:MAX_ERROR_DETAILS],
            'has_more': len(page) == limit,
            'next_skip': skip + len(page),
        }
        self._finish(run, len(page), errors, {k: v for k, v in summary.items() if k != 'error_details'})
        return summary
