"""
API views for the PortPro integration.
"""
import json
import logging
import uuid

from django.conf import settings
from django.utils import timezone
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from portpro.models import DeadLetterEntry, WebhookLog
from portpro.services.dead_letter import DeadLetterQueue
from portpro.services.errors import SignatureInvalid, StoreUnavailable, VendorUnavailable
from portpro.services.idempotency import IdempotencyStore
from portpro.services.monitoring import get_sync_metrics
from portpro.services.reconciliation import Reconciler
from portpro.services.signature import require_valid_signature
from portpro.services.sync_engine import SyncEngine, event_name
from portpro.tasks import process_webhook_event

logger = logging.getLogger(__name__)

MAX_SYNC_PAGE = 100


@method_decorator(csrf_exempt, name='dispatch')
class PortProWebhookView(APIView):
    """
    Webhook endpoint for PortPro events.

    POST /webhooks/portpro/
    - Verifies X-Hub-Signature against the raw body
    - Logs the delivery and enqueues async processing
    - Always answers 200 for well-formed bodies so PortPro does not retry;
      failures are handled by the dead-letter queue

    GET /webhooks/portpro/
    - Health check
    """

    authentication_classes = []
    permission_classes = []

    def post(self, request):
        """
        Returns:
            200 OK: Event accepted (or rejected signature, reported in the body)
            400 Bad Request: Empty or malformed JSON body
            500 Internal Server Error: Unexpected error
        """
        correlation_id = str(uuid.uuid4())

        try:
            raw_body = request.body.decode('utf-8', 'replace')
            if not raw_body.strip():
                logger.warning(f"Empty PortPro webhook received, correlation_id={correlation_id}")
                return Response(
                    {'error': 'Empty payload', 'correlation_id': correlation_id},
                    status=status.HTTP_400_BAD_REQUEST
                )

            try:
                payload = json.loads(raw_body)
            except ValueError as e:
                logger.warning(f"Malformed JSON payload: {e}, correlation_id={correlation_id}")
                return Response(
                    {'error': 'Malformed JSON', 'correlation_id': correlation_id},
                    status=status.HTTP_400_BAD_REQUEST
                )
            if not isinstance(payload, dict) or not payload:
                return Response(
                    {'error': 'Payload must be a JSON object', 'correlation_id': correlation_id},
                    status=status.HTTP_400_BAD_REQUEST
                )

            data = payload.get('data') if isinstance(payload.get('data'), dict) else {}
            event_type = event_name(payload)
            reference = payload.get('reference_number') or data.get('reference_number')

            signature = request.META.get('HTTP_X_HUB_SIGNATURE')
            try:
                require_valid_signature(signature, request.body, settings.PORTPRO_WEBHOOK_SECRET)
            except SignatureInvalid as e:
                logger.warning(
                    f"{e} for PortPro {event_type}, "
                    f"correlation_id={correlation_id}"
                )
                WebhookLog.objects.create(
                    event_type=event_type, reference_number=reference,
                    payload=payload, signature_valid=False,
                )
                return Response(
                    {'success': False, 'error': 'Invalid signature', 'correlation_id': correlation_id},
                    status=status.HTTP_200_OK
                )

            WebhookLog.objects.create(event_type=event_type, reference_number=reference, payload=payload)
            logger.info(
                f"PortPro webhook {event_type} ({reference}) received, "
                f"correlation_id={correlation_id}"
            )

            try:
                process_webhook_event.delay(raw_body)
            except Exception as e:
                # Broker down: keep the event for the DLQ retry job
                logger.error(
                    f"Failed to enqueue PortPro webhook {event_type}: {e}, "
                    f"correlation_id={correlation_id}",
                    exc_info=True
                )
                error = StoreUnavailable(f"Could not enqueue webhook: {e}")
                entry = DeadLetterQueue.from_settings().push(event_type, raw_body, error)
                return Response(
                    {
                        'success': True,
                        'queued': False,
                        'dead_letter_id': entry.id,
                        'correlation_id': correlation_id
                    },
                    status=status.HTTP_200_OK
                )

            return Response(
                {
                    'success': True,
                    'event_type': event_type,
                    'correlation_id': correlation_id
                },
                status=status.HTTP_200_OK
            )

        except Exception as e:
            logger.error(
                f"Error processing PortPro webhook: {e}, "
                f"correlation_id={correlation_id}",
                exc_info=True
            )
            return Response(
                {'error': 'Internal server error', 'correlation_id': correlation_id},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

    def get(self, request):
        return Response(
            {
                'status': 'ok',
                'endpoint': 'portpro-webhook',
                'signature_configured': bool(settings.PORTPRO_WEBHOOK_SECRET),
                'timestamp': timezone.now().isoformat(),
            },
            status=status.HTTP_200_OK
        )


def serialize_entry(entry: DeadLetterEntry, include_payload: bool = False) -> dict:
    data = {
        'id': entry.id,
        'event_type': entry.event_type,
        'error_message': entry.error_message,
        'error_kind': entry.error_kind,
        'retry_count': entry.retry_count,
        'status': entry.status,
        'next_retry_at': entry.next_retry_at.isoformat() if entry.next_retry_at else None,
        'first_failed_at': entry.first_failed_at.isoformat(),
        'last_attempt_at': entry.last_attempt_at.isoformat(),
    }
    if include_payload:
        data['payload'] = entry.payload
    return data


class SyncHealthView(APIView):
    """GET /admin-api/sync-health/"""

    permission_classes = [IsAdminUser]

    def get(self, request):
        metrics = get_sync_metrics()
        metrics['dedup'] = IdempotencyStore.from_settings().stats()
        return Response(metrics, status=status.HTTP_200_OK)


class DeadLetterListView(APIView):
    """GET /admin-api/dlq/?limit=100"""

    permission_classes = [IsAdminUser]

    def get(self, request):
        try:
            limit = max(1, min(int(request.query_params.get('limit', 100)), 500))
        except ValueError:
            return Response({'error': 'limit must be an integer'}, status=status.HTTP_400_BAD_REQUEST)

        dead_letters = DeadLetterQueue.from_settings()
        return Response(
            {
                'stats': dead_letters.stats(),
                'entries': [serialize_entry(e) for e in dead_letters.list_entries(limit)],
            },
            status=status.HTTP_200_OK
        )


class DeadLetterDetailView(APIView):
    """GET / DELETE /admin-api/dlq/<id>/"""

    permission_classes = [IsAdminUser]

    def get(self, request, entry_id: int):
        entry = DeadLetterQueue.from_settings().get(entry_id)
        if entry is None:
            return Response({'error': 'Entry not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(serialize_entry(entry, include_payload=True), status=status.HTTP_200_OK)

    def delete(self, request, entry_id: int):
        if not DeadLetterQueue.from_settings().remove(entry_id):
            return Response({'error': 'Entry not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)


class DeadLetterRetryView(APIView):
    """POST /admin-api/dlq/<id>/retry/"""

    permission_classes = [IsAdminUser]

    def post(self, request, entry_id: int):
        dead_letters = DeadLetterQueue.from_settings()
        entry = dead_letters.get(entry_id)
        if entry is None:
            return Response({'error': 'Entry not found'}, status=status.HTTP_404_NOT_FOUND)

        succeeded = dead_letters.retry(entry, SyncEngine.from_settings().reprocess)
        logger.info(f"Manual retry of DLQ entry {entry_id} by {request.user}: succeeded={succeeded}")
        return Response(
            {
                'success': succeeded,
                'entry': None if succeeded else serialize_entry(entry),
            },
            status=status.HTTP_200_OK
        )


class ManualSyncView(APIView):
    """POST /admin-api/sync/ {"skip": 0, "limit": 50}"""

    permission_classes = [IsAdminUser]

    def post(self, request):
        correlation_id = str(uuid.uuid4())
        body = request.data if hasattr(request.data, 'get') else {}
        try:
            skip = max(0, int(body.get('skip', 0)))
            limit = max(1, min(int(body.get('limit', 50)), MAX_SYNC_PAGE))
        except (TypeError, ValueError):
            return Response(
                {'error': 'skip and limit must be integers', 'correlation_id': correlation_id},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            summary = Reconciler.from_settings().sync_page(skip=skip, limit=limit)
        except VendorUnavailable as e:
            logger.error(f"Manual sync failed: {e}, correlation_id={correlation_id}")
            return Response(
                {'error': str(e), 'correlation_id': correlation_id},
                status=status.HTTP_502_BAD_GATEWAY
            )

        logger.info(f"Manual sync by {request.user}: {summary}, correlation_id={correlation_id}")
        return Response({**summary, 'correlation_id': correlation_id}, status=status.HTTP_200_OK)
