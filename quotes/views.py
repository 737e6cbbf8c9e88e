"""
Admin API views for quotes.
"""
import logging
import uuid

from django.utils.dateparse import parse_datetime
from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from notifications.models import Employee
from quotes.models import Quote
from quotes.services.assignment import (
    QuoteAssignmentConflict,
    QuoteNotAssignable,
    assign_quote,
    unassign_quote,
)
from quotes.services.priority import calculate_priority

logger = logging.getLogger(__name__)


def serialize_quote(quote: Quote) -> dict:
    priority = calculate_priority(quote)
    return {
        'id': quote.id,
        'reference_number': quote.reference_number,
        'lifecycle_status': quote.lifecycle_status,
        'assignee_id': quote.assignee_id,
        'assigned_at': quote.assigned_at.isoformat() if quote.assigned_at else None,
        'updated_at': quote.updated_at.isoformat(),
        'lead_score': quote.lead_score,
        'is_urgent': quote.is_urgent,
        'priority': priority.score,
        'sla_status': priority.sla_status,
    }


def _error(message: str, correlation_id: str, http_status: int) -> Response:
    return Response({'error': message, 'correlation_id': correlation_id}, status=http_status)


class QuoteAssignView(APIView):
    """
    POST   /admin-api/quotes/<id>/assign/  {"assignee_id", "expected_updated_at"}
    DELETE /admin-api/quotes/<id>/assign/  {"expected_updated_at"}

    409 when the quote changed since `expected_updated_at`.
    """

    permission_classes = [IsAdminUser]

    @staticmethod
    def _expected_updated_at(request):
        raw = request.data.get('expected_updated_at') if hasattr(request.data, 'get') else None
        if not raw:
            return None, False
        parsed = parse_datetime(str(raw))
        return parsed, parsed is None

    def post(self, request, quote_id: int):
        correlation_id = str(uuid.uuid4())

        assignee_id = request.data.get('assignee_id') if hasattr(request.data, 'get') else None
        if not assignee_id:
            return _error('assignee_id is required', correlation_id, status.HTTP_400_BAD_REQUEST)
        expected, invalid = self._expected_updated_at(request)
        if invalid:
            return _error('expected_updated_at must be an ISO 8601 datetime', correlation_id,
                          status.HTTP_400_BAD_REQUEST)

        try:
            assignee = Employee.objects.get(id=assignee_id, is_active=True)
        except (Employee.DoesNotExist, ValueError):
            return _error('Assignee not found', correlation_id, status.HTTP_400_BAD_REQUEST)

        try:
            quote = assign_quote(quote_id, assignee, expected_updated_at=expected)
        except Quote.DoesNotExist:
            return _error('Quote not found', correlation_id, status.HTTP_404_NOT_FOUND)
        except QuoteNotAssignable as e:
            return _error(str(e), correlation_id, status.HTTP_400_BAD_REQUEST)
        except QuoteAssignmentConflict as e:
            return _error(str(e), correlation_id, status.HTTP_409_CONFLICT)

        logger.info(f"Quote {quote.reference_number} assigned via API, correlation_id={correlation_id}")
        return Response({'quote': serialize_quote(quote), 'correlation_id': correlation_id},
                        status=status.HTTP_200_OK)

    def delete(self, request, quote_id: int):
        correlation_id = str(uuid.uuid4())
        expected, invalid = self._expected_updated_at(request)
        if invalid:
            return _error('expected_updated_at must be an ISO 8601 datetime', correlation_id,
                          status.HTTP_400_BAD_REQUEST)

        try:
            quote = unassign_quote(quote_id, expected_updated_at=expected)
        except Quote.DoesNotExist:
            return _error('Quote not found', correlation_id, status.HTTP_404_NOT_FOUND)
        except QuoteAssignmentConflict as e:
            return _error(str(e), correlation_id, status.HTTP_409_CONFLICT)

        return Response({'quote': serialize_quote(quote), 'correlation_id': correlation_id},
                        status=status.HTTP_200_OK)
