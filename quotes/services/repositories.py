"""
Quote persistence with optimistic locking on `updated_at`.
"""
import logging
from datetime import datetime
from typing import List, Optional

from django.utils import timezone

from quotes.models import Quote, QuoteAuditLog

logger = logging.getLogger(__name__)


class QuoteRepository:

    def get(self, quote_id: int) -> Quote:
        """
        Raises:
            Quote.DoesNotExist: If no quote has this id
        """
        return Quote.objects.select_related('assignee').get(id=quote_id)

    def conditional_update(self, quote_id: int, expected_updated_at: datetime,
                           allowed_states=None, now: Optional[datetime] = None, **fields) -> bool:
        """
        UPDATE ... WHERE id = ? AND updated_at = ? in one statement.

        Returns:
            False when another writer changed the row first (or the
            lifecycle left `allowed_states`)
        """
        now = now or timezone.now()
        queryset = Quote.objects.filter(id=quote_id, updated_at=expected_updated_at)
        if allowed_states is not None:
            queryset = queryset.filter(lifecycle_status__in=allowed_states)
        return queryset.update(updated_at=now, **fields) == 1

    def list_expired(self, now: datetime) -> List[Quote]:
        return list(Quote.objects.filter(
            lifecycle_status=Quote.Lifecycle.QUOTED,
            expires_at__lte=now,
        ))

    def list_expiring(self, now: datetime, until: datetime) -> List[Quote]:
        return list(
            Quote.objects.filter(
                lifecycle_status=Quote.Lifecycle.QUOTED,
                expires_at__gt=now,
                expires_at__lte=until,
            ).exclude(audit_log__action='expiring_soon_notified')
        )

    def log(self, quote: Quote, action: str, old_status: str = '', new_status: str = '',
            actor=None, actor_type: str = 'admin', metadata: Optional[dict] = None) -> QuoteAuditLog:
        return QuoteAuditLog.objects.create(
            quote=quote,
            action=action,
            old_status=old_status,
            new_status=new_status,
            actor=actor,
            actor_type=actor_type,
            metadata=metadata or {},
        )
