"""
Quote assignment and expiration.

Assignment is exclusive: the write is a single conditional UPDATE guarded on
the `updated_at` the caller last saw, so of two admins claiming the same
quote at once exactly one wins and the other gets QuoteAssignmentConflict.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from django.db import transaction
from django.utils import timezone

from notifications.models import Employee
from quotes.models import Quote
from quotes.services.repositories import QuoteRepository

logger = logging.getLogger(__name__)

EXPIRING_SOON_WINDOW = timedelta(hours=24)


class QuoteAssignmentConflict(Exception):
    """Raised when the quote changed since the caller last read it."""
    pass


class QuoteNotAssignable(Exception):
    """Raised when the quote's lifecycle does not allow assignment."""
    pass


def _default_dispatcher():
    from notifications.services.dispatcher import NotificationDispatcher
    return NotificationDispatcher.from_settings()


def _quote_data(quote: Quote) -> dict:
    return {
        'reference': quote.reference_number,
        'contact_name': quote.contact_name or 'Customer',
        'container': quote.container_number,
        'delivery_zip': quote.delivery_zip,
        'amount': quote.quoted_price,
    }


def assign_quote(quote_id: int, assignee: Employee, expected_updated_at: Optional[datetime] = None,
                 actor: Optional[Employee] = None, now: Optional[datetime] = None,
                 repository: Optional[QuoteRepository] = None, dispatcher=None,
                 notify: bool = True) -> Quote:
    """
    Assign a quote to an employee.

    A pending quote moves to in_review on its first claim.

    Args:
        expected_updated_at: The `updated_at` the caller read; defaults to the current value

    Raises:
        Quote.DoesNotExist: If the quote does not exist
        QuoteNotAssignable: If the quote is terminal or cancelled
        QuoteAssignmentConflict: If another writer updated the quote first
    """
    repository = repository or QuoteRepository()
    now = now or timezone.now()
    quote = repository.get(quote_id)

    if quote.lifecycle_status not in Quote.ASSIGNABLE_STATES:
        raise QuoteNotAssignable(
            f"Quote {quote.reference_number} is {quote.lifecycle_status} and cannot be assigned"
        )

    old_status = quote.lifecycle_status
    new_status = Quote.Lifecycle.IN_REVIEW if old_status == Quote.Lifecycle.PENDING else old_status

    with transaction.atomic():
        claimed = repository.conditional_update(
            quote.id,
            expected_updated_at or quote.updated_at,
            allowed_states=Quote.ASSIGNABLE_STATES,
            now=now,
            assignee=assignee,
            assigned_at=now,
            lifecycle_status=new_status,
        )
        if not claimed:
            logger.info(f"Assignment conflict on quote {quote.reference_number}")
            raise QuoteAssignmentConflict(
                f"Quote {quote.reference_number} was modified by someone else, refresh and try again"
            )
        repository.log(
            quote, 'assigned', old_status=old_status, new_status=new_status, actor=actor,
            metadata={'assignee_id': assignee.id},
        )

    quote.refresh_from_db()
    logger.info(f"Quote {quote.reference_number} assigned to employee {assignee.id}")

    if notify:
        (dispatcher or _default_dispatcher()).dispatch('quote_assigned', quote.id, _quote_data(quote))
    return quote


def unassign_quote(quote_id: int, expected_updated_at: Optional[datetime] = None,
                   actor: Optional[Employee] = None, now: Optional[datetime] = None,
                   repository: Optional[QuoteRepository] = None) -> Quote:
    """
    Clear the assignee.

    Raises:
        Quote.DoesNotExist: If the quote does not exist
        QuoteAssignmentConflict: If another writer updated the quote first
    """
    repository = repository or QuoteRepository()
    quote = repository.get(quote_id)
    previous = quote.assignee_id

    with transaction.atomic():
        if not repository.conditional_update(
            quote.id, expected_updated_at or quote.updated_at, now=now,
            assignee=None, assigned_at=None,
        ):
            raise QuoteAssignmentConflict(
                f"Quote {quote.reference_number} was modified by someone else, refresh and try again"
            )
        repository.log(quote, 'unassigned', actor=actor, metadata={'previous_assignee_id': previous})

    quote.refresh_from_db()
    logger.info(f"Quote {quote.reference_number} unassigned")
    return quote


def expire_quotes(now: Optional[datetime] = None, repository: Optional[QuoteRepository] = None,
                  dispatcher=None) -> dict:
    """
    Move quoted quotes past `expires_at` to expired and warn about the ones
    expiring within 24 hours (once per quote).

    Returns:
        {'expired': n, 'expiring_soon': n, 'conflicts': n}
    """
    repository = repository or QuoteRepository()
    now = now or timezone.now()
    dispatcher = dispatcher or _default_dispatcher()
    expired = conflicts = expiring = 0

    for quote in repository.list_expired(now):
        with transaction.atomic():
            if not repository.conditional_update(
                quote.id, quote.updated_at, allowed_states=(Quote.Lifecycle.QUOTED,), now=now,
                lifecycle_status=Quote.Lifecycle.EXPIRED,
            ):
                conflicts += 1
                continue
            repository.log(
                quote, 'expired', old_status=Quote.Lifecycle.QUOTED,
                new_status=Quote.Lifecycle.EXPIRED, actor_type='system',
            )
        expired += 1
        dispatcher.dispatch('quote_expired', quote.id, _quote_data(quote))

    for quote in repository.list_expiring(now, now + EXPIRING_SOON_WINDOW):
        repository.log(quote, 'expiring_soon_notified', actor_type='system')
        dispatcher.dispatch('quote_expiring_soon', quote.id, _quote_data(quote))
        expiring += 1

    if expired or expiring or conflicts:
        logger.info(f"Quote expiration: {expired} expired, {expiring} expiring soon, {conflicts} conflicts")
    return {'expired': expired, 'expiring_soon': expiring, 'conflicts': conflicts}
