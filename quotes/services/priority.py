"""
Quote lead scoring, SLA status and queue priority.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Union

from django.utils import timezone

# SLA thresholds in hours
SLA_URGENT_HOURS = 2
SLA_STANDARD_HOURS = 4
SLA_LOW_HOURS = 8

URGENT_SCORE_THRESHOLD = 3
URGENT_REQUEST_TYPES = frozenset({'urgent_lfd', 'rolled', 'hold_released'})
LFD_WINDOW_DAYS = 3

SLA_OK = 'ok'
SLA_WARNING = 'warning'
SLA_OVERDUE = 'overdue'

_ACTIVE_STATES = ('pending', 'in_review')


def calculate_lead_score(quote, today: Optional[date] = None) -> int:
    """
    Additive lead score from the submission fields.

    urgent_lfd +2, rolled/hold_released +1, time sensitive +2, container
    number +1, phone +1, last free day within 0..3 days +2. Not capped.
    """
    today = today or timezone.localdate()
    score = 0

    if quote.request_type == 'urgent_lfd':
        score += 2
    elif quote.request_type in ('rolled', 'hold_released'):
        score += 1

    if quote.time_sensitive:
        score += 2
    if quote.container_number:
        score += 1
    if quote.phone:
        score += 1

    if quote.lfd:
        lfd = quote.lfd.date() if isinstance(quote.lfd, datetime) else quote.lfd
        if 0 <= (lfd - today).days <= LFD_WINDOW_DAYS:
            score += 2

    return score


def is_urgent_lead(score: int, quote) -> bool:
    # Request type overrides the score
    return score >= URGENT_SCORE_THRESHOLD or quote.request_type in URGENT_REQUEST_TYPES


def get_hours_pending(quote, now: Optional[datetime] = None) -> float:
    now = now or timezone.now()
    return (now - quote.created_at).total_seconds() / 3600


def _sla_hours(quote) -> int:
    return SLA_URGENT_HOURS if quote.is_urgent else SLA_STANDARD_HOURS


def get_sla_status(quote, now: Optional[datetime] = None) -> str:
    """ok / warning (past 1x threshold) / overdue (past 2x). Non-active quotes are always ok."""
    if quote.lifecycle_status not in _ACTIVE_STATES:
        return SLA_OK

    hours = get_hours_pending(quote, now)
    threshold = _sla_hours(quote)
    if hours > threshold * 2:
        return SLA_OVERDUE
    if hours > threshold:
        return SLA_WARNING
    return SLA_OK


def get_sla_deadline(quote) -> datetime:
    return quote.created_at + timedelta(hours=_sla_hours(quote))


def get_time_to_sla(quote, now: Optional[datetime] = None) -> float:
    """Hours until the SLA deadline; negative once it has passed."""
    now = now or timezone.now()
    return (get_sla_deadline(quote) - now).total_seconds() / 3600


def format_sla_status(status: str) -> dict:
    if status == SLA_OVERDUE:
        return {'label': 'Overdue', 'color': 'red', 'description': 'Response time exceeded SLA threshold'}
    if status == SLA_WARNING:
        return {'label': 'Due Soon', 'color': 'yellow', 'description': 'Approaching SLA deadline'}
    return {'label': 'On Track', 'color': 'green', 'description': 'Within SLA window'}


@dataclass
class QuotePriority:
    score: int
    sla_status: str
    hours_pending: float
    lead_score: int
    urgency: int
    customer_value: int
    time_sensitive: int


def calculate_priority(quote, now: Optional[datetime] = None) -> QuotePriority:
    """
    Queue priority from 0 to 100, higher first.

    Sum of lead score x3 (cap 30), time pending (5/10/20/30 at 1/2/4/8
    hours), customer value (10 with a company name, else 5) and time
    sensitivity (20 urgent, 15 time sensitive or urgent_lfd/rolled, else 0).
    """
    hours = get_hours_pending(quote, now)

    lead_points = min((quote.lead_score or 0) * 3, 30)

    if hours >= SLA_LOW_HOURS:
        urgency_points = 30
    elif hours >= SLA_STANDARD_HOURS:
        urgency_points = 20
    elif hours >= SLA_URGENT_HOURS:
        urgency_points = 10
    elif hours >= 1:
        urgency_points = 5
    else:
        urgency_points = 0

    customer_points = 10 if quote.company_name else 5

    if quote.is_urgent:
        sensitivity_points = 20
    elif quote.time_sensitive or quote.request_type in ('urgent_lfd', 'rolled'):
        sensitivity_points = 15
    else:
        sensitivity_points = 0

    return QuotePriority(
        score=min(lead_points + urgency_points + customer_points + sensitivity_points, 100),
        sla_status=get_sla_status(quote, now),
        hours_pending=hours,
        lead_score=lead_points,
        urgency=urgency_points,
        customer_value=customer_points,
        time_sensitive=sensitivity_points,
    )


def sort_by_priority(quotes: Iterable, now: Optional[datetime] = None) -> List:
    now = now or timezone.now()
    return sorted(quotes, key=lambda q: calculate_priority(q, now).score, reverse=True)


def filter_by_sla_status(quotes: Iterable, status: Union[str, Iterable[str]],
                         now: Optional[datetime] = None) -> List:
    statuses = {status} if isinstance(status, str) else set(status)
    now = now or timezone.now()
    return [q for q in quotes if get_sla_status(q, now) in statuses]
