"""
Celery tasks for quotes.
"""
import logging
from celery import shared_task

from quotes.services.assignment import expire_quotes

logger = logging.getLogger(__name__)


@shared_task
def expire_stale_quotes():
    """Hourly: expire quoted quotes past their deadline and warn about ones close to it."""
    summary = expire_quotes()
    logger.info(f"Quote expiration pass: {summary}")
    return summary
