"""
Unit tests for quote Celery tasks.
"""
from unittest.mock import patch

from quotes.tasks import expire_stale_quotes


class TestExpireStaleQuotes:
    """Tests for expire_stale_quotes task."""

    @patch('quotes.tasks.expire_quotes')
    def test_returns_summary(self, mock_expire):
        """Test the task runs one expiration pass and returns its summary."""
        mock_expire.return_value = {'expired': 2, 'expiring_soon': 1, 'conflicts': 0}

        result = expire_stale_quotes()

        assert result == {'expired': 2, 'expiring_soon': 1, 'conflicts': 0}
        mock_expire.assert_called_once_with()
