"""
Unit tests for in-app notifications.
"""
import pytest

from notifications.services.channels import in_app
from notifications.services.templates import build_message


@pytest.mark.django_db
class TestInAppNotifications:
    """Tests for the in-app channel."""

    def _send(self, employee, reference):
        return in_app.send_in_app(employee, build_message('quote_sent', 1, {'reference': reference}))

    def test_send_creates_row(self, quotes_employee):
        """Test a row is created with the rendered message."""
        notification = self._send(quotes_employee, 'Q-1')

        assert notification.recipient == quotes_employee
        assert notification.title == 'Quote Q-1 sent'
        assert notification.entity_type == 'quote'
        assert notification.entity_id == '1'
        assert notification.read_at is None

    def test_unread_count_and_mark_read(self, quotes_employee):
        """Test marking read lowers the unread count."""
        first = self._send(quotes_employee, 'Q-1')
        self._send(quotes_employee, 'Q-2')

        assert in_app.unread_count(quotes_employee) == 2
        assert in_app.mark_read([first.id]) == 1
        assert in_app.unread_count(quotes_employee) == 1
        assert in_app.mark_all_read(quotes_employee) == 1
        assert in_app.unread_count(quotes_employee) == 0

    def test_dismiss_hides_from_feed(self, quotes_employee):
        """Test dismissed notifications leave the feed and the unread count."""
        kept = self._send(quotes_employee, 'Q-1')
        hidden = self._send(quotes_employee, 'Q-2')

        assert in_app.dismiss(hidden.id) is True
        assert in_app.dismiss(999) is False
        assert [n.id for n in in_app.recent(quotes_employee)] == [kept.id]
        assert in_app.unread_count(quotes_employee) == 1

    def test_recent_is_newest_first_and_limited(self, quotes_employee):
        """Test the feed is ordered newest first and honors the limit."""
        ids = [self._send(quotes_employee, f'Q-{i}').id for i in range(3)]

        assert [n.id for n in in_app.recent(quotes_employee, limit=2)] == [ids[2], ids[1]]
