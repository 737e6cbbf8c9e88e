"""
Unit tests for the email channel: quiet hours, thresholds and digests.
"""
from datetime import date, datetime, timezone as dt_timezone

import pytest
from django.core import mail

from notifications.models import DigestQueueItem, Employee, NotificationPreferences, Priority
from notifications.services.channels import email as email_channel
from notifications.services.channels.in_app import send_in_app
from notifications.services.templates import build_message

# 23:00 and 12:00 in Los Angeles
NIGHT = datetime(2026, 1, 26, 7, 0, tzinfo=dt_timezone.utc)
NOON = datetime(2026, 1, 26, 20, 0, tzinfo=dt_timezone.utc)

OVERNIGHT = {'enabled': True, 'start': '22:00', 'end': '08:00', 'timezone': 'America/Los_Angeles'}


class TestQuietHours:
    """Tests for is_in_quiet_hours."""

    def test_overnight_window(self):
        """Test a window spanning midnight covers late evening and early morning."""
        assert email_channel.is_in_quiet_hours(OVERNIGHT, NIGHT) is True
        assert email_channel.is_in_quiet_hours(OVERNIGHT, datetime(2026, 1, 26, 15, 30, tzinfo=dt_timezone.utc)) is True
        assert email_channel.is_in_quiet_hours(OVERNIGHT, NOON) is False

    def test_end_is_exclusive(self):
        """Test the end of the window is no longer quiet."""
        eight_am = datetime(2026, 1, 26, 16, 0, tzinfo=dt_timezone.utc)

        assert email_channel.is_in_quiet_hours(OVERNIGHT, eight_am) is False

    def test_same_day_window(self):
        """Test a window within one day."""
        lunch = {'enabled': True, 'start': '12:00', 'end': '13:00', 'timezone': 'America/Los_Angeles'}

        assert email_channel.is_in_quiet_hours(lunch, NOON) is True
        assert email_channel.is_in_quiet_hours(lunch, NIGHT) is False

    def test_disabled(self):
        """Test disabled or missing quiet hours are never quiet."""
        assert email_channel.is_in_quiet_hours({**OVERNIGHT, 'enabled': False}, NIGHT) is False
        assert email_channel.is_in_quiet_hours(None, NIGHT) is False

    def test_unknown_timezone_uses_default(self):
        """Test an invalid timezone falls back to the default zone."""
        assert email_channel.is_in_quiet_hours({**OVERNIGHT, 'timezone': 'Mars/Olympus'}, NIGHT) is True


class TestPriorityThreshold:
    """Tests for meets_priority_threshold."""

    @pytest.mark.parametrize('priority,threshold,expected', [
        (Priority.URGENT, Priority.HIGH, True),
        (Priority.HIGH, Priority.HIGH, True),
        (Priority.NORMAL, Priority.HIGH, False),
        (Priority.LOW, Priority.LOW, True),
        ('bogus', Priority.LOW, False),
    ])
    def test_threshold(self, priority, threshold, expected):
        """Test priorities are compared by rank."""
        assert email_channel.meets_priority_threshold(priority, threshold) is expected


@pytest.mark.django_db
class TestSendEmailNotification:
    """Tests for send_email_notification."""

    def setup_method(self):
        """Set up test fixtures."""
        self.employee = Employee.objects.create(name='Ana', email='ana@example.com', permissions=['quotes'])
        self.preferences = NotificationPreferences.objects.create(employee=self.employee, quiet_hours=OVERNIGHT)

    def _message(self, event='quote_accepted'):
        return build_message(event, 42, {'reference': 'Q-0042', 'contact_name': 'Maria', 'amount': 1500})

    def test_urgent_sent_during_quiet_hours(self):
        """Test urgent messages bypass quiet hours."""
        outcome, item = email_channel.send_email_notification(
            self.employee, self._message(), self.preferences, now=NIGHT,
        )

        assert outcome == email_channel.SENT
        assert item is None
        assert len(mail.outbox) == 1
        sent = mail.outbox[0]
        assert sent.subject == '\U0001f6a8 Quote Q-0042 ACCEPTED - New Stream Logistics'
        assert sent.to == ['ana@example.com']
        assert 'View details: https://newstreamlogistics.com/admin/quotes/42' in sent.body

    def test_high_priority_queued_during_quiet_hours(self):
        """Test non-urgent messages during quiet hours go to the next day's digest."""
        message = self._message('quote_rejected')
        notification = send_in_app(self.employee, message)

        outcome, item = email_channel.send_email_notification(
            self.employee, message, self.preferences, notification, now=NIGHT,
        )

        assert outcome == email_channel.QUEUED
        # 23:00 on the 25th locally, so the digest goes out on the 26th
        assert item.scheduled_for == date(2026, 1, 26)
        assert mail.outbox == []

    def test_below_threshold_queued(self):
        """Test messages below the employee's threshold are queued."""
        message = self._message('quote_email_opened')
        notification = send_in_app(self.employee, message)

        outcome, item = email_channel.send_email_notification(
            self.employee, message, self.preferences, notification, now=NOON,
        )

        assert outcome == email_channel.QUEUED
        assert item.scheduled_for == date(2026, 1, 27)

    def test_high_priority_sent_outside_quiet_hours(self):
        """Test high priority messages are sent during the day with a warning prefix."""
        outcome, _ = email_channel.send_email_notification(
            self.employee, self._message('quote_rejected'), self.preferences, now=NOON,
        )

        assert outcome == email_channel.SENT
        assert mail.outbox[0].subject.startswith('⚠️ Quote Q-0042 declined')

    def test_lowered_threshold_sends_normal(self):
        """Test an employee can opt into immediate normal-priority emails."""
        self.preferences.email_priority_threshold = Priority.NORMAL

        outcome, _ = email_channel.send_email_notification(
            self.employee, self._message('quote_email_opened'), self.preferences, now=NOON,
        )

        assert outcome == email_channel.SENT
        assert mail.outbox[0].subject == 'Quote Q-0042 email opened - New Stream Logistics'

    def test_email_channel_disabled(self):
        """Test a disabled email channel skips the send."""
        self.preferences.channels = {'in_app': True, 'email': False, 'slack': True}

        outcome, _ = email_channel.send_email_notification(
            self.employee, self._message(), self.preferences, now=NOON,
        )

        assert outcome == email_channel.SKIPPED
        assert mail.outbox == []

    def test_event_override_disables_email(self):
        """Test a per-event override turns email off for that event only."""
        self.preferences.event_settings = {'quote_accepted': {'email': False}}

        outcome, _ = email_channel.send_email_notification(
            self.employee, self._message(), self.preferences, now=NOON,
        )

        assert outcome == email_channel.SKIPPED

    def test_deferred_without_notification_is_queued(self):
        """Test a deferral with no in-app row still reaches the digest."""
        outcome, item = email_channel.send_email_notification(
            self.employee, self._message('quote_email_opened'), self.preferences, now=NOON,
        )

        assert outcome == email_channel.QUEUED
        assert item.notification is None
        assert item.event_type == 'quote_email_opened'
        assert item.title == 'Quote Q-0042 email opened'
        assert item.entity_id == '42'
        assert item.scheduled_for == date(2026, 1, 27)

    def test_missing_address_raises(self):
        """Test sending to an employee without an email raises."""
        self.employee.email = ''

        with pytest.raises(ValueError):
            email_channel.send_email_notification(self.employee, self._message(), self.preferences, now=NOON)


@pytest.mark.django_db
class TestSendDigest:
    """Tests for send_digest."""

    def setup_method(self):
        """Set up test fixtures."""
        self.employee = Employee.objects.create(name='Ana', email='ana@example.com')
        self.day = date(2026, 1, 27)

    def _queue(self, event, scheduled_for, in_app=True):
        message = build_message(event, 42, {'reference': 'Q-0042', 'contact_name': 'Maria'})
        notification = send_in_app(self.employee, message) if in_app else None
        item = email_channel.queue_for_digest(self.employee, message, notification=notification)
        DigestQueueItem.objects.filter(id=item.id).update(scheduled_for=scheduled_for)
        item.refresh_from_db()
        return item

    def test_sends_all_items_for_the_day(self):
        """Test one email lists every item scheduled for the day."""
        self._queue('quote_email_opened', self.day)
        self._queue('quote_status_viewed', self.day)
        later = self._queue('quote_sent', date(2026, 1, 28))

        count = email_channel.send_digest(self.employee, self.day)

        assert count == 2
        assert len(mail.outbox) == 1
        sent = mail.outbox[0]
        assert sent.subject == 'Daily Digest: 2 notifications - New Stream Logistics'
        assert '• Quote Q-0042 email opened\n  Maria opened the quote email' in sent.body
        assert 'View: https://newstreamlogistics.com/admin/quotes/42' in sent.body
        later.refresh_from_db()
        assert later.sent_at is None

    def test_items_sent_only_once(self):
        """Test a second digest for the same day sends nothing."""
        self._queue('quote_email_opened', self.day)

        assert email_channel.send_digest(self.employee, self.day) == 1
        assert email_channel.send_digest(self.employee, self.day) == 0
        assert len(mail.outbox) == 1
        assert mail.outbox[0].subject == 'Daily Digest: 1 notification - New Stream Logistics'

    def test_includes_items_without_in_app_row(self):
        """Test items queued without a notification row are still delivered."""
        self._queue('quote_email_opened', self.day, in_app=False)

        count = email_channel.send_digest(self.employee, self.day)

        assert count == 1
        assert '• Quote Q-0042 email opened\n  Maria opened the quote email' in mail.outbox[0].body
        assert 'View: https://newstreamlogistics.com/admin/quotes/42' in mail.outbox[0].body

    def test_nothing_queued(self):
        """Test no email is sent without items."""
        assert email_channel.send_digest(self.employee, self.day) == 0
        assert mail.outbox == []
