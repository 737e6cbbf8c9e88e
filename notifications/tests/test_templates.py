"""
Unit tests for notification templates.
"""
from decimal import Decimal

import pytest
from hypothesis import given, settings, strategies as st

from notifications.models import Priority
from notifications.services.templates import (
    EVENT_CONFIGS,
    UnknownEventError,
    build_message,
    entity_link,
    interpolate,
)


class TestInterpolate:
    """Tests for interpolate."""

    def test_replaces_placeholders(self):
        """Test every {{key}} is replaced by its value."""
        assert interpolate('Quote {{reference}} for {{amount}}', {'reference': 'Q-1', 'amount': 1500}) == \
            'Quote Q-1 for 1500'

    def test_missing_and_none_become_empty(self):
        """Test missing keys and None values become empty strings."""
        assert interpolate('{{contact_name}} declined: {{reason}}', {'contact_name': None}) == ' declined: '

    def test_text_without_placeholders(self):
        """Test plain text is returned unchanged."""
        assert interpolate('New quote request', {'reference': 'x'}) == 'New quote request'

    @settings(max_examples=100)
    @given(data=st.dictionaries(st.from_regex(r'[a-z_]{1,10}', fullmatch=True), st.text(alphabet='abc xyz')))
    def test_no_placeholders_survive(self, data):
        """
        Property: After interpolation no {{word}} placeholder remains,
        whatever keys the data carries.
        """
        for config in EVENT_CONFIGS.values():
            assert '{{' not in interpolate(config.title_template, data)


class TestBuildMessage:
    """Tests for build_message."""

    def test_quote_accepted(self):
        """Test the accepted template, priority and entity fields."""
        message = build_message('quote_accepted', 42, {
            'reference': 'Q-0042', 'contact_name': 'Maria', 'amount': Decimal('1500.00'),
        })

        assert message.title == 'Quote Q-0042 ACCEPTED'
        assert message.body == 'Maria accepted the quote for 1500.00'
        assert message.priority == Priority.URGENT
        assert message.entity_type == 'quote'
        assert message.entity_id == '42'
        assert message.metadata['amount'] == '1500.00'

    def test_load_delayed(self):
        """Test the delay template includes both dates."""
        message = build_message('load_delayed', 7, {
            'reference': 'REF-1', 'old_date': '2026-01-28', 'new_date': '2026-01-30',
        })

        assert message.title == 'Load REF-1 DELAYED'
        assert message.body == 'Delivery date pushed from 2026-01-28 to 2026-01-30'
        assert message.priority == Priority.HIGH

    def test_unknown_event_raises(self):
        """Test an unconfigured event raises UnknownEventError."""
        with pytest.raises(UnknownEventError):
            build_message('quote_teleported', 1, {})

    def test_every_event_has_a_permission(self):
        """Test every configured event names an entity type and permission."""
        for config in EVENT_CONFIGS.values():
            assert config.entity_type in ('quote', 'load')
            assert config.permission in ('quotes', 'loads')


class TestEntityLink:
    """Tests for entity_link."""

    def test_links(self):
        """Test quote and load links point at the admin pages."""
        assert entity_link('https://nsl.example', 'quote', 5) == 'https://nsl.example/admin/quotes/5'
        assert entity_link('https://nsl.example', 'load', 9) == 'https://nsl.example/admin/loads/9'
        assert entity_link('https://nsl.example', None, 9) == ''
