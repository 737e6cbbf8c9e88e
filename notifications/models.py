"""
Data models for employee notifications.
"""
from django.db import models


class Priority(models.TextChoices):
    LOW = 'low', 'Low'
    NORMAL = 'normal', 'Normal'
    HIGH = 'high', 'High'
    URGENT = 'urgent', 'Urgent'


PRIORITY_ORDER = [Priority.LOW, Priority.NORMAL, Priority.HIGH, Priority.URGENT]


class Employee(models.Model):
    """
    Back-office staff member who can receive notifications.

    `permissions` is a list of module names (e.g. ["quotes", "loads"]).
    Super admins receive every broadcast regardless of permissions.
    """

    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True, default='')
    permissions = models.JSONField(default=list, blank=True)
    is_super_admin = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.name} <{self.email}>"

    def has_permission(self, permission: str) -> bool:
        return permission in (self.permissions or [])


def default_channels():
    return {'in_app': True, 'email': True, 'slack': True}


def default_quiet_hours():
    return {'enabled': False, 'start': '22:00', 'end': '08:00', 'timezone': 'America/Los_Angeles'}


class NotificationPreferences(models.Model):
    """Per-employee channel toggles, per-event overrides and quiet hours."""

    employee = models.OneToOneField(
        Employee,
        on_delete=models.CASCADE,
        related_name='notification_preferences'
    )
    channels = models.JSONField(default=default_channels)
    # {"quote_submitted": {"email": false}, ...}
    event_settings = models.JSONField(default=dict, blank=True)
    quiet_hours = models.JSONField(default=default_quiet_hours)
    email_priority_threshold = models.CharField(
        max_length=10,
        choices=Priority.choices,
        default=Priority.HIGH
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Preferences for employee {self.employee_id}"

    def channel_enabled(self, channel: str) -> bool:
        return bool((self.channels or {}).get(channel, True))

    def event_channel_override(self, event: str, channel: str):
        """Return the per-event override for a channel, or None when unset."""
        return (self.event_settings or {}).get(event, {}).get(channel)


class Notification(models.Model):
    """In-app notification row shown to a single employee."""

    recipient = models.ForeignKey(
        Employee,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    event_type = models.CharField(max_length=50, db_index=True)
    title = models.CharField(max_length=255)
    body = models.TextField(null=True, blank=True)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.NORMAL)
    entity_type = models.CharField(max_length=20, null=True, blank=True)
    entity_id = models.CharField(max_length=64, null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)
    dismissed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'read_at'], name='notif_recipient_read_idx'),
        ]

    def __str__(self):
        return f"{self.event_type} -> {self.recipient_id}"


class DigestQueueItem(models.Model):
    """
    A notification deferred to the recipient's daily digest email.

    The message content is stored on the item so a deferred email survives
    even when the recipient has no in-app row for it.
    """

    employee = models.ForeignKey(
        Employee,
        on_delete=models.CASCADE,
        related_name='digest_items'
    )
    notification = models.ForeignKey(
        Notification,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='digest_items'
    )
    event_type = models.CharField(max_length=50, blank=True, default='')
    title = models.CharField(max_length=255, blank=True, default='')
    body = models.TextField(null=True, blank=True)
    entity_type = models.CharField(max_length=20, null=True, blank=True)
    entity_id = models.CharField(max_length=64, null=True, blank=True)
    scheduled_for = models.DateField(db_index=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['scheduled_for', 'id']
        indexes = [
            models.Index(fields=['employee', 'scheduled_for'], name='notif_digest_emp_sched_idx'),
        ]

    def __str__(self):
        return f"Digest item {self.id} for {self.employee_id} on {self.scheduled_for}"
