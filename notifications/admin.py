"""
Django admin configuration for notifications app.
"""
from django.contrib import admin
from notifications.models import DigestQueueItem, Employee, Notification, NotificationPreferences


class NotificationPreferencesInline(admin.StackedInline):
    model = NotificationPreferences
    extra = 0
    can_delete = False


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    """Admin interface for Employee model."""

    list_display = ('id', 'name', 'email', 'is_super_admin', 'is_active')
    list_filter = ('is_super_admin', 'is_active')
    search_fields = ('name', 'email')
    inlines = [NotificationPreferencesInline]


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Admin interface for in-app notifications."""

    list_display = ('id', 'recipient', 'event_type', 'priority', 'title', 'read_at', 'created_at')
    list_filter = ('event_type', 'priority')
    search_fields = ('title', 'recipient__name')
    readonly_fields = ('recipient', 'event_type', 'title', 'body', 'priority', 'entity_type', 'entity_id',
                       'metadata', 'read_at', 'dismissed_at', 'created_at')

    fieldsets = (
        ('Notification', {
            'fields': ('recipient', 'event_type', 'priority', 'title', 'body')
        }),
        ('Entity', {
            'fields': ('entity_type', 'entity_id', 'metadata'),
            'classes': ('collapse',)
        }),
        ('State', {
            'fields': ('read_at', 'dismissed_at', 'created_at')
        }),
    )

    def has_add_permission(self, request):
        """Notifications are only created by the dispatcher."""
        return False


@admin.register(DigestQueueItem)
class DigestQueueItemAdmin(admin.ModelAdmin):
    """Admin interface for queued digest items."""

    list_display = ('id', 'employee', 'event_type', 'title', 'scheduled_for', 'sent_at')
    list_filter = ('scheduled_for',)
    readonly_fields = (
        'employee', 'notification', 'event_type', 'title', 'body',
        'entity_type', 'entity_id', 'scheduled_for', 'sent_at', 'created_at',
    )

    def has_add_permission(self, request):
        return False
