"""
Django admin configuration for PortPro app.
"""
from django.contrib import admin
from portpro.models import DeadLetterEntry, Load, LoadEvent, SyncRun, WebhookLog


class LoadEventInline(admin.TabularInline):
    """Inline display of a load's history and tracking stops."""
    model = LoadEvent
    extra = 0
    readonly_fields = ('event_type', 'status', 'description', 'move_number', 'stop_number', 'stop_type',
                       'location_name', 'driver_name', 'arrival_time', 'departure_time', 'duration_minutes',
                       'occurred_at')
    exclude = ('location_address', 'driver_id', 'distance_miles', 'portpro_move_id', 'portpro_stop_id',
               'portpro_event')
    can_delete = False


@admin.register(Load)
class LoadAdmin(admin.ModelAdmin):
    """Admin interface for Load model. Loads are owned by the sync engine."""

    list_display = ('tracking_number', 'portpro_reference', 'container_number', 'status',
                    'customer_name', 'eta', 'assignee', 'updated_at')
    list_filter = ('status', 'shipping_line')
    search_fields = ('tracking_number', 'portpro_reference', 'portpro_load_id', 'container_number',
                     'customer_name', 'booking_number')
    readonly_fields = ('tracking_number', 'portpro_reference', 'portpro_load_id', 'created_at', 'updated_at',
                       'load_margin')

    fieldsets = (
        ('Identifiers', {
            'fields': ('tracking_number', 'portpro_reference', 'portpro_load_id', 'status', 'assignee')
        }),
        ('Container', {
            'fields': ('container_number', 'container_size', 'container_type', 'chassis_number',
                       'seal_number', 'weight')
        }),
        ('Route', {
            'fields': ('origin', 'destination', 'return_location', 'current_location', 'total_miles')
        }),
        ('Dates', {
            'fields': ('eta', 'pickup_time', 'delivery_time', 'last_free_day')
        }),
        ('Customer & Billing', {
            'fields': ('customer_name', 'customer_email', 'customer_phone', 'billing_total', 'load_margin'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at')
        }),
    )

    inlines = [LoadEventInline]

    def has_add_permission(self, request):
        """Loads are only created by PortPro sync."""
        return False


@admin.register(DeadLetterEntry)
class DeadLetterEntryAdmin(admin.ModelAdmin):
    """Admin interface for failed webhook events."""

    list_display = ('id', 'event_type', 'status', 'error_kind', 'retry_count', 'next_retry_at',
                    'last_attempt_at')
    list_filter = ('status', 'error_kind', 'event_type')
    readonly_fields = ('event_type', 'payload', 'error_message', 'error_kind', 'retry_count',
                       'next_retry_at', 'status', 'first_failed_at', 'last_attempt_at')

    fieldsets = (
        ('Failure', {
            'fields': ('event_type', 'status', 'error_kind', 'error_message')
        }),
        ('Retries', {
            'fields': ('retry_count', 'next_retry_at', 'first_failed_at', 'last_attempt_at')
        }),
        ('Payload', {
            'fields': ('payload',),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        """Disable manual DLQ entry creation through admin."""
        return False


@admin.register(WebhookLog)
class WebhookLogAdmin(admin.ModelAdmin):
    """Admin interface for webhook deliveries."""

    list_display = ('id', 'event_type', 'reference_number', 'signature_valid', 'received_at')
    list_filter = ('signature_valid', 'event_type')
    search_fields = ('reference_number',)
    readonly_fields = ('event_type', 'reference_number', 'payload', 'signature_valid', 'received_at')

    def has_add_permission(self, request):
        return False


@admin.register(SyncRun)
class SyncRunAdmin(admin.ModelAdmin):
    """Admin interface for reconcile/poll/manual sync runs."""

    list_display = ('id', 'sync_type', 'status', 'started_at', 'completed_at', 'records_processed',
                    'records_failed')
    list_filter = ('sync_type', 'status')
    readonly_fields = ('sync_type', 'status', 'started_at', 'completed_at', 'records_processed',
                       'records_failed', 'metadata')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
