"""
Django admin configuration for quotes app.
"""
from django.contrib import admin
from django.utils import timezone
from quotes.models import Quote, QuoteAuditLog


class QuoteAuditLogInline(admin.TabularInline):
    """Inline display of a quote's audit trail."""
    model = QuoteAuditLog
    extra = 0
    readonly_fields = ('action', 'old_status', 'new_status', 'actor', 'actor_type', 'metadata', 'created_at')
    can_delete = False


@admin.register(Quote)
class QuoteAdmin(admin.ModelAdmin):
    """Admin interface for Quote model."""

    list_display = ('reference_number', 'contact_name', 'lifecycle_status', 'request_type',
                    'lead_score', 'is_urgent', 'assignee', 'created_at')
    list_filter = ('lifecycle_status', 'request_type', 'is_urgent')
    search_fields = ('reference_number', 'contact_name', 'company_name', 'email', 'container_number')
    readonly_fields = ('lead_score', 'is_urgent', 'assigned_at', 'created_at', 'updated_at')

    fieldsets = (
        ('Request', {
            'fields': ('reference_number', 'request_type', 'time_sensitive', 'container_number',
                       'lfd', 'delivery_zip')
        }),
        ('Contact', {
            'fields': ('contact_name', 'company_name', 'email', 'phone')
        }),
        ('Lifecycle', {
            'fields': ('lifecycle_status', 'assignee', 'assigned_at', 'quoted_price', 'expires_at',
                       'rejection_reason')
        }),
        ('Scoring', {
            'fields': ('lead_score', 'is_urgent')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at')
        }),
    )

    inlines = [QuoteAuditLogInline]

    def save_model(self, request, obj, form, change):
        # Admin edits must invalidate in-flight assignment claims
        obj.updated_at = timezone.now()
        super().save_model(request, obj, form, change)

    def has_delete_permission(self, request, obj=None):
        """Quotes are expired or cancelled, never deleted."""
        return False
