"""
Data models for customer quote requests.
"""
from django.db import models
from django.utils import timezone


class Quote(models.Model):
    """
    Customer-submitted drayage quote request.

    Lifecycle: pending -> in_review -> quoted -> accepted | rejected | expired.
    Cancelled is reachable from any non-terminal state.
    `lead_score` and `is_urgent` are derived on save and never set directly.
    """

    class Lifecycle(models.TextChoices):
        PENDING = 'pending', 'Pending'
        IN_REVIEW = 'in_review', 'In Review'
        QUOTED = 'quoted', 'Quoted'
        ACCEPTED = 'accepted', 'Accepted'
        REJECTED = 'rejected', 'Rejected'
        EXPIRED = 'expired', 'Expired'
        CANCELLED = 'cancelled', 'Cancelled'

    class RequestType(models.TextChoices):
        STANDARD = 'standard', 'Standard'
        URGENT_LFD = 'urgent_lfd', 'Urgent LFD'
        ROLLED = 'rolled', 'Rolled'
        HOLD_RELEASED = 'hold_released', 'Hold Released'
        NOT_SURE = 'not_sure', 'Not Sure'

    reference_number = models.CharField(max_length=40, unique=True)
    contact_name = models.CharField(max_length=200)
    company_name = models.CharField(max_length=200, blank=True, default='')
    email = models.EmailField(blank=True, default='')
    phone = models.CharField(max_length=40, blank=True, default='')
    request_type = models.CharField(
        max_length=20,
        choices=RequestType.choices,
        default=RequestType.STANDARD
    )
    time_sensitive = models.BooleanField(default=False)
    container_number = models.CharField(max_length=20, blank=True, default='')
    lfd = models.DateField(null=True, blank=True)
    delivery_zip = models.CharField(max_length=10, blank=True, default='')
    lifecycle_status = models.CharField(
        max_length=20,
        choices=Lifecycle.choices,
        default=Lifecycle.PENDING,
        db_index=True
    )
    lead_score = models.IntegerField(default=0, editable=False)
    is_urgent = models.BooleanField(default=False, editable=False)
    assignee = models.ForeignKey(
        'notifications.Employee',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_quotes'
    )
    assigned_at = models.DateTimeField(null=True, blank=True)
    quoted_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.CharField(max_length=255, blank=True, default='')
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']

    ACTIVE_STATES = (Lifecycle.PENDING, Lifecycle.IN_REVIEW)
    ASSIGNABLE_STATES = (Lifecycle.PENDING, Lifecycle.IN_REVIEW, Lifecycle.QUOTED)
    TERMINAL_STATES = (Lifecycle.ACCEPTED, Lifecycle.REJECTED, Lifecycle.EXPIRED)

    def __str__(self):
        return f"Quote {self.reference_number} - {self.lifecycle_status}"

    def save(self, *args, **kwargs):
        from quotes.services.priority import calculate_lead_score, is_urgent_lead

        self.lead_score = calculate_lead_score(self)
        self.is_urgent = is_urgent_lead(self.lead_score, self)
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | {'lead_score', 'is_urgent'}
        super().save(*args, **kwargs)


class QuoteAuditLog(models.Model):
    """Append-only record of lifecycle and assignment changes."""

    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name='audit_log')
    action = models.CharField(max_length=30)
    old_status = models.CharField(max_length=20, blank=True, default='')
    new_status = models.CharField(max_length=20, blank=True, default='')
    actor = models.ForeignKey(
        'notifications.Employee',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    actor_type = models.CharField(max_length=20, default='admin')
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['quote', 'created_at']

    def __str__(self):
        return f"{self.action} on quote {self.quote_id}"
