"""
Data models for the PortPro TMS integration.
"""
from django.db import models
from django.utils import timezone


class LoadStatus(models.TextChoices):
    BOOKED = 'booked', 'Booked'
    AT_PORT = 'at_port', 'At Port'
    AT_TERMINAL = 'at_terminal', 'At Terminal'
    PICKED_UP = 'picked_up', 'Picked Up'
    IN_TRANSIT = 'in_transit', 'In Transit'
    OUT_FOR_DELIVERY = 'out_for_delivery', 'Out For Delivery'
    DELIVERED = 'delivered', 'Delivered'
    CANCELLED = 'cancelled', 'Cancelled'
    EXCEPTION = 'exception', 'Exception'


class Load(models.Model):
    """
    Canonical shipment record, created and updated only by the sync engine.
    """

    tracking_number = models.CharField(max_length=40, unique=True)
    portpro_reference = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    portpro_load_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    # Container
    container_number = models.CharField(max_length=20, null=True, blank=True, db_index=True)
    container_size = models.CharField(max_length=20, null=True, blank=True)
    container_type = models.CharField(max_length=40, null=True, blank=True)
    chassis_number = models.CharField(max_length=40, null=True, blank=True)
    seal_number = models.CharField(max_length=40, null=True, blank=True)
    weight = models.FloatField(null=True, blank=True)
    # Booking & shipping
    booking_number = models.CharField(max_length=64, null=True, blank=True)
    shipping_line = models.CharField(max_length=64, null=True, blank=True)
    commodity = models.CharField(max_length=200, null=True, blank=True)
    # Route
    origin = models.TextField(null=True, blank=True)
    destination = models.TextField(null=True, blank=True)
    return_location = models.TextField(null=True, blank=True)
    current_location = models.CharField(max_length=200, null=True, blank=True)
    # Customer
    customer_name = models.CharField(max_length=200, null=True, blank=True)
    customer_email = models.CharField(max_length=254, null=True, blank=True)
    customer_phone = models.CharField(max_length=40, null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=LoadStatus.choices,
        default=LoadStatus.BOOKED,
        db_index=True
    )
    # Dates
    eta = models.DateTimeField(null=True, blank=True)
    pickup_time = models.DateTimeField(null=True, blank=True)
    delivery_time = models.DateTimeField(null=True, blank=True)
    last_free_day = models.DateTimeField(null=True, blank=True)
    # Distance & billing
    total_miles = models.FloatField(null=True, blank=True)
    billing_total = models.FloatField(null=True, blank=True)
    load_margin = models.FloatField(null=True, blank=True)
    assignee = models.ForeignKey(
        'notifications.Employee',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_loads'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-updated_at']

    def __str__(self):
        return f"Load {self.tracking_number} ({self.container_number or 'no container'}) - {self.status}"


class LoadEvent(models.Model):
    """
    Ordered history entry for a load.

    Move/stop rows are regenerated wholesale on every sync pass; status,
    document and tender rows are appended.
    """

    class EventType(models.TextChoices):
        STATUS = 'status', 'Status'
        DOCUMENT = 'document', 'Document'
        TENDER = 'tender', 'Tender'
        MOVE_START = 'move_start', 'Move Start'
        STOP = 'stop', 'Stop'

    class StopType(models.TextChoices):
        PICKUP = 'pickup', 'Pickup'
        HOOK = 'hook', 'Hook'
        DROP = 'drop', 'Drop'
        DELIVER = 'deliver', 'Deliver'
        RETURN = 'return', 'Return'
        YARD = 'yard', 'Yard'
        TERMINAL = 'terminal', 'Terminal'

    TRACKING_TYPES = (EventType.MOVE_START, EventType.STOP)

    load = models.ForeignKey(Load, on_delete=models.CASCADE, related_name='events')
    event_type = models.CharField(max_length=20, choices=EventType.choices, default=EventType.STATUS)
    status = models.CharField(max_length=30, blank=True, default='')
    description = models.TextField(blank=True, default='')
    move_number = models.PositiveIntegerField(null=True, blank=True)
    stop_number = models.PositiveIntegerField(null=True, blank=True)
    stop_type = models.CharField(max_length=20, choices=StopType.choices, null=True, blank=True)
    location_name = models.CharField(max_length=200, null=True, blank=True)
    location_address = models.TextField(null=True, blank=True)
    driver_id = models.CharField(max_length=64, null=True, blank=True)
    driver_name = models.CharField(max_length=200, null=True, blank=True)
    arrival_time = models.DateTimeField(null=True, blank=True)
    departure_time = models.DateTimeField(null=True, blank=True)
    duration_minutes = models.IntegerField(null=True, blank=True)
    distance_miles = models.FloatField(null=True, blank=True)
    portpro_move_id = models.CharField(max_length=64, null=True, blank=True)
    portpro_stop_id = models.CharField(max_length=64, null=True, blank=True)
    portpro_event = models.BooleanField(default=True)
    occurred_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['load', 'move_number', 'stop_number', 'occurred_at']
        indexes = [
            models.Index(fields=['load', 'event_type'], name='portpro_event_load_type_idx'),
        ]

    def __str__(self):
        return f"{self.event_type} for load {self.load_id}: {self.description}"

    @property
    def is_completed(self) -> bool:
        return self.departure_time is not None or self.status == 'completed'


class DeadLetterEntry(models.Model):
    """
    A webhook event whose processing failed, awaiting scheduled retry.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        RETRYING = 'retrying', 'Retrying'
        EXHAUSTED = 'exhausted', 'Exhausted'

    event_type = models.CharField(max_length=64, db_index=True)
    payload = models.TextField()
    error_message = models.TextField()
    error_kind = models.CharField(max_length=30, default='unknown')
    retry_count = models.PositiveIntegerField(default=0)
    next_retry_at = models.DateTimeField(null=True, blank=True, db_index=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    first_failed_at = models.DateTimeField(default=timezone.now)
    last_attempt_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-last_attempt_at']
        verbose_name_plural = 'dead letter entries'
        indexes = [
            models.Index(fields=['status', 'next_retry_at'], name='portpro_dlq_status_retry_idx'),
        ]

    def __str__(self):
        return f"DLQ {self.id} {self.event_type} - {self.status} ({self.retry_count} retries)"


class WebhookLog(models.Model):
    """Audit row for each webhook delivery accepted by the endpoint."""

    event_type = models.CharField(max_length=64, blank=True, default='')
    reference_number = models.CharField(max_length=64, null=True, blank=True)
    payload = models.JSONField()
    signature_valid = models.BooleanField(default=True)
    received_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-received_at']

    def __str__(self):
        return f"Webhook {self.id} {self.event_type}"


class SyncRun(models.Model):
    """One reconciliation, poll or manual sync invocation."""

    class SyncType(models.TextChoices):
        RECONCILE = 'reconcile', 'Reconcile'
        POLL = 'poll', 'Poll'
        MANUAL = 'manual', 'Manual'

    class Status(models.TextChoices):
        RUNNING = 'running', 'Running'
        COMPLETED = 'completed', 'Completed'
        FAILED = 'failed', 'Failed'

    sync_type = models.CharField(max_length=20, choices=SyncType.choices, db_index=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.RUNNING)
    started_at = models.DateTimeField(default=timezone.now, db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    records_processed = models.PositiveIntegerField(default=0)
    records_failed = models.PositiveIntegerField(default=0)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['-started_at']

    def __str__(self):
        return f"{self.sync_type} run {self.id} - {self.status}"


class SyncCursor(models.Model):
    """Pagination position carried across poll invocations."""

    sync_type = models.CharField(max_length=20, unique=True)
    skip = models.PositiveIntegerField(default=0)
    limit = models.PositiveIntegerField(default=100)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.sync_type} cursor skip={self.skip} limit={self.limit}"
