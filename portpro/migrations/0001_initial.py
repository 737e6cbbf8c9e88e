# Generated migration for PortPro sync models

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


LOAD_STATUS_CHOICES = [
    ('booked', 'Booked'), ('at_port', 'At Port'), ('at_terminal', 'At Terminal'),
    ('picked_up', 'Picked Up'), ('in_transit', 'In Transit'), ('out_for_delivery', 'Out For Delivery'),
    ('delivered', 'Delivered'), ('cancelled', 'Cancelled'), ('exception', 'Exception'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('notifications', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Load',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('tracking_number', models.CharField(max_length=40, unique=True)),
                ('portpro_reference', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('portpro_load_id', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('container_number', models.CharField(blank=True, db_index=True, max_length=20, null=True)),
                ('container_size', models.CharField(blank=True, max_length=20, null=True)),
                ('container_type', models.CharField(blank=True, max_length=40, null=True)),
                ('chassis_number', models.CharField(blank=True, max_length=40, null=True)),
                ('seal_number', models.CharField(blank=True, max_length=40, null=True)),
                ('weight', models.FloatField(blank=True, null=True)),
                ('booking_number', models.CharField(blank=True, max_length=64, null=True)),
                ('shipping_line', models.CharField(blank=True, max_length=64, null=True)),
                ('commodity', models.CharField(blank=True, max_length=200, null=True)),
                ('origin', models.TextField(blank=True, null=True)),
                ('destination', models.TextField(blank=True, null=True)),
                ('return_location', models.TextField(blank=True, null=True)),
                ('current_location', models.CharField(blank=True, max_length=200, null=True)),
                ('customer_name', models.CharField(blank=True, max_length=200, null=True)),
                ('customer_email', models.CharField(blank=True, max_length=254, null=True)),
                ('customer_phone', models.CharField(blank=True, max_length=40, null=True)),
                ('status', models.CharField(choices=LOAD_STATUS_CHOICES, db_index=True, default='booked', max_length=20)),
                ('eta', models.DateTimeField(blank=True, null=True)),
                ('pickup_time', models.DateTimeField(blank=True, null=True)),
                ('delivery_time', models.DateTimeField(blank=True, null=True)),
                ('last_free_day', models.DateTimeField(blank=True, null=True)),
                ('total_miles', models.FloatField(blank=True, null=True)),
                ('billing_total', models.FloatField(blank=True, null=True)),
                ('load_margin', models.FloatField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('assignee', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_loads', to='notifications.employee')),
            ],
            options={
                'ordering': ['-updated_at'],
            },
        ),
        migrations.CreateModel(
            name='LoadEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(choices=[('status', 'Status'), ('document', 'Document'), ('tender', 'Tender'), ('move_start', 'Move Start'), ('stop', 'Stop')], default='status', max_length=20)),
                ('status', models.CharField(blank=True, default='', max_length=30)),
                ('description', models.TextField(blank=True, default='')),
                ('move_number', models.PositiveIntegerField(blank=True, null=True)),
                ('stop_number', models.PositiveIntegerField(blank=True, null=True)),
                ('stop_type', models.CharField(blank=True, choices=[('pickup', 'Pickup'), ('hook', 'Hook'), ('drop', 'Drop'), ('deliver', 'Deliver'), ('return', 'Return'), ('yard', 'Yard'), ('terminal', 'Terminal')], max_length=20, null=True)),
                ('location_name', models.CharField(blank=True, max_length=200, null=True)),
                ('location_address', models.TextField(blank=True, null=True)),
                ('driver_id', models.CharField(blank=True, max_length=64, null=True)),
                ('driver_name', models.CharField(blank=True, max_length=200, null=True)),
                ('arrival_time', models.DateTimeField(blank=True, null=True)),
                ('departure_time', models.DateTimeField(blank=True, null=True)),
                ('duration_minutes', models.IntegerField(blank=True, null=True)),
                ('distance_miles', models.FloatField(blank=True, null=True)),
                ('portpro_move_id', models.CharField(blank=True, max_length=64, null=True)),
                ('portpro_stop_id', models.CharField(blank=True, max_length=64, null=True)),
                ('portpro_event', models.BooleanField(default=True)),
                ('occurred_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('load', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='events', to='portpro.load')),
            ],
            options={
                'ordering': ['load', 'move_number', 'stop_number', 'occurred_at'],
            },
        ),
        migrations.CreateModel(
            name='DeadLetterEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(db_index=True, max_length=64)),
                ('payload', models.TextField()),
                ('error_message', models.TextField()),
                ('error_kind', models.CharField(default='unknown', max_length=30)),
                ('retry_count', models.PositiveIntegerField(default=0)),
                ('next_retry_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('retrying', 'Retrying'), ('exhausted', 'Exhausted')], db_index=True, default='pending', max_length=20)),
                ('first_failed_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('last_attempt_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'ordering': ['-last_attempt_at'],
                'verbose_name_plural': 'dead letter entries',
            },
        ),
        migrations.CreateModel(
            name='WebhookLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(blank=True, default='', max_length=64)),
                ('reference_number', models.CharField(blank=True, max_length=64, null=True)),
                ('payload', models.JSONField()),
                ('signature_valid', models.BooleanField(default=True)),
                ('received_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
            ],
            options={
                'ordering': ['-received_at'],
            },
        ),
        migrations.CreateModel(
            name='SyncRun',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sync_type', models.CharField(choices=[('reconcile', 'Reconcile'), ('poll', 'Poll'), ('manual', 'Manual')], db_index=True, max_length=20)),
                ('status', models.CharField(choices=[('running', 'Running'), ('completed', 'Completed'), ('failed', 'Failed')], default='running', max_length=20)),
                ('started_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('records_processed', models.PositiveIntegerField(default=0)),
                ('records_failed', models.PositiveIntegerField(default=0)),
                ('metadata', models.JSONField(blank=True, default=dict)),
            ],
            options={
                'ordering': ['-started_at'],
            },
        ),
        migrations.CreateModel(
            name='SyncCursor',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sync_type', models.CharField(max_length=20, unique=True)),
                ('skip', models.PositiveIntegerField(default=0)),
                ('limit', models.PositiveIntegerField(default=100)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.AddIndex(
            model_name='loadevent',
            index=models.Index(fields=['load', 'event_type'], name='portpro_event_load_type_idx'),
        ),
        migrations.AddIndex(
            model_name='deadletterentry',
            index=models.Index(fields=['status', 'next_retry_at'], name='portpro_dlq_status_retry_idx'),
        ),
    ]
