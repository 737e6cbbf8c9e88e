# Generated migration for Quote and QuoteAuditLog models

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('notifications', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Quote',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reference_number', models.CharField(max_length=40, unique=True)),
                ('contact_name', models.CharField(max_length=200)),
                ('company_name', models.CharField(blank=True, default='', max_length=200)),
                ('email', models.EmailField(blank=True, default='', max_length=254)),
                ('phone', models.CharField(blank=True, default='', max_length=40)),
                ('request_type', models.CharField(choices=[('standard', 'Standard'), ('urgent_lfd', 'Urgent LFD'), ('rolled', 'Rolled'), ('hold_released', 'Hold Released'), ('not_sure', 'Not Sure')], default='standard', max_length=20)),
                ('time_sensitive', models.BooleanField(default=False)),
                ('container_number', models.CharField(blank=True, default='', max_length=20)),
                ('lfd', models.DateField(blank=True, null=True)),
                ('delivery_zip', models.CharField(blank=True, default='', max_length=10)),
                ('lifecycle_status', models.CharField(choices=[('pending', 'Pending'), ('in_review', 'In Review'), ('quoted', 'Quoted'), ('accepted', 'Accepted'), ('rejected', 'Rejected'), ('expired', 'Expired'), ('cancelled', 'Cancelled')], db_index=True, default='pending', max_length=20)),
                ('lead_score', models.IntegerField(default=0, editable=False)),
                ('is_urgent', models.BooleanField(default=False, editable=False)),
                ('assigned_at', models.DateTimeField(blank=True, null=True)),
                ('quoted_price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('expires_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('assignee', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_quotes', to='notifications.employee')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='QuoteAuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=30)),
                ('old_status', models.CharField(blank=True, default='', max_length=20)),
                ('new_status', models.CharField(blank=True, default='', max_length=20)),
                ('actor_type', models.CharField(default='admin', max_length=20)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('actor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='notifications.employee')),
                ('quote', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='audit_log', to='quotes.quote')),
            ],
            options={
                'ordering': ['quote', 'created_at'],
            },
        ),
    ]
