# Store message content on digest items and make the in-app row optional

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    dependencies = [
        ('notifications', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='digestqueueitem',
            name='notification',
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='digest_items', to='notifications.notification'),
        ),
        migrations.AddField(
            model_name='digestqueueitem',
            name='event_type',
            field=models.CharField(blank=True, default='', max_length=50),
        ),
        migrations.AddField(
            model_name='digestqueueitem',
            name='title',
            field=models.CharField(blank=True, default='', max_length=255),
        ),
        migrations.AddField(
            model_name='digestqueueitem',
            name='body',
            field=models.TextField(blank=True, null=True),
        ),
        migrations.AddField(
            model_name='digestqueueitem',
            name='entity_type',
            field=models.CharField(blank=True, max_length=20, null=True),
        ),
        migrations.AddField(
            model_name='digestqueueitem',
            name='entity_id',
            field=models.CharField(blank=True, max_length=64, null=True),
        ),
    ]
