"""
Celery configuration for the Drayage Gateway.
"""
import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'drayage_gateway.settings')

app = Celery('drayage_gateway')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
