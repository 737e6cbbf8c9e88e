"""
URL configuration for PortPro webhooks.
"""
from django.urls import path
from portpro.views import PortProWebhookView

urlpatterns = [
    path('portpro/', PortProWebhookView.as_view(), name='portpro-webhook'),
]
