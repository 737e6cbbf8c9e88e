"""
URL configuration for the PortPro sync admin API.
"""
from django.urls import path
from portpro.views import (
    DeadLetterDetailView,
    DeadLetterListView,
    DeadLetterRetryView,
    ManualSyncView,
    SyncHealthView,
)

urlpatterns = [
    path('sync-health/', SyncHealthView.as_view(), name='sync-health'),
    path('sync/', ManualSyncView.as_view(), name='manual-sync'),
    path('dlq/', DeadLetterListView.as_view(), name='dlq-list'),
    path('dlq/<int:entry_id>/', DeadLetterDetailView.as_view(), name='dlq-detail'),
    path('dlq/<int:entry_id>/retry/', DeadLetterRetryView.as_view(), name='dlq-retry'),
]
