"""
URL configuration for quotes admin API.
"""
from django.urls import path
from quotes.views import QuoteAssignView

urlpatterns = [
    path('quotes/<int:quote_id>/assign/', QuoteAssignView.as_view(), name='quote-assign'),
]
