"""
URL configuration for drayage_gateway project.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('webhooks/', include('portpro.urls')),
    path('admin-api/', include('portpro.admin_urls')),
    path('admin-api/', include('quotes.urls')),
]
