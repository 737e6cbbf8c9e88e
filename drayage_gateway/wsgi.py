"""
WSGI config for drayage_gateway project.
"""
import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'drayage_gateway.settings')
application = get_wsgi_application()
