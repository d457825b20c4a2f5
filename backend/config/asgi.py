# config/asgi.py
import os
from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

# Plain HTTP: drivers poll, nothing is pushed
application = get_asgi_application()
