import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('iafe_api')

# configurações CELERY_* do settings.py do Django
app.config_from_object('django.conf:settings', namespace='CELERY')

# tasks.py dos apps instalados (inclui iafe_api.tasks)
app.autodiscover_tasks()
