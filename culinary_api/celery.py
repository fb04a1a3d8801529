import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'culinary_api.settings')

app = Celery('culinary_api')
app.config_from_object('django.conf:settings', namespace='CELERY')
# Découvrir automatiquement les tâches dans toutes les apps Django
app.autodiscover_tasks()
