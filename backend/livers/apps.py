from django.apps import AppConfig


class LiversConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.livers'
