from django.apps import AppConfig


class EmdConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tenderhub.emd'
    verbose_name = 'Earnest Money Deposits'
