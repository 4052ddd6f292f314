from django.apps import AppConfig


class ContractsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tenderhub.contracts'

    def ready(self):
        from . import signals  # noqa: F401
