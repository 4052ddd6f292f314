from django.apps import AppConfig


class VendorsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tenderhub.vendors'

    def ready(self):
        """Import signals when app is ready"""
        import tenderhub.vendors.signals  # noqa: F401
