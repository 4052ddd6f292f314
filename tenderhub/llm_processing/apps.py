from django.apps import AppConfig


class LlmProcessingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tenderhub.llm_processing'
    verbose_name = 'Document Intelligence'
