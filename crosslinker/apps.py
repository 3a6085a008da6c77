from django.apps import AppConfig


class CrosslinkerConfig(AppConfig):
    """Configuration for the crosslinker Django app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'crosslinker'
    verbose_name = 'Content interlinking'
