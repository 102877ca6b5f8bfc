"""Django app configuration for the catalog app."""

from django.apps import AppConfig


class CatalogConfig(AppConfig):
    """Configuration for the Service Catalog app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.catalog"
    verbose_name = "Service Catalog"
