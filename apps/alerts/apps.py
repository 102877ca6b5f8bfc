"""Django app configuration for the alerts app."""

from django.apps import AppConfig


class AlertsConfig(AppConfig):
    """Configuration for the Alerts app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.alerts"
    verbose_name = "Alerts & Incidents"

    def ready(self):
        from apps.catalog.inference import LabelTagConfig

        # Raises ImproperlyConfigured on a bad label-tag cap.
        LabelTagConfig.from_settings()
