"""Custom Django admin app configuration."""

from django.contrib.admin.apps import AdminConfig


class IncidentConsoleAdminConfig(AdminConfig):
    default_site = "config.admin.IncidentConsoleAdminSite"
