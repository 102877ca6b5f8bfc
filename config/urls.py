"""
URL configuration for the incident lifecycle project.
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("alerts/", include("apps.alerts.urls")),
    path("services/", include("apps.catalog.urls")),
]
