"""
URL configuration for the catalog app.
"""

from django.urls import path

from apps.catalog.views import ServiceTagsView, TagListView, TelemetryView


app_name = "catalog"

urlpatterns = [
    path("telemetry/", TelemetryView.as_view(), name="telemetry"),
    path("tags/", TagListView.as_view(), name="tags"),
    path("<str:namespace>/<str:name>/tags/", ServiceTagsView.as_view(), name="service_tags"),
]
