"""
URL configuration for the alerts app.
"""

from django.urls import path

from apps.alerts.views import (
    AlertWebhookView,
    IncidentAcknowledgeView,
    IncidentResolveView,
    ManualAlertView,
)


app_name = "alerts"

urlpatterns = [
    # Direct alert creation
    path("", ManualAlertView.as_view(), name="create"),

    # Generic webhook (auto-detect driver)
    path("webhook/", AlertWebhookView.as_view(), name="webhook"),

    # Driver-specific webhooks
    path("webhook/<str:driver>/", AlertWebhookView.as_view(), name="webhook_driver"),

    # Incident management
    path(
        "incidents/<int:incident_id>/resolve/",
        IncidentResolveView.as_view(),
        name="incident_resolve",
    ),
    path(
        "incidents/<int:incident_id>/acknowledge/",
        IncidentAcknowledgeView.as_view(),
        name="incident_acknowledge",
    ),
]
