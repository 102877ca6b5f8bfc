"""Custom admin site for the incident console."""

import json
from datetime import timedelta

from django.contrib.admin import AdminSite
from django.db.models import Count, Q
from django.utils import timezone
from django.utils.html import format_html


def prettify_json(value) -> str:
    """Render a JSON value as an indented ``<pre>`` block for read-only admin fields."""
    if value in (None, "", {}, []):
        return "-"
    return format_html(
        '<pre style="white-space: pre-wrap; margin: 0;">{}</pre>',
        json.dumps(value, indent=2, sort_keys=True, default=str),
    )


class IncidentConsoleAdminSite(AdminSite):
    site_header = "Incident Console"
    site_title = "Incident Console"
    index_title = "Dashboard"

    def index(self, request, extra_context=None):
        extra_context = extra_context or {}
        extra_context.update(self._get_dashboard_context())
        return super().index(request, extra_context=extra_context)

    def _get_dashboard_context(self):
        from apps.alerts.models import AlertSeverity, Incident, IncidentEvent, IncidentStatus
        from apps.catalog.models import Service

        now = timezone.now()
        last_24h = now - timedelta(hours=24)

        # --- Firing Incidents ---
        firing_incidents = Incident.objects.filter(status=IncidentStatus.FIRING).aggregate(
            total=Count("id"),
            fatal=Count("id", filter=Q(severity=AlertSeverity.FATAL)),
            critical=Count("id", filter=Q(severity=AlertSeverity.CRITICAL)),
            warning=Count("id", filter=Q(severity=AlertSeverity.WARNING)),
            unacknowledged=Count("id", filter=Q(acknowledged_at__isnull=True)),
        )

        # --- Event Activity (24h) ---
        event_activity = dict(
            IncidentEvent.objects.filter(time__gte=last_24h)
            .values_list("type")
            .annotate(count=Count("id"))
            .values_list("type", "count")
        )

        # --- Noisiest Services (24h) ---
        noisiest_services = list(
            Incident.objects.filter(start_time__gte=last_24h)
            .values("namespace", "service")
            .annotate(count=Count("id"))
            .order_by("-count")[:5]
        )

        return {
            "firing_incidents": firing_incidents,
            "event_activity": event_activity,
            "noisiest_services": noisiest_services,
            "service_count": Service.objects.count(),
        }
