"""Admin configuration for alerts models."""

from django.contrib import admin
from django.utils.html import format_html
from django_object_actions import DjangoObjectActions
from django_object_actions import action as object_action

from apps.alerts.exceptions import IncidentAlreadyResolved
from apps.alerts.models import Incident, IncidentEvent, IncidentStatus
from apps.alerts.services import IncidentManager
from config.admin import prettify_json

SEVERITY_COLORS = {
    "fatal": "#6f42c1",
    "critical": "#dc3545",
    "warning": "#ffc107",
    "none": "#17a2b8",
}

STATUS_COLORS = {
    "firing": "#dc3545",
    "resolved": "#28a745",
}


def _badge(color, text):
    return format_html(
        '<span style="background-color: {}; color: white; padding: 3px 8px; '
        'border-radius: 3px; font-size: 11px;">{}</span>',
        color,
        text.upper(),
    )


class IncidentEventInline(admin.TabularInline):
    """Inline display of the event log within an incident."""

    model = IncidentEvent
    extra = 0
    readonly_fields = ["type", "time", "payload", "created_at"]
    fields = ["type", "time", "payload", "created_at"]
    ordering = ["time", "id"]
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Incident)
class IncidentAdmin(DjangoObjectActions, admin.ModelAdmin):
    """Admin for Incident model."""

    list_display = [
        "service_key",
        "short_message",
        "severity_badge",
        "status_badge",
        "source",
        "start_time",
        "end_time",
        "acknowledged_at",
    ]
    list_filter = ["status", "severity", "source", "namespace"]
    search_fields = ["namespace", "service", "instance", "message", "fingerprint", "external_id"]
    readonly_fields = [
        "namespace",
        "service",
        "instance",
        "severity",
        "message",
        "fingerprint",
        "status",
        "start_time",
        "end_time",
        "acknowledged_at",
        "acknowledged_by",
        "source",
        "external_id",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "start_time"
    inlines = [IncidentEventInline]
    actions = ["acknowledge_selected", "resolve_selected"]
    change_actions = ["acknowledge_incident", "resolve_incident"]

    fieldsets = [
        (
            "Identity",
            {
                "fields": ["namespace", "service", "instance", "severity", "message", "fingerprint"],
            },
        ),
        (
            "Lifecycle",
            {
                "fields": ["status", "acknowledged_at", "acknowledged_by"],
            },
        ),
        (
            "Origin",
            {
                "fields": ["source", "external_id"],
            },
        ),
        (
            "Timestamps",
            {
                "fields": ["start_time", "end_time", "created_at", "updated_at"],
            },
        ),
    ]

    def has_add_permission(self, request):
        """Incidents are only created by the ingestion pipeline."""
        return False

    @admin.action(description="Acknowledge selected incidents")
    def acknowledge_selected(self, request, queryset):
        count = 0
        for incident in queryset.filter(acknowledged_at__isnull=True):
            IncidentManager.acknowledge(incident.pk, acknowledged_by=request.user.get_username())
            count += 1
        self.message_user(request, f"{count} incident(s) acknowledged.")

    @admin.action(description="Resolve selected incidents")
    def resolve_selected(self, request, queryset):
        count = 0
        for incident in queryset.filter(status=IncidentStatus.FIRING):
            try:
                IncidentManager.resolve(incident.pk, resolved_by=request.user.get_username())
            except IncidentAlreadyResolved:
                continue
            count += 1
        self.message_user(request, f"{count} incident(s) resolved.")

    @object_action(label="Acknowledge", description="Mark this incident as acknowledged")
    def acknowledge_incident(self, request, obj):
        if obj.is_acknowledged:
            self.message_user(
                request, f"Already acknowledged by {obj.acknowledged_by or '-'}.", level="warning"
            )
            return
        IncidentManager.acknowledge(obj.pk, acknowledged_by=request.user.get_username())
        self.message_user(request, f"Incident {obj.pk} acknowledged.")

    @object_action(label="Resolve", description="Mark this incident as resolved")
    def resolve_incident(self, request, obj):
        try:
            IncidentManager.resolve(obj.pk, resolved_by=request.user.get_username())
        except IncidentAlreadyResolved:
            self.message_user(request, "Already resolved.", level="warning")
            return
        self.message_user(request, f"Incident {obj.pk} resolved.")

    @admin.display(description="Service")
    def service_key(self, obj):
        return f"{obj.namespace}::{obj.service}"

    @admin.display(description="Message")
    def short_message(self, obj):
        return obj.message if len(obj.message) <= 60 else obj.message[:60] + "..."

    @admin.display(description="Severity")
    def severity_badge(self, obj):
        return _badge(SEVERITY_COLORS.get(obj.severity, "#6c757d"), obj.severity)

    @admin.display(description="Status")
    def status_badge(self, obj):
        return _badge(STATUS_COLORS.get(obj.status, "#6c757d"), obj.status)


@admin.register(IncidentEvent)
class IncidentEventAdmin(admin.ModelAdmin):
    """Admin for IncidentEvent model."""

    list_display = ["incident", "type", "time", "created_at"]
    list_filter = ["type"]
    search_fields = ["incident__service", "incident__fingerprint"]
    readonly_fields = ["incident", "type", "time", "pretty_payload", "created_at"]
    exclude = ["payload"]
    date_hierarchy = "time"

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("incident")

    def has_add_permission(self, request):
        """Disable adding events manually - they are created programmatically."""
        return False

    def has_change_permission(self, request, obj=None):
        """Disable editing events - they are audit records."""
        return False

    @admin.display(description="Payload")
    def pretty_payload(self, obj):
        return prettify_json(obj.payload)
