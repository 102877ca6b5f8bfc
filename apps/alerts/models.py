"""
Incident and event models for the alert lifecycle.

An Incident is one continuous firing-to-resolution occurrence of a
fingerprint. IncidentEvent is the append-only log of every lifecycle decision
taken against an incident.
"""

from django.db import models
from django.db.models import Q
from django.utils import timezone


class AlertSeverity(models.TextChoices):
    """Severity levels for alerts."""

    FATAL = "fatal", "Fatal"
    CRITICAL = "critical", "Critical"
    WARNING = "warning", "Warning"
    NONE = "none", "None"


class IncidentStatus(models.TextChoices):
    """Status of an incident."""

    FIRING = "firing", "Firing"
    RESOLVED = "resolved", "Resolved"


class EventType(models.TextChoices):
    """Type of an incident event."""

    FIRED = "fired", "Fired"
    RESOLVED = "resolved", "Resolved"
    UPDATED = "updated", "Updated"


class Incident(models.Model):
    """
    One occurrence of a logical alert condition.

    Rows are only created and mutated by the incident state machine. Once
    resolved, an incident is never reopened; a later firing alert for the
    same fingerprint opens a new row.
    """

    # Identity
    namespace = models.CharField(max_length=255, db_index=True)
    service = models.CharField(max_length=255, db_index=True)
    instance = models.CharField(max_length=255, blank=True, default="")
    severity = models.CharField(
        max_length=20,
        choices=AlertSeverity.choices,
        default=AlertSeverity.WARNING,
        db_index=True,
    )
    message = models.TextField()
    fingerprint = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Grouping key shared by every occurrence of this alert condition.",
    )

    # Lifecycle
    status = models.CharField(
        max_length=20,
        choices=IncidentStatus.choices,
        default=IncidentStatus.FIRING,
        db_index=True,
    )
    start_time = models.DateTimeField(
        help_text="When the incident started firing (estimated for orphaned resolves).",
    )
    end_time = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the incident resolved (null while firing).",
    )
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    acknowledged_by = models.CharField(max_length=255, blank=True, default="")

    # Origin
    source = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Source system that reported the alert (e.g. 'alertmanager', 'manual').",
    )
    external_id = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-start_time"]
        indexes = [
            models.Index(fields=["fingerprint", "-start_time"], name="alerts_inci_fingerp_8c1f0e_idx"),
            models.Index(fields=["namespace", "service"], name="alerts_inci_namespa_3e9a51_idx"),
            models.Index(fields=["status", "severity"], name="alerts_inci_status_a4d27b_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["fingerprint"],
                condition=Q(status="firing"),
                name="unique_firing_incident_per_fingerprint",
            ),
        ]

    def __str__(self):
        return f"[{self.severity}] {self.namespace}::{self.service} ({self.status})"

    @property
    def is_firing(self) -> bool:
        return self.status == IncidentStatus.FIRING

    @property
    def is_resolved(self) -> bool:
        return self.status == IncidentStatus.RESOLVED

    @property
    def is_acknowledged(self) -> bool:
        return self.acknowledged_at is not None

    @property
    def duration(self):
        """Return the duration of the incident so far."""
        end = self.end_time or timezone.now()
        return end - self.start_time


class IncidentEventQuerySet(models.QuerySet):
    def for_incident(self, incident):
        return self.filter(incident=incident).order_by("time", "id")

    def record(self, incident, event_type, time, payload=None):
        """Append one event to the log."""
        return self.create(
            incident=incident,
            type=event_type,
            time=time,
            payload=payload or {},
        )


class IncidentEvent(models.Model):
    """
    Immutable record of one state-machine decision against an incident.

    Events are appended, never edited. Repeated "still firing" notifications
    show up as ``updated`` events on the same incident.
    """

    incident = models.ForeignKey(
        Incident,
        on_delete=models.CASCADE,
        related_name="events",
    )
    type = models.CharField(max_length=20, choices=EventType.choices, db_index=True)
    time = models.DateTimeField(help_text="When the reported state change happened.")
    payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Opaque event data passed through from the source.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = IncidentEventQuerySet.as_manager()

    class Meta:
        ordering = ["-time", "-id"]
        indexes = [
            models.Index(fields=["incident", "time"], name="alerts_inci_inciden_5b7c93_idx"),
        ]

    def __str__(self):
        return f"Incident {self.incident_id}: {self.type}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Incident events are append-only and cannot be modified.")
        super().save(*args, **kwargs)
