"""
Incident state machine.

For each incoming alert the machine looks up the latest incident for the
alert's fingerprint and takes exactly one of these decisions:

    latest incident     incoming    decision
    ---------------     --------    --------------------------------------
    none                firing      open incident, ``fired`` event
    firing              firing      ``updated`` event on the open incident
    resolved            firing      open a new incident, ``fired`` event
    firing              resolved    close incident, ``resolved`` event
    none / resolved     resolved    open an already-resolved incident with
                                    an estimated start, ``resolved`` event

Every decision writes one IncidentEvent in the same transaction as the
Incident write. At most one firing incident exists per fingerprint: the
latest row is read under ``select_for_update`` and a conditional unique
constraint turns a lost race into an update.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from django.db import IntegrityError, transaction

from apps.alerts.fingerprint import generate_fingerprint
from apps.alerts.identity import ParsedAlert
from apps.alerts.models import EventType, Incident, IncidentEvent, IncidentStatus

logger = logging.getLogger(__name__)

# Assumed age of an incident whose firing notification was never seen.
ORPHAN_RESOLVE_OFFSET = timedelta(minutes=1)


class IncidentAction(str, enum.Enum):
    """Outcome of one state-machine decision."""

    CREATED = "created"
    UPDATED = "updated"
    RESOLVED = "resolved"
    REACTIVATED = "reactivated"


@dataclass
class TransitionResult:
    incident: Incident
    event: IncidentEvent
    action: IncidentAction
    is_new_incident: bool
    fingerprint: str
    duration: timedelta | None = None

    @property
    def incident_id(self) -> int:
        return self.incident.pk

    @property
    def event_id(self) -> int:
        return self.event.pk


class IncidentStateMachine:
    """Turns normalized alerts into incident rows and events."""

    def __init__(self, orphan_resolve_offset: timedelta = ORPHAN_RESOLVE_OFFSET):
        self.orphan_resolve_offset = orphan_resolve_offset

    def apply(self, alert: ParsedAlert, fingerprint: str | None = None) -> TransitionResult:
        """Apply one alert. Must run inside the caller's transaction.

        ``fingerprint`` overrides the key computed from the alert identity.
        """
        fingerprint = fingerprint or generate_fingerprint(alert.identity)
        log_extra = {
            "fingerprint": fingerprint,
            "display_id": alert.identity.display_id,
            "status": alert.status,
        }
        logger.debug("Processing alert %s", alert.identity.display_id, extra=log_extra)

        with transaction.atomic():
            if alert.is_firing:
                return self._handle_firing(alert, fingerprint)
            if alert.status == IncidentStatus.RESOLVED:
                return self._handle_resolved(alert, fingerprint)
        raise ValueError(f"Unknown alert status: {alert.status}")

    # --- lookups -------------------------------------------------------

    def latest_incident(self, fingerprint: str) -> Incident | None:
        """Most recently started incident for a fingerprint, row-locked."""
        return (
            Incident.objects.select_for_update()
            .filter(fingerprint=fingerprint)
            .order_by("-start_time", "-id")
            .first()
        )

    def firing_incident(self, fingerprint: str) -> Incident | None:
        return (
            Incident.objects.select_for_update()
            .filter(fingerprint=fingerprint, status=IncidentStatus.FIRING)
            .order_by("-start_time", "-id")
            .first()
        )

    # --- transitions ---------------------------------------------------

    def _handle_firing(self, alert: ParsedAlert, fingerprint: str) -> TransitionResult:
        latest = self.latest_incident(fingerprint)

        if latest is None:
            return self._open_incident(alert, fingerprint, IncidentAction.CREATED)

        if latest.is_firing:
            return self._record_update(latest, alert, fingerprint)

        # Closed incidents stay closed; a recurrence is a new occurrence.
        return self._open_incident(alert, fingerprint, IncidentAction.REACTIVATED)

    def _handle_resolved(self, alert: ParsedAlert, fingerprint: str) -> TransitionResult:
        incident = self.firing_incident(fingerprint)

        if incident is None:
            logger.warning(
                "No firing incident found for resolved alert %s",
                alert.identity.display_id,
                extra={"fingerprint": fingerprint},
            )
            return self._open_resolved_incident(alert, fingerprint)

        end_time = alert.event_time
        incident.status = IncidentStatus.RESOLVED
        incident.end_time = end_time
        incident.save(update_fields=["status", "end_time", "updated_at"])

        event = self._record_event(incident, EventType.RESOLVED, alert)
        duration = end_time - incident.start_time

        logger.info(
            "Incident %s resolved after %ds",
            incident.pk,
            int(duration.total_seconds()),
            extra={"incident_id": incident.pk, "fingerprint": fingerprint},
        )
        return TransitionResult(
            incident=incident,
            event=event,
            action=IncidentAction.RESOLVED,
            is_new_incident=False,
            fingerprint=fingerprint,
            duration=duration,
        )

    def _open_incident(
        self,
        alert: ParsedAlert,
        fingerprint: str,
        action: IncidentAction,
    ) -> TransitionResult:
        try:
            with transaction.atomic():
                incident = self._create_incident(
                    alert,
                    fingerprint,
                    status=IncidentStatus.FIRING,
                    start_time=alert.event_time,
                )
        except IntegrityError:
            # A concurrent batch opened the firing incident first.
            incident = self.firing_incident(fingerprint)
            if incident is None:
                raise
            logger.info(
                "Firing incident for %s was opened concurrently; recording update",
                alert.identity.display_id,
                extra={"fingerprint": fingerprint, "incident_id": incident.pk},
            )
            return self._record_update(incident, alert, fingerprint)

        event = self._record_event(incident, EventType.FIRED, alert)
        logger.info(
            "Opened incident %s for %s (%s)",
            incident.pk,
            alert.identity.display_id,
            action.value,
            extra={"incident_id": incident.pk, "fingerprint": fingerprint},
        )
        return TransitionResult(
            incident=incident,
            event=event,
            action=action,
            is_new_incident=True,
            fingerprint=fingerprint,
        )

    def _open_resolved_incident(self, alert: ParsedAlert, fingerprint: str) -> TransitionResult:
        end_time = alert.event_time
        incident = self._create_incident(
            alert,
            fingerprint,
            status=IncidentStatus.RESOLVED,
            start_time=end_time - self.orphan_resolve_offset,
            end_time=end_time,
        )
        event = self._record_event(incident, EventType.RESOLVED, alert)

        logger.info(
            "Created resolved incident %s (orphaned resolve) for %s",
            incident.pk,
            alert.identity.display_id,
            extra={"incident_id": incident.pk, "fingerprint": fingerprint},
        )
        return TransitionResult(
            incident=incident,
            event=event,
            action=IncidentAction.CREATED,
            is_new_incident=True,
            fingerprint=fingerprint,
            duration=self.orphan_resolve_offset,
        )

    def _record_update(
        self,
        incident: Incident,
        alert: ParsedAlert,
        fingerprint: str,
    ) -> TransitionResult:
        event = self._record_event(incident, EventType.UPDATED, alert)
        # Touch updated_at so "last seen" reflects the repeat notification.
        incident.save(update_fields=["updated_at"])
        return TransitionResult(
            incident=incident,
            event=event,
            action=IncidentAction.UPDATED,
            is_new_incident=False,
            fingerprint=fingerprint,
        )

    # --- writes --------------------------------------------------------

    def _create_incident(self, alert: ParsedAlert, fingerprint: str, **fields) -> Incident:
        identity = alert.identity
        return Incident.objects.create(
            namespace=identity.namespace,
            service=identity.service,
            instance=identity.instance,
            severity=identity.severity,
            message=identity.message,
            fingerprint=fingerprint,
            source=alert.source,
            external_id=alert.external_id,
            **fields,
        )

    def _record_event(self, incident: Incident, event_type: str, alert: ParsedAlert) -> IncidentEvent:
        payload: dict[str, Any] = {
            "source": alert.source,
            "external_id": alert.external_id,
            "event_timestamp": alert.event_time.isoformat(),
            **alert.event_data,
        }
        return IncidentEvent.objects.record(incident, event_type, alert.event_time, payload)
