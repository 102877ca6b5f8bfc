"""
Manual alert driver.

Handles alerts submitted directly through the API:
{
    "namespace": "payments",
    "service": "checkout",
    "instance": "pod-1",          (optional)
    "severity": "critical",
    "message": "Disk almost full",
    "source": "runbook-bot",      (optional, default "manual")
    "external_id": "TICKET-123"   (optional)
}

Manual alerts are always firing when created.
"""

from typing import Any

from django.utils import timezone

from apps.alerts.drivers.base import BaseAlertDriver
from apps.alerts.identity import (
    MAX_EXTERNAL_ID_LENGTH,
    ParsedAlert,
    first_present,
    map_severity,
    validate_alert,
)
from apps.catalog.inference import LabelTagConfig, service_update_from_alert
from apps.catalog.merge import ServiceUpdate


class ManualAlertDriver(BaseAlertDriver):
    """Driver for alerts created through the API."""

    name = "manual"

    def validate(self, payload: dict[str, Any]) -> bool:
        return isinstance(payload, dict) and bool(
            first_present(payload, ("service", "service_name"))
        )

    def parse_alert(self, alert_data: dict[str, Any], index: int) -> ParsedAlert:
        now = timezone.now()
        identity, warnings = validate_alert(
            namespace=first_present(alert_data, ("namespace", "service_namespace")),
            service=first_present(alert_data, ("service", "service_name")),
            instance=first_present(alert_data, ("instance", "instance_id")),
            severity=map_severity(alert_data.get("severity")),
            message=first_present(alert_data, ("message",)),
            status="firing",
            started_at=now,
        )
        source = first_present(alert_data, ("source", "alert_source")) or self.name
        external_id = first_present(alert_data, ("external_id", "external_alert_id"))

        return ParsedAlert(
            identity=identity,
            status="firing",
            started_at=now,
            source=source,
            external_id=external_id[:MAX_EXTERNAL_ID_LENGTH],
            event_data={
                "created_via": "manual_api",
                "api_timestamp": now.isoformat(),
            },
            warnings=warnings,
        )

    def service_update(self, alert: ParsedAlert, config: LabelTagConfig) -> ServiceUpdate:
        # Manual alerts only make sure the service exists; they assert no tags.
        update = service_update_from_alert(
            alert.identity.namespace,
            alert.identity.service,
            alert.identity.severity,
            config=config,
        )
        return ServiceUpdate(
            source=update.source,
            environment=update.environment,
            component_type=update.component_type,
        )
