"""
Prometheus AlertManager driver.

Handles incoming webhooks from Prometheus AlertManager.
See: https://prometheus.io/docs/alerting/latest/configuration/#webhook_config
"""

from typing import Any

from django.utils import timezone

from apps.alerts.drivers.base import BaseAlertDriver
from apps.alerts.exceptions import AlertValidationError
from apps.alerts.identity import (
    MAX_EXTERNAL_ID_LENGTH,
    ParsedAlert,
    RejectionReason,
    map_severity,
    resolve_instance,
    resolve_message,
    resolve_namespace,
    resolve_service,
    validate_alert,
)


class AlertManagerDriver(BaseAlertDriver):
    """
    Driver for Prometheus AlertManager webhooks.

    AlertManager sends alerts in the following format:
    {
        "version": "4",
        "groupKey": "...",
        "receiver": "webhook",
        "status": "firing",
        "alerts": [...],
        "groupLabels": {...},
        "commonLabels": {...},
        "commonAnnotations": {...},
        "externalURL": "..."
    }
    """

    name = "alertmanager"

    def validate(self, payload: dict[str, Any]) -> bool:
        """Check if this looks like an AlertManager payload."""
        return isinstance(payload, dict) and isinstance(payload.get("alerts"), list)

    def iter_alerts(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        if not self.validate(payload):
            raise ValueError("Invalid AlertManager payload - missing alerts array")
        return payload["alerts"]

    def parse(self, payload: dict[str, Any]):
        parsed = super().parse(payload)
        parsed.receiver = payload.get("receiver", "")
        parsed.external_url = payload.get("externalURL", "")
        return parsed

    def parse_alert(self, alert_data: dict[str, Any], index: int) -> ParsedAlert:
        """Parse a single alert from AlertManager format."""
        labels = alert_data.get("labels") or {}
        annotations = alert_data.get("annotations") or {}
        if not isinstance(labels, dict) or not isinstance(annotations, dict):
            raise AlertValidationError([RejectionReason.MALFORMED])

        status = str(alert_data.get("status") or "").strip().lower()
        started_at = self._parse_timestamp(alert_data.get("startsAt"))
        ended_at = self._parse_optional_timestamp(alert_data.get("endsAt"))
        # AlertManager sets endsAt to a far future date for firing alerts
        if ended_at and ended_at.year > timezone.now().year + 1:
            ended_at = None

        identity, warnings = validate_alert(
            namespace=resolve_namespace(labels, self.default_namespace),
            service=resolve_service(labels),
            instance=resolve_instance(labels),
            severity=map_severity(labels.get("severity")),
            message=resolve_message(annotations, labels),
            status=status,
            started_at=started_at,
            ended_at=ended_at,
        )
        external_id = self._external_id(labels)

        return ParsedAlert(
            identity=identity,
            status=status,
            started_at=started_at,
            ended_at=ended_at,
            source=self.name,
            external_id=external_id,
            labels=labels,
            annotations=annotations,
            event_data={
                "starts_at": started_at.isoformat(),
                "ends_at": ended_at.isoformat() if ended_at else None,
                "external_id": external_id,
            },
            warnings=warnings,
        )

    def _external_id(self, labels: dict[str, Any]) -> str:
        alertname = labels.get("alertname") or labels.get("alert") or "unknown"
        instance = labels.get("instance") or labels.get("service_instance") or "unknown"
        millis = int(timezone.now().timestamp() * 1000)
        return f"{self.name}-{alertname}-{instance}-{millis}"[:MAX_EXTERNAL_ID_LENGTH]
