"""Base driver and data structures for alert ingestion.

Drivers normalize incoming payloads from different sources (Alertmanager
webhooks, direct API calls) into validated ``ParsedAlert`` records. Alerts
that fail validation are collected as ``RejectedAlert`` entries instead of
aborting the batch.

Public API:
- RejectedAlert
- ParsedPayload
- BaseAlertDriver
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from datetime import timezone as dt_tz
from typing import Any

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from apps.alerts.exceptions import AlertValidationError
from apps.alerts.identity import ParsedAlert, RejectionReason
from apps.catalog.inference import LabelTagConfig, service_update_from_alert
from apps.catalog.merge import ServiceUpdate

logger = logging.getLogger(__name__)

# Alertmanager encodes "no end time" as the zero time.
ZERO_TIME_PREFIX = "0001-01-01"


@dataclass
class RejectedAlert:
    """An alert dropped during normalization."""

    index: int
    reasons: list[RejectionReason]
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "reasons": [r.value for r in self.reasons]}


@dataclass
class ParsedPayload:
    """Result of parsing an incoming batch."""

    alerts: list[ParsedAlert]
    source: str
    received: int = 0
    rejected: list[RejectedAlert] = field(default_factory=list)

    receiver: str = ""
    external_url: str = ""

    @property
    def parsed(self) -> int:
        return len(self.alerts)


class BaseAlertDriver(ABC):
    """Abstract base class for alert source drivers."""

    name: str = "base"

    def __init__(self, default_namespace: str | None = None):
        self.default_namespace = default_namespace or getattr(
            settings, "ALERTS_DEFAULT_NAMESPACE", "default"
        )

    @abstractmethod
    def validate(self, payload: dict[str, Any]) -> bool:
        """Validate that a payload is from this source and can be parsed."""

    @abstractmethod
    def parse_alert(self, alert_data: dict[str, Any], index: int) -> ParsedAlert:
        """Normalize one raw alert. Raises ``AlertValidationError`` to reject it."""

    def iter_alerts(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        """Return the raw alert records contained in a payload."""
        return [payload]

    def parse(self, payload: dict[str, Any]) -> ParsedPayload:
        """Parse a payload, keeping valid alerts and recording rejections."""
        raw_alerts = self.iter_alerts(payload)
        result = ParsedPayload(alerts=[], source=self.name, received=len(raw_alerts))

        for index, alert_data in enumerate(raw_alerts):
            try:
                if not isinstance(alert_data, dict):
                    raise AlertValidationError([RejectionReason.MALFORMED])
                result.alerts.append(self.parse_alert(alert_data, index))
            except AlertValidationError as e:
                logger.warning(
                    "Rejected alert #%d from %s: %s",
                    index,
                    self.name,
                    ", ".join(r.value for r in e.reasons),
                    extra={"source": self.name, "reasons": [r.value for r in e.reasons]},
                )
                result.rejected.append(
                    RejectedAlert(
                        index=index,
                        reasons=e.reasons,
                        raw=alert_data if isinstance(alert_data, dict) else {},
                    )
                )
            except Exception as e:
                logger.warning(
                    "Rejected malformed alert #%d from %s: %s",
                    index,
                    self.name,
                    e,
                    extra={"source": self.name, "reasons": [RejectionReason.MALFORMED.value]},
                )
                result.rejected.append(
                    RejectedAlert(
                        index=index,
                        reasons=[RejectionReason.MALFORMED],
                        raw=alert_data if isinstance(alert_data, dict) else {},
                    )
                )

        logger.info(
            "Parsed %d of %d alert(s) from %s",
            result.parsed,
            result.received,
            self.name,
        )
        return result

    def service_update(self, alert: ParsedAlert, config: LabelTagConfig) -> ServiceUpdate:
        """Metadata update this alert implies for its service."""
        identity = alert.identity
        return service_update_from_alert(
            identity.namespace,
            identity.service,
            identity.severity,
            labels=alert.labels,
            config=config,
        )

    def _parse_optional_timestamp(self, timestamp_str: str | None) -> datetime | None:
        """Parse an RFC3339 timestamp; missing, zero or unparseable values give None."""
        if not timestamp_str or not isinstance(timestamp_str, str):
            return None
        if timestamp_str.startswith(ZERO_TIME_PREFIX):
            return None

        try:
            parsed = parse_datetime(timestamp_str)
            if parsed is None:
                parsed = datetime.fromisoformat(timestamp_str.replace("Z", "+00:00"))
        except (ValueError, TypeError):
            return None

        if timezone.is_naive(parsed):
            parsed = timezone.make_aware(parsed, dt_tz.utc)
        return parsed

    def _parse_timestamp(self, timestamp_str: str | None) -> datetime:
        """Parse an RFC3339 timestamp, falling back to now."""
        return self._parse_optional_timestamp(timestamp_str) or timezone.now()
