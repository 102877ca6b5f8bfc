"""
Alert identity normalization rules.

Every source driver reduces its payload to the same canonical identity
(namespace, service, instance, severity, message). This module holds the
shared rules: severity mapping, field resolution order, length caps and
post-parse validation.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from apps.alerts.exceptions import AlertValidationError

logger = logging.getLogger(__name__)

MAX_SERVICE_NAME_LENGTH = 255
MAX_NAMESPACE_LENGTH = 255
MAX_INSTANCE_ID_LENGTH = 255
MAX_MESSAGE_LENGTH = 1000
MAX_EXTERNAL_ID_LENGTH = 255

DEFAULT_MESSAGE = "Alertmanager alert"

VALID_SEVERITIES = ("fatal", "critical", "warning", "none")
VALID_STATUSES = ("firing", "resolved")

SEVERITY_MAP = {
    "critical": "critical",
    "warning": "warning",
    "fatal": "fatal",
    "emergency": "fatal",
    "info": "none",
    "none": "none",
}

# Resolution order for each identity field.
SERVICE_KEYS = ("service_name", "service", "job")
NAMESPACE_KEYS = ("service_namespace", "namespace")
INSTANCE_KEYS = ("service_instance", "instance")
MESSAGE_ANNOTATION_KEYS = ("summary", "description", "message")
MESSAGE_LABEL_KEYS = ("alertname", "alert")


class RejectionReason(str, enum.Enum):
    """Why an alert was dropped before reaching the state machine."""

    MISSING_SERVICE = "missing_service"
    MISSING_NAMESPACE = "missing_namespace"
    SERVICE_TOO_LONG = "service_too_long"
    NAMESPACE_TOO_LONG = "namespace_too_long"
    INSTANCE_TOO_LONG = "instance_too_long"
    INVALID_SEVERITY = "invalid_severity"
    INVALID_STATUS = "invalid_status"
    MISSING_MESSAGE = "missing_message"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class AlertIdentity:
    """The canonical identity tuple an alert is grouped by."""

    namespace: str
    service: str
    instance: str
    severity: str
    message: str

    @property
    def display_id(self) -> str:
        """Short human-readable identifier used in log lines."""
        instance_part = f" ({self.instance})" if self.instance else ""
        message_part = self.message if len(self.message) <= 50 else self.message[:50] + "..."
        return f"{self.namespace}::{self.service}{instance_part} [{self.severity}] {message_part}"


@dataclass
class ParsedAlert:
    """A validated alert ready for fingerprinting and lifecycle processing."""

    identity: AlertIdentity
    status: str
    started_at: datetime
    ended_at: datetime | None = None
    source: str = "alertmanager"
    external_id: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    event_data: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def event_time(self) -> datetime:
        """Time the state change happened.

        Resolved alerts are placed at their end time when the source sent one.
        """
        if self.status == "resolved" and self.ended_at is not None:
            return self.ended_at
        return self.started_at

    @property
    def is_firing(self) -> bool:
        return self.status == "firing"


def map_severity(value: Any) -> str:
    """Map a free-form severity onto the four supported levels.

    Unknown values fall back to ``warning`` rather than rejecting the alert.
    """
    return SEVERITY_MAP.get(str(value or "").strip().lower(), "warning")


def first_present(mapping: dict[str, Any], keys: tuple[str, ...]) -> str:
    """Return the first non-blank string value found under ``keys``."""
    for key in keys:
        value = mapping.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def resolve_service(labels: dict[str, Any]) -> str:
    return first_present(labels, SERVICE_KEYS)


def resolve_namespace(labels: dict[str, Any], default_namespace: str) -> str:
    return first_present(labels, NAMESPACE_KEYS) or default_namespace


def resolve_instance(labels: dict[str, Any]) -> str:
    return first_present(labels, INSTANCE_KEYS)


def resolve_message(annotations: dict[str, Any], labels: dict[str, Any]) -> str:
    return (
        first_present(annotations, MESSAGE_ANNOTATION_KEYS)
        or first_present(labels, MESSAGE_LABEL_KEYS)
        or DEFAULT_MESSAGE
    )


def validate_alert(
    *,
    namespace: str,
    service: str,
    instance: str,
    severity: str,
    message: str,
    status: str,
    started_at: datetime,
    ended_at: datetime | None = None,
) -> tuple[AlertIdentity, list[str]]:
    """Validate raw identity fields and build a sanitized ``AlertIdentity``.

    Returns the identity and a list of warnings. Raises
    ``AlertValidationError`` with every failing reason when the alert must be
    dropped.
    """
    reasons: list[RejectionReason] = []
    warnings: list[str] = []

    service = (service or "").strip()
    namespace = (namespace or "").strip()
    instance = (instance or "").strip()
    message = (message or "").strip()

    if not service:
        reasons.append(RejectionReason.MISSING_SERVICE)
    elif len(service) > MAX_SERVICE_NAME_LENGTH:
        reasons.append(RejectionReason.SERVICE_TOO_LONG)

    if not namespace:
        reasons.append(RejectionReason.MISSING_NAMESPACE)
    elif len(namespace) > MAX_NAMESPACE_LENGTH:
        reasons.append(RejectionReason.NAMESPACE_TOO_LONG)

    if len(instance) > MAX_INSTANCE_ID_LENGTH:
        reasons.append(RejectionReason.INSTANCE_TOO_LONG)

    if severity not in VALID_SEVERITIES:
        reasons.append(RejectionReason.INVALID_SEVERITY)

    if status not in VALID_STATUSES:
        reasons.append(RejectionReason.INVALID_STATUS)

    if not message:
        reasons.append(RejectionReason.MISSING_MESSAGE)
    elif len(message) > MAX_MESSAGE_LENGTH:
        warnings.append(f"Message truncated to {MAX_MESSAGE_LENGTH} characters")
        message = message[:MAX_MESSAGE_LENGTH].rstrip()

    if ended_at is not None and ended_at <= started_at:
        warnings.append("Alert end time is before or equal to start time")

    if reasons:
        raise AlertValidationError(reasons)

    identity = AlertIdentity(
        namespace=namespace,
        service=service,
        instance=instance,
        severity=severity,
        message=message,
    )

    if warnings:
        logger.warning(
            "Alert accepted with warnings: %s",
            "; ".join(warnings),
            extra={"display_id": identity.display_id},
        )

    return identity, warnings
