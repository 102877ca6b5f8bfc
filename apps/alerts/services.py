"""
Alert orchestration services.

This module contains the business logic for ingesting alert batches,
driving them through the incident state machine and managing incidents
by id.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from time import monotonic
from typing import Any

from django.conf import settings
from django.db import DatabaseError, InterfaceError, OperationalError, transaction
from django.utils import timezone

from apps.alerts.drivers import (
    BaseAlertDriver,
    ManualAlertDriver,
    ParsedPayload,
    RejectedAlert,
    detect_driver,
    get_driver,
)
from apps.alerts.exceptions import (
    AlertProcessingError,
    IncidentAlreadyResolved,
    IncidentNotFound,
    IngestionError,
    IngestionTimeout,
)
from apps.alerts.identity import AlertIdentity, ParsedAlert
from apps.alerts.lifecycle import IncidentAction, IncidentStateMachine, TransitionResult
from apps.alerts.models import Incident, IncidentStatus
from apps.catalog.inference import LabelTagConfig
from apps.catalog.services import ServiceManager

logger = logging.getLogger(__name__)

# Errors that mean the connection or transaction itself is gone.
STRUCTURAL_DB_ERRORS = (OperationalError, InterfaceError)


@dataclass
class AlertProcessingResult:
    """Outcome of one alert within a batch."""

    index: int
    incident_id: int | None = None
    event_id: int | None = None
    action: IncidentAction | None = None
    is_new_incident: bool = False
    duration: timedelta | None = None
    fingerprint: str = ""
    error: str = ""

    @property
    def failed(self) -> bool:
        return bool(self.error)

    @classmethod
    def from_transition(cls, index: int, transition: TransitionResult) -> "AlertProcessingResult":
        return cls(
            index=index,
            incident_id=transition.incident_id,
            event_id=transition.event_id,
            action=transition.action,
            is_new_incident=transition.is_new_incident,
            duration=transition.duration,
            fingerprint=transition.fingerprint,
        )

    @classmethod
    def failed_placeholder(cls, error: AlertProcessingError) -> "AlertProcessingResult":
        return cls(index=error.index, error=str(error.error))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "index": self.index,
            "incident_id": self.incident_id,
            "event_id": self.event_id,
            "action": self.action.value if self.action else None,
            "is_new_incident": self.is_new_incident,
            "duration": self.duration.total_seconds() if self.duration is not None else None,
        }
        if self.failed:
            data["error"] = self.error
        return data


@dataclass
class ProcessingResult:
    """Result of processing one inbound batch."""

    received: int = 0
    rejected: list[RejectedAlert] = field(default_factory=list)
    results: list[AlertProcessingResult] = field(default_factory=list)
    services_created: int = 0
    services_updated: int = 0
    tag_changes: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def parsed(self) -> int:
        return self.received - len(self.rejected)

    @property
    def succeeded(self) -> list[AlertProcessingResult]:
        return [r for r in self.results if not r.failed]

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.failed)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0 or self.failed > 0

    def _count(self, action: IncidentAction) -> int:
        return sum(1 for r in self.succeeded if r.action == action)

    @property
    def summary(self) -> dict[str, int]:
        succeeded = self.succeeded
        return {
            "created": self._count(IncidentAction.CREATED),
            "updated": self._count(IncidentAction.UPDATED),
            "resolved": self._count(IncidentAction.RESOLVED),
            "reactivated": self._count(IncidentAction.REACTIVATED),
            "total_processed": len(succeeded),
            "total_incidents": len({r.incident_id for r in succeeded}),
            "total_events": len(succeeded),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "received": self.received,
            "parsed": self.parsed,
            "rejected": [r.to_dict() for r in self.rejected],
            "processed": len(self.succeeded),
            "failed": self.failed,
            "services_created": self.services_created,
            "services_updated": self.services_updated,
            "summary": self.summary,
            "results": [r.to_dict() for r in self.results],
            "errors": list(self.errors),
        }


class AlertOrchestrator:
    """
    Orchestrates the processing of incoming alert batches.

    This is the main entry point for alert ingestion. For every alert of a
    batch, in order, it:
    1. Normalizes the alert with the source driver (rejects are skipped)
    2. Merges the alert-implied metadata into the alert's service
    3. Runs the incident state machine, which fingerprints the alert and
       writes the incident and its event

    The whole batch runs in one transaction. Each alert runs in its own
    savepoint, so a failing alert is rolled back and recorded while the
    rest of the batch still commits.

    Usage:
        orchestrator = AlertOrchestrator()
        result = orchestrator.process_webhook(payload)
        # or with a specific driver:
        result = orchestrator.process_webhook(payload, driver="alertmanager")
    """

    def __init__(
        self,
        state_machine: IncidentStateMachine | None = None,
        label_tag_config: LabelTagConfig | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            state_machine: Incident state machine to use.
            label_tag_config: Label-to-tag rules; read from settings when omitted.
            timeout: Batch deadline in seconds; the batch is rolled back when exceeded.
        """
        self.state_machine = state_machine or IncidentStateMachine()
        self.label_tag_config = label_tag_config or LabelTagConfig.from_settings()
        if timeout is None:
            timeout = getattr(settings, "ALERTS_INGEST_TIMEOUT_SECONDS", None)
        self.timeout = timeout

    def process_webhook(
        self,
        payload: dict[str, Any],
        driver: str | BaseAlertDriver | None = None,
    ) -> ProcessingResult:
        """
        Process an incoming webhook payload.

        Args:
            payload: Raw JSON payload from the webhook.
            driver: Driver name, instance, or None for auto-detection.

        Returns:
            ProcessingResult with per-alert results and counts.

        Raises:
            ValueError: If no driver accepts the payload.
            IngestionError: If the batch transaction failed and was rolled back.
        """
        driver_instance = self._get_driver(payload, driver)
        if driver_instance is None:
            raise ValueError("Could not detect driver for payload")
        return self.process_batch(driver_instance.parse(payload), driver_instance)

    def process_manual_alert(self, data: dict[str, Any]) -> ProcessingResult:
        """Process one alert submitted through the API as a batch of one."""
        return self.process_webhook(data, driver=ManualAlertDriver())

    def process_batch(self, parsed: ParsedPayload, driver: BaseAlertDriver) -> ProcessingResult:
        result = ProcessingResult(received=parsed.received, rejected=list(parsed.rejected))
        deadline = monotonic() + float(self.timeout) if self.timeout else None

        try:
            with transaction.atomic():
                for index, alert in self._indexed(parsed):
                    if deadline is not None and monotonic() > deadline:
                        raise IngestionTimeout(
                            f"Batch exceeded its {self.timeout}s deadline",
                            processed_before_abort=len(result.succeeded),
                        )
                    self._process_alert(index, alert, driver, result)
        except IngestionError:
            logger.error("Alert batch from %s aborted and rolled back", parsed.source)
            raise
        except DatabaseError as e:
            logger.exception("Alert batch from %s failed and was rolled back", parsed.source)
            raise IngestionError(
                f"Alert batch failed: {e}",
                processed_before_abort=len(result.succeeded),
            ) from e

        summary = result.summary
        logger.info(
            "Processed %s batch: received=%d parsed=%d processed=%d failed=%d "
            "(%d created, %d updated, %d resolved, %d reactivated)",
            parsed.source,
            result.received,
            result.parsed,
            summary["total_processed"],
            result.failed,
            summary["created"],
            summary["updated"],
            summary["resolved"],
            summary["reactivated"],
        )
        return result

    def _indexed(self, parsed: ParsedPayload):
        # Keep each alert's position in the original payload.
        rejected = {r.index for r in parsed.rejected}
        positions = [i for i in range(parsed.received) if i not in rejected]
        if len(positions) != len(parsed.alerts):
            positions = list(range(len(parsed.alerts)))
        return zip(positions, parsed.alerts)

    def _process_alert(
        self,
        index: int,
        alert: ParsedAlert,
        driver: BaseAlertDriver,
        result: ProcessingResult,
    ) -> None:
        try:
            with transaction.atomic():
                transition = self._apply(alert, driver, result)
        except STRUCTURAL_DB_ERRORS:
            raise
        except Exception as e:
            error = AlertProcessingError(index, e)
            logger.exception(
                "Failed to process alert #%d (%s)",
                index,
                alert.identity.display_id,
            )
            result.results.append(AlertProcessingResult.failed_placeholder(error))
            result.errors.append(str(error))
            return

        result.results.append(AlertProcessingResult.from_transition(index, transition))
        logger.info(
            "Processed alert %s: %s (incident %s)",
            alert.identity.display_id,
            transition.action.value,
            transition.incident_id,
            extra={"fingerprint": transition.fingerprint, "incident_id": transition.incident_id},
        )

    def _apply(
        self,
        alert: ParsedAlert,
        driver: BaseAlertDriver,
        result: ProcessingResult,
    ) -> TransitionResult:
        identity = alert.identity
        upsert = ServiceManager.upsert(
            identity.namespace,
            identity.service,
            driver.service_update(alert, self.label_tag_config),
        )
        transition = self.state_machine.apply(alert)

        # Counted only once both writes succeeded, so a rolled-back alert leaves no trace.
        if upsert.created:
            result.services_created += 1
        else:
            result.services_updated += 1
        result.tag_changes.extend(upsert.tag_changes)
        return transition

    def _get_driver(
        self,
        payload: dict[str, Any],
        driver: str | BaseAlertDriver | None,
    ) -> BaseAlertDriver | None:
        """Get driver instance from name, instance, or auto-detect."""
        if driver is None:
            return detect_driver(payload)
        elif isinstance(driver, str):
            return get_driver(driver)
        elif isinstance(driver, BaseAlertDriver):
            return driver
        else:
            raise ValueError(f"Invalid driver type: {type(driver)}")


class IncidentManager:
    """
    Service for managing incidents by id.

    Provides the operator-facing operations that are not driven by an
    incoming alert.
    """

    @staticmethod
    def resolve(
        incident_id: int,
        resolved_by: str = "",
        state_machine: IncidentStateMachine | None = None,
    ) -> TransitionResult:
        """
        Resolve a firing incident.

        The resolution goes through the state machine like any other
        resolved alert, so it emits the same ``resolved`` event.

        Raises:
            IncidentNotFound: No incident with this id.
            IncidentAlreadyResolved: The incident is not firing.
        """
        state_machine = state_machine or IncidentStateMachine()
        with transaction.atomic():
            incident = Incident.objects.select_for_update().filter(pk=incident_id).first()
            if incident is None:
                raise IncidentNotFound(incident_id)
            if incident.status == IncidentStatus.RESOLVED:
                raise IncidentAlreadyResolved(incident_id)

            now = timezone.now()
            alert = ParsedAlert(
                identity=AlertIdentity(
                    namespace=incident.namespace,
                    service=incident.service,
                    instance=incident.instance,
                    severity=incident.severity,
                    message=incident.message,
                ),
                status=IncidentStatus.RESOLVED.value,
                started_at=incident.start_time,
                ended_at=now,
                source=incident.source,
                external_id=incident.external_id,
                event_data={
                    "resolved_via": "manual_api",
                    "resolved_by": resolved_by,
                    "api_timestamp": now.isoformat(),
                    "original_incident_start": incident.start_time.isoformat(),
                },
            )
            result = state_machine.apply(alert, fingerprint=incident.fingerprint)

        logger.info("Incident %s resolved manually", incident_id)
        return result

    @staticmethod
    def acknowledge(incident_id: int, acknowledged_by: str = "") -> Incident:
        """
        Acknowledge an incident.

        The first acknowledgement wins; repeated calls leave it unchanged.

        Raises:
            IncidentNotFound: No incident with this id.
        """
        with transaction.atomic():
            incident = Incident.objects.select_for_update().filter(pk=incident_id).first()
            if incident is None:
                raise IncidentNotFound(incident_id)

            if incident.acknowledged_at is None:
                incident.acknowledged_at = timezone.now()
                incident.acknowledged_by = acknowledged_by
                incident.save(update_fields=["acknowledged_at", "acknowledged_by", "updated_at"])
                logger.info("Incident acknowledged: %s by %s", incident_id, acknowledged_by or "-")

        return incident
