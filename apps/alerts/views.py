"""
Views for receiving alerts and managing incidents.
"""

import json
import logging
from typing import Any

from django.conf import settings
from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apps.alerts.exceptions import (
    IncidentAlreadyResolved,
    IncidentNotFound,
    IngestionError,
)
from apps.alerts.services import AlertOrchestrator, IncidentManager, ProcessingResult

logger = logging.getLogger(__name__)


def _load_json(request) -> tuple[Any, JsonResponse | None]:
    try:
        return json.loads(request.body or b"{}"), None
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON payload: {e}")
        return None, JsonResponse(
            {"status": "error", "message": "Invalid JSON payload"},
            status=400,
        )


def _batch_response(result: ProcessingResult) -> JsonResponse:
    data = result.to_dict()
    if result.received and result.parsed == 0:
        data.update(status="error", message="No valid alerts found in payload")
        return JsonResponse(data, status=400)

    data["status"] = "partial" if (result.has_errors or result.rejected) else "success"
    if result.has_errors:
        logger.warning(f"Alert processing errors: {result.errors}")
    return JsonResponse(data)


def _ingestion_error_response(error: IngestionError) -> JsonResponse:
    logger.error(f"Alert batch rolled back: {error}")
    return JsonResponse(
        {
            "status": "error",
            "message": str(error),
            "discarded": error.processed_before_abort,
        },
        status=500,
    )


@method_decorator(csrf_exempt, name="dispatch")
class AlertWebhookView(View):
    """
    Webhook endpoint for receiving alert batches.

    POST /alerts/webhook/
    POST /alerts/webhook/<driver>/

    The driver can be auto-detected or specified in the URL.
    """

    def post(self, request, driver=None):
        """Handle incoming alert webhook."""
        if not getattr(settings, "ALERTS_WEBHOOK_ENABLED", True):
            return JsonResponse(
                {"status": "error", "message": "Alert webhook is disabled", "enabled": False},
                status=503,
            )

        payload, error_response = _load_json(request)
        if error_response:
            return error_response

        if not isinstance(payload, dict) or not isinstance(payload.get("alerts"), list):
            return JsonResponse(
                {"status": "error", "message": "Invalid webhook payload - missing alerts array"},
                status=400,
            )

        if getattr(settings, "ALERTS_ASYNC_INGESTION", False):
            try:
                from apps.alerts.tasks import ingest_alert_batch

                async_res = ingest_alert_batch.delay(payload, driver)
                return JsonResponse({"status": "queued", "task_id": async_res.id}, status=202)
            except Exception as enqueue_err:
                # Broker unreachable: fall back to processing inline.
                logger.warning(
                    "Alert batch enqueue failed; falling back to sync processing: %s",
                    enqueue_err,
                )

        try:
            result = AlertOrchestrator().process_webhook(payload, driver=driver)
        except ValueError as e:
            return JsonResponse({"status": "error", "message": str(e)}, status=400)
        except IngestionError as e:
            return _ingestion_error_response(e)

        return _batch_response(result)

    def get(self, request, driver=None):
        """Health check endpoint."""
        return JsonResponse(
            {
                "status": "ok",
                "message": "Alert webhook endpoint is ready",
                "driver": driver or "auto-detect",
                "enabled": bool(getattr(settings, "ALERTS_WEBHOOK_ENABLED", True)),
            }
        )


@method_decorator(csrf_exempt, name="dispatch")
class ManualAlertView(View):
    """
    Create an alert directly.

    POST /alerts/
    """

    def post(self, request):
        data, error_response = _load_json(request)
        if error_response:
            return error_response
        if not isinstance(data, dict):
            return JsonResponse(
                {"status": "error", "message": "Alert must be a JSON object"},
                status=400,
            )

        try:
            result = AlertOrchestrator().process_manual_alert(data)
        except IngestionError as e:
            return _ingestion_error_response(e)

        if result.rejected:
            return JsonResponse(
                {
                    "status": "error",
                    "message": "Missing or invalid fields: namespace, service, and message are required",
                    "rejected": [r.to_dict() for r in result.rejected],
                },
                status=400,
            )
        if result.failed:
            return JsonResponse(
                {"status": "error", "message": result.errors[0]},
                status=500,
            )

        outcome = result.succeeded[0]
        return JsonResponse(
            {
                "status": "ok",
                "message": (
                    "New alert incident created"
                    if outcome.is_new_incident
                    else "Alert incident updated"
                ),
                **outcome.to_dict(),
            }
        )


@method_decorator(csrf_exempt, name="dispatch")
class IncidentResolveView(View):
    """
    Resolve a firing incident.

    POST /alerts/incidents/<incident_id>/resolve/
    """

    def post(self, request, incident_id):
        data, error_response = _load_json(request)
        if error_response:
            return error_response
        resolved_by = data.get("resolved_by", "") if isinstance(data, dict) else ""

        try:
            result = IncidentManager.resolve(incident_id, resolved_by=resolved_by)
        except IncidentNotFound as e:
            return JsonResponse({"status": "error", "message": str(e)}, status=404)
        except IncidentAlreadyResolved as e:
            return JsonResponse({"status": "error", "message": str(e)}, status=409)

        return JsonResponse(
            {
                "status": "ok",
                "message": "Alert resolved successfully",
                "incident_id": result.incident_id,
                "event_id": result.event_id,
                "action": result.action.value,
                "duration": (
                    result.duration.total_seconds() if result.duration is not None else None
                ),
            }
        )


@method_decorator(csrf_exempt, name="dispatch")
class IncidentAcknowledgeView(View):
    """
    Acknowledge an incident.

    POST /alerts/incidents/<incident_id>/acknowledge/
    """

    def post(self, request, incident_id):
        data, error_response = _load_json(request)
        if error_response:
            return error_response
        acknowledged_by = data.get("acknowledged_by", "") if isinstance(data, dict) else ""

        try:
            incident = IncidentManager.acknowledge(incident_id, acknowledged_by=acknowledged_by)
        except IncidentNotFound as e:
            return JsonResponse({"status": "error", "message": str(e)}, status=404)

        return JsonResponse(
            {
                "status": "ok",
                "message": "Alert acknowledged successfully",
                "incident_id": incident.pk,
                "acknowledged_at": incident.acknowledged_at.isoformat(),
                "acknowledged_by": incident.acknowledged_by,
            }
        )
