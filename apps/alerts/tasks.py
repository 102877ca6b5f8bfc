"""Celery tasks for background alert ingestion.

The webhook view enqueues ``ingest_alert_batch`` when asynchronous ingestion
is enabled (``ALERTS_ASYNC_INGESTION``). The task runs the same
``AlertOrchestrator`` path as synchronous requests and returns the batch
result as a JSON-serializable dict.

Run workers with something like:
- celery -A config worker -l info
"""

from __future__ import annotations

import logging
from typing import Any

from celery import shared_task
from django.db import InterfaceError, OperationalError

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(OperationalError, InterfaceError),
    retry_backoff=True,
    retry_jitter=True,
    max_retries=3,
)
def ingest_alert_batch(self, payload: dict[str, Any], driver: str | None = None) -> dict[str, Any]:
    """Ingest one webhook batch.

    Connection-level database errors are retried; the batch transaction was
    rolled back, so a retry replays the whole batch.
    """
    from apps.alerts.exceptions import IngestionError
    from apps.alerts.services import AlertOrchestrator

    if not isinstance(payload, dict):
        return {"status": "error", "message": "payload must be a JSON object"}

    try:
        result = AlertOrchestrator().process_webhook(payload, driver=driver)
    except ValueError as e:
        logger.warning("Rejected queued alert batch: %s", e)
        return {"status": "error", "message": str(e)}
    except IngestionError as e:
        if isinstance(e.__cause__, (OperationalError, InterfaceError)):
            raise e.__cause__
        logger.error("Queued alert batch rolled back: %s", e)
        return {
            "status": "error",
            "message": str(e),
            "discarded": e.processed_before_abort,
        }

    data = result.to_dict()
    data["status"] = "partial" if (result.has_errors or result.rejected) else "success"
    return data
