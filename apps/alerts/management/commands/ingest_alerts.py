"""
Management command to ingest an alert batch from a file or stdin.

Runs the same ingestion path as the webhook endpoint, which makes it handy
for replaying captured AlertManager payloads.

Usage:
    # Ingest a captured webhook payload
    python manage.py ingest_alerts payload.json

    # Read from stdin
    cat payload.json | python manage.py ingest_alerts -

    # Force a driver instead of auto-detecting it
    python manage.py ingest_alerts payload.json --driver alertmanager

    # Output as JSON
    python manage.py ingest_alerts payload.json --json
"""

import json
import sys

from django.core.management.base import BaseCommand, CommandError

from apps.alerts.drivers import DRIVER_REGISTRY
from apps.alerts.exceptions import IngestionError
from apps.alerts.services import AlertOrchestrator


class Command(BaseCommand):
    help = "Ingest an alert batch (webhook payload) from a file or stdin"

    def add_arguments(self, parser):
        parser.add_argument(
            "source",
            help="Path to a JSON payload file, or '-' to read from stdin.",
        )
        parser.add_argument(
            "--driver",
            choices=list(DRIVER_REGISTRY.keys()),
            help="Driver to parse the payload with (auto-detected by default).",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            dest="json_output",
            help="Output result as JSON.",
        )

    def handle(self, *args, **options):
        payload = self._load_payload(options["source"])

        try:
            result = AlertOrchestrator().process_webhook(payload, driver=options.get("driver"))
        except ValueError as e:
            raise CommandError(str(e)) from e
        except IngestionError as e:
            raise CommandError(
                f"{e} ({e.processed_before_abort} processed alert(s) discarded)"
            ) from e

        if options["json_output"]:
            self.stdout.write(json.dumps(result.to_dict(), indent=2))
            return

        summary = result.summary
        self.stdout.write(self.style.SUCCESS(f"Alerts received: {result.received}"))
        self.stdout.write(f"Alerts parsed: {result.parsed}")
        self.stdout.write(f"Incidents created: {summary['created']}")
        self.stdout.write(f"Incidents reactivated: {summary['reactivated']}")
        self.stdout.write(f"Incidents updated: {summary['updated']}")
        self.stdout.write(f"Incidents resolved: {summary['resolved']}")
        self.stdout.write(f"Services created: {result.services_created}")

        if result.rejected:
            self.stdout.write(self.style.WARNING(f"\nRejected: {len(result.rejected)}"))
            for rejected in result.rejected:
                reasons = ", ".join(r.value for r in rejected.reasons)
                self.stdout.write(self.style.WARNING(f"  - #{rejected.index}: {reasons}"))

        if result.errors:
            self.stdout.write(self.style.ERROR(f"\nErrors: {len(result.errors)}"))
            for error in result.errors:
                self.stdout.write(self.style.ERROR(f"  - {error}"))

    def _load_payload(self, source):
        try:
            if source == "-":
                raw = sys.stdin.read()
            else:
                with open(source, encoding="utf-8") as fh:
                    raw = fh.read()
        except OSError as e:
            raise CommandError(f"Cannot read {source}: {e}") from e

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CommandError(f"Invalid JSON payload: {e}") from e
        if not isinstance(payload, dict):
            raise CommandError("Payload must be a JSON object")
        return payload
