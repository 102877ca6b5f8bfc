from django.test import SimpleTestCase

from apps.alerts.fingerprint import (
    FINGERPRINT_LENGTH,
    generate_fingerprint,
    normalize_message,
)
from apps.alerts.identity import AlertIdentity


def _identity(**overrides):
    fields = {
        "namespace": "pay",
        "service": "checkout",
        "instance": "",
        "severity": "critical",
        "message": "disk at 95% full",
    }
    fields.update(overrides)
    return AlertIdentity(**fields)


class NormalizeMessageTests(SimpleTestCase):
    def test_placeholders(self):
        cases = {
            "Disk at 95% full": "disk at [percentage] full",
            "Error at 2024-01-08T10:00:00Z in worker": "error at [timestamp] in worker",
            "Host 10.0.0.12 unreachable": "host [ip] unreachable",
            "Latency 250ms over budget": "latency [duration] over budget",
            "Heap 512MB used": "heap [size] used",
            "Queue depth 1234": "queue depth [number]",
        }
        for message, expected in cases.items():
            with self.subTest(message=message):
                self.assertEqual(normalize_message(message), expected)

    def test_whitespace_and_case(self):
        self.assertEqual(normalize_message("  Disk   FULL \n"), "disk full")


class GenerateFingerprintTests(SimpleTestCase):
    def test_length_and_determinism(self):
        fingerprint = generate_fingerprint(_identity())

        self.assertEqual(len(fingerprint), FINGERPRINT_LENGTH)
        self.assertEqual(fingerprint, generate_fingerprint(_identity()))

    def test_volatile_numbers_do_not_change_fingerprint(self):
        self.assertEqual(
            generate_fingerprint(_identity(message="disk at 95% full")),
            generate_fingerprint(_identity(message="disk at 87% full")),
        )

    def test_case_and_whitespace_do_not_change_fingerprint(self):
        self.assertEqual(
            generate_fingerprint(_identity()),
            generate_fingerprint(
                _identity(namespace=" PAY ", service="Checkout", message="  Disk at 12%  FULL ")
            ),
        )

    def test_embedded_timestamp_ip_and_duration_are_ignored(self):
        a = _identity(message="timeout after 30s talking to 10.0.0.1 at 2024-01-01T00:00:00Z")
        b = _identity(message="timeout after 45s talking to 10.0.0.9 at 2024-02-02T12:30:00Z")

        self.assertEqual(generate_fingerprint(a), generate_fingerprint(b))

    def test_severity_changes_fingerprint(self):
        self.assertNotEqual(
            generate_fingerprint(_identity(severity="critical")),
            generate_fingerprint(_identity(severity="warning")),
        )

    def test_identity_fields_change_fingerprint(self):
        base = generate_fingerprint(_identity())
        for field, value in [
            ("namespace", "billing"),
            ("service", "cart"),
            ("instance", "pod-2"),
            ("message", "disk read errors"),
        ]:
            with self.subTest(field=field):
                self.assertNotEqual(base, generate_fingerprint(_identity(**{field: value})))
