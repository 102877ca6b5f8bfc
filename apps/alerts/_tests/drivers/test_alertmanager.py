from datetime import datetime, timezone as dt_tz
from unittest.mock import patch

from django.test import TestCase, override_settings

from apps.alerts.drivers import AlertManagerDriver
from apps.alerts.identity import DEFAULT_MESSAGE, MAX_MESSAGE_LENGTH, RejectionReason


class AlertManagerDriverTests(TestCase):
    """Tests for AlertManager driver."""

    def setUp(self):
        self.driver = AlertManagerDriver()
        self.sample_payload = {
            "version": "4",
            "groupKey": '{}:{alertname="HighCPU"}',
            "receiver": "webhook",
            "status": "firing",
            "alerts": [
                {
                    "status": "firing",
                    "labels": {
                        "alertname": "HighCPU",
                        "severity": "critical",
                        "instance": "server1:9090",
                        "job": "checkout",
                        "namespace": "payments",
                    },
                    "annotations": {
                        "summary": "High CPU usage detected",
                        "description": "CPU usage is above 90%",
                    },
                    "startsAt": "2024-01-08T10:00:00Z",
                    "endsAt": "0001-01-01T00:00:00Z",
                    "fingerprint": "abc123",
                }
            ],
            "groupLabels": {"alertname": "HighCPU"},
            "commonLabels": {"alertname": "HighCPU"},
            "commonAnnotations": {},
            "externalURL": "http://alertmanager:9093",
        }

    def _alert(self, **overrides):
        alert = dict(self.sample_payload["alerts"][0])
        alert.update(overrides)
        return alert

    def _parse_one(self, alert):
        return self.driver.parse({"alerts": [alert]})

    def test_validate_valid_payload(self):
        self.assertTrue(self.driver.validate(self.sample_payload))

    def test_validate_invalid_payload(self):
        self.assertFalse(self.driver.validate({"random": "data"}))
        self.assertFalse(self.driver.validate({"alerts": "not-a-list"}))

    def test_iter_alerts_rejects_invalid_payload(self):
        with self.assertRaises(ValueError):
            self.driver.parse({"random": "data"})

    def test_parse_payload(self):
        result = self.driver.parse(self.sample_payload)

        self.assertEqual(result.source, "alertmanager")
        self.assertEqual(result.received, 1)
        self.assertEqual(result.parsed, 1)
        self.assertEqual(result.receiver, "webhook")
        self.assertEqual(result.external_url, "http://alertmanager:9093")

        alert = result.alerts[0]
        self.assertEqual(alert.identity.namespace, "payments")
        self.assertEqual(alert.identity.service, "checkout")
        self.assertEqual(alert.identity.instance, "server1:9090")
        self.assertEqual(alert.identity.severity, "critical")
        self.assertEqual(alert.identity.message, "High CPU usage detected")
        self.assertEqual(alert.status, "firing")
        self.assertEqual(alert.started_at, datetime(2024, 1, 8, 10, 0, tzinfo=dt_tz.utc))

    def test_zero_time_ends_at_is_absent(self):
        alert = self.driver.parse(self.sample_payload).alerts[0]

        self.assertIsNone(alert.ended_at)
        self.assertIsNone(alert.event_data["ends_at"])
        self.assertEqual(alert.event_time, alert.started_at)

    def test_far_future_ends_at_is_absent(self):
        result = self._parse_one(self._alert(endsAt="2999-01-01T00:00:00Z"))

        self.assertIsNone(result.alerts[0].ended_at)

    def test_parse_resolved_alert(self):
        result = self._parse_one(self._alert(status="resolved", endsAt="2024-01-08T11:00:00Z"))

        alert = result.alerts[0]
        self.assertEqual(alert.status, "resolved")
        self.assertEqual(alert.ended_at, datetime(2024, 1, 8, 11, 0, tzinfo=dt_tz.utc))
        self.assertEqual(alert.event_time, alert.ended_at)

    def test_status_is_case_insensitive(self):
        result = self._parse_one(self._alert(status="FIRING"))

        self.assertEqual(result.alerts[0].status, "firing")

    def test_service_label_precedence(self):
        labels = {
            "alertname": "X",
            "service_name": "from-service-name",
            "service": "from-service",
            "job": "from-job",
        }
        result = self._parse_one(self._alert(labels=labels))

        self.assertEqual(result.alerts[0].identity.service, "from-service-name")

    def test_namespace_label_precedence_and_default(self):
        labels = {"job": "api", "service_namespace": "ns-a", "namespace": "ns-b"}
        self.assertEqual(
            self._parse_one(self._alert(labels=labels)).alerts[0].identity.namespace, "ns-a"
        )

        result = self._parse_one(self._alert(labels={"job": "api"}))
        self.assertEqual(result.alerts[0].identity.namespace, "default")

    @override_settings(ALERTS_DEFAULT_NAMESPACE="fallback")
    def test_default_namespace_from_settings(self):
        result = AlertManagerDriver().parse({"alerts": [self._alert(labels={"job": "api"})]})

        self.assertEqual(result.alerts[0].identity.namespace, "fallback")

    def test_message_fallback_order(self):
        cases = [
            ({"description": "desc", "message": "msg"}, {}, "desc"),
            ({"message": "msg"}, {"alertname": "Name"}, "msg"),
            ({}, {"alertname": "Name"}, "Name"),
            ({}, {"alert": "Legacy"}, "Legacy"),
            ({}, {}, DEFAULT_MESSAGE),
        ]
        for annotations, extra_labels, expected in cases:
            with self.subTest(expected=expected):
                labels = {"job": "api", **extra_labels}
                result = self._parse_one(self._alert(labels=labels, annotations=annotations))
                self.assertEqual(result.alerts[0].identity.message, expected)

    def test_severity_mapping(self):
        cases = {
            "critical": "critical",
            "emergency": "fatal",
            "info": "none",
            "WARNING": "warning",
            "page": "warning",
            None: "warning",
        }
        for raw, expected in cases.items():
            with self.subTest(raw=raw):
                labels = {"job": "api", "severity": raw}
                result = self._parse_one(self._alert(labels=labels))
                self.assertEqual(result.alerts[0].identity.severity, expected)

    def test_missing_service_is_rejected(self):
        result = self._parse_one(self._alert(labels={"alertname": "NoService"}))

        self.assertEqual(result.parsed, 0)
        self.assertEqual(len(result.rejected), 1)
        self.assertEqual(result.rejected[0].index, 0)
        self.assertIn(RejectionReason.MISSING_SERVICE, result.rejected[0].reasons)

    def test_overlong_service_is_rejected(self):
        result = self._parse_one(self._alert(labels={"job": "s" * 256}))

        self.assertIn(RejectionReason.SERVICE_TOO_LONG, result.rejected[0].reasons)

    def test_unknown_status_is_rejected(self):
        result = self._parse_one(self._alert(status="pending"))

        self.assertIn(RejectionReason.INVALID_STATUS, result.rejected[0].reasons)

    def test_malformed_alerts_are_rejected(self):
        result = self.driver.parse({"alerts": ["not-a-dict", self._alert(labels=["a", "b"])]})

        self.assertEqual(result.received, 2)
        self.assertEqual(result.parsed, 0)
        self.assertEqual(
            [r.reasons for r in result.rejected],
            [[RejectionReason.MALFORMED], [RejectionReason.MALFORMED]],
        )

    def test_long_message_is_truncated_with_warning(self):
        annotations = {"summary": "x" * (MAX_MESSAGE_LENGTH + 50)}
        alert = self._parse_one(self._alert(annotations=annotations)).alerts[0]

        self.assertEqual(len(alert.identity.message), MAX_MESSAGE_LENGTH)
        self.assertTrue(any("truncated" in w for w in alert.warnings))

    def test_end_before_start_is_warning_only(self):
        result = self._parse_one(
            self._alert(status="resolved", endsAt="2024-01-08T09:00:00Z")
        )

        self.assertEqual(result.parsed, 1)
        self.assertTrue(result.alerts[0].warnings)

    def test_external_id(self):
        alert = self.driver.parse(self.sample_payload).alerts[0]

        self.assertTrue(alert.external_id.startswith("alertmanager-HighCPU-server1:9090-"))
        self.assertEqual(alert.event_data["external_id"], alert.external_id)

    def test_rejections_keep_payload_positions(self):
        alerts = [
            self._alert(),
            self._alert(labels={"alertname": "NoService"}),
            self._alert(labels={"job": "other"}),
        ]
        result = self.driver.parse({"alerts": alerts})

        self.assertEqual(result.received, 3)
        self.assertEqual(result.parsed, 2)
        self.assertEqual([r.index for r in result.rejected], [1])

    def test_non_string_severity_defaults_to_warning(self):
        result = self._parse_one(self._alert(labels={"job": "api", "severity": 2}))

        self.assertEqual(result.parsed, 1)
        self.assertEqual(result.alerts[0].identity.severity, "warning")

    def test_unexpected_error_rejects_only_that_alert(self):
        def broken_message(annotations, labels):
            if labels.get("job") == "broken":
                raise TypeError("unsupported annotation value")
            return "ok"

        alerts = [
            self._alert(),
            self._alert(labels={"job": "broken"}),
            self._alert(labels={"job": "other"}),
        ]
        with patch(
            "apps.alerts.drivers.alertmanager.resolve_message", side_effect=broken_message
        ):
            result = self.driver.parse({"alerts": alerts})

        self.assertEqual(result.parsed, 2)
        self.assertEqual(len(result.rejected), 1)
        self.assertEqual(result.rejected[0].index, 1)
        self.assertEqual(result.rejected[0].reasons, [RejectionReason.MALFORMED])
