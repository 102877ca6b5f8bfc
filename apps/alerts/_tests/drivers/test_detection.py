from django.test import TestCase

from apps.alerts.drivers import (
    AlertManagerDriver,
    ManualAlertDriver,
    detect_driver,
    get_driver,
)


class DriverDetectionTests(TestCase):
    """Tests for auto-detection of drivers."""

    def test_detect_alertmanager(self):
        payload = {
            "alerts": [],
            "status": "firing",
            "groupKey": "test",
            "receiver": "webhook",
            "groupLabels": {},
            "commonLabels": {},
        }

        driver = detect_driver(payload)
        self.assertIsInstance(driver, AlertManagerDriver)

    def test_detect_manual(self):
        driver = detect_driver({"namespace": "pay", "service": "checkout", "message": "boom"})
        self.assertIsInstance(driver, ManualAlertDriver)

    def test_unrecognized_payload(self):
        self.assertIsNone(detect_driver({"name": "Custom Alert"}))

    def test_get_driver_by_name(self):
        self.assertIsInstance(get_driver("alertmanager"), AlertManagerDriver)
        self.assertIsInstance(get_driver("manual"), ManualAlertDriver)

    def test_get_unknown_driver(self):
        with self.assertRaises(ValueError) as ctx:
            get_driver("unknown")

        self.assertIn("Unknown driver", str(ctx.exception))
