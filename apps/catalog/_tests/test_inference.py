from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, override_settings

from apps.catalog.inference import (
    LabelTagConfig,
    infer_component_type,
    infer_environment,
    service_update_from_alert,
    tags_from_labels,
)

CONFIG = LabelTagConfig(
    allowed_labels=frozenset({"team", "tier"}),
    allowed_prefixes=("tag_",),
    max_tags=10,
)

LABELS = {
    "team": "payments",
    "tag_critical_path": "true",
    "tag_owner": "alice",
    "zone": "eu-west-1",
}


class InferenceTests(SimpleTestCase):
    def test_infer_environment(self):
        cases = {
            "payments-prod": "production",
            "staging": "staging",
            "dev-tools": "development",
            "load-test": "testing",
            "payments": "unknown",
        }
        for namespace, expected in cases.items():
            with self.subTest(namespace=namespace):
                self.assertEqual(infer_environment(namespace), expected)

    def test_infer_component_type(self):
        cases = {
            "orders-db": "database",
            "redis-cache": "database",
            "api-gateway": "gateway",
            "kafka-broker": "queue",
            "checkout": "service",
        }
        for service, expected in cases.items():
            with self.subTest(service=service):
                self.assertEqual(infer_component_type(service), expected)


class TagsFromLabelsTests(SimpleTestCase):
    def test_allow_listed_labels(self):
        self.assertEqual(
            tags_from_labels(LABELS, CONFIG),
            ["critical_path", "owner:alice", "team:payments"],
        )

    def test_preserve_label_names(self):
        config = LabelTagConfig(
            allowed_labels=CONFIG.allowed_labels,
            allowed_prefixes=CONFIG.allowed_prefixes,
            preserve_label_names=True,
        )

        self.assertEqual(
            tags_from_labels(LABELS, config),
            ["tag_critical_path", "tag_owner:alice", "team:payments"],
        )

    def test_cap(self):
        config = LabelTagConfig(
            allowed_labels=CONFIG.allowed_labels,
            allowed_prefixes=CONFIG.allowed_prefixes,
            max_tags=2,
        )

        self.assertEqual(tags_from_labels(LABELS, config), ["critical_path", "owner:alice"])

    def test_nothing_allowed(self):
        self.assertEqual(tags_from_labels(LABELS, LabelTagConfig()), [])

    @override_settings(
        ALERTS_TAG_LABELS=["app"],
        ALERTS_TAG_LABEL_PREFIXES=["x_"],
        ALERTS_MAX_LABEL_TAGS=3,
        ALERTS_PRESERVE_LABEL_NAMES=True,
    )
    def test_config_from_settings(self):
        config = LabelTagConfig.from_settings()

        self.assertEqual(config.allowed_labels, frozenset({"app"}))
        self.assertEqual(config.allowed_prefixes, ("x_",))
        self.assertEqual(config.max_tags, 3)
        self.assertTrue(config.preserve_label_names)

    @override_settings(ALERTS_MAX_LABEL_TAGS="lots")
    def test_bad_cap_is_misconfiguration(self):
        with self.assertRaises(ImproperlyConfigured):
            LabelTagConfig.from_settings()


class ServiceUpdateFromAlertTests(SimpleTestCase):
    def test_update(self):
        update = service_update_from_alert(
            "payments-prod", "orders-db", "critical", labels={"team": "payments"}, config=CONFIG
        )

        self.assertEqual(update.source, "alertmanager")
        self.assertEqual(update.environment, "production")
        self.assertEqual(update.component_type, "database")
        self.assertEqual(update.team, "payments")
        self.assertEqual(
            update.tags,
            ("alertmanager-created", "high-priority", "production", "database", "team:payments"),
        )

    def test_defaults_are_not_asserted(self):
        update = service_update_from_alert("payments", "checkout", "warning", config=CONFIG)

        self.assertIsNone(update.environment)
        self.assertIsNone(update.component_type)
        self.assertIsNone(update.team)
        self.assertEqual(update.tags, ("alertmanager-created",))

    def test_non_string_team_label(self):
        update = service_update_from_alert(
            "payments", "checkout", "warning", labels={"team": 42}, config=CONFIG
        )

        self.assertEqual(update.team, "42")
