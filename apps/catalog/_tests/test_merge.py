from django.test import SimpleTestCase

from apps.catalog.merge import (
    ServiceState,
    ServiceUpdate,
    TagSource,
    initial_state,
    merge_service,
    merge_tags,
)


def state_with(tags):
    """State whose tags map tag → source."""
    return ServiceState(tags=tuple(sorted(tags)), tag_sources=dict(tags))


class MergeTagsTests(SimpleTestCase):
    def test_new_tag_is_attributed_to_source(self):
        tags, sources, changes = merge_tags([], {}, ["payments"], "otel")

        self.assertEqual(tags, ["payments"])
        self.assertEqual(sources, {"payments": "otel"})
        self.assertEqual(changes, ["+payments (otel)"])

    def test_higher_priority_source_takes_attribution(self):
        tags, sources, changes = merge_tags(
            ["payments"], {"payments": "otel"}, ["payments"], "alertmanager"
        )

        self.assertEqual(tags, ["payments"])
        self.assertEqual(sources, {"payments": "alertmanager"})
        self.assertEqual(changes, ["~payments (otel→alertmanager)"])

    def test_equal_or_lower_priority_is_a_refresh(self):
        for source in ("alertmanager", "otel"):
            with self.subTest(source=source):
                tags, sources, changes = merge_tags(
                    ["payments"], {"payments": "alertmanager"}, ["payments"], source
                )
                self.assertEqual(sources, {"payments": "alertmanager"})
                self.assertEqual(changes, [])

    def test_source_retracts_its_own_tags_only(self):
        tags, sources, changes = merge_tags(
            ["a", "b", "c"],
            {"a": "alertmanager", "b": "alertmanager", "c": "operator"},
            ["a"],
            "alertmanager",
        )

        self.assertEqual(tags, ["a", "c"])
        self.assertEqual(sources, {"a": "alertmanager", "c": "operator"})
        self.assertEqual(changes, ["-b (removed by alertmanager)"])

    def test_unattributed_tags_are_repaired(self):
        tags, sources, changes = merge_tags(["legacy"], {}, ["new"], "alertmanager")

        self.assertEqual(tags, ["legacy", "new"])
        self.assertEqual(sources, {"legacy": "otel", "new": "alertmanager"})


class MergeServiceTests(SimpleTestCase):
    def test_attribution_upgrade_then_lower_source_cannot_remove(self):
        state = merge_service(
            ServiceState(), ServiceUpdate.build(TagSource.OTEL, tags=["team-payments"])
        ).state

        upgraded = merge_service(
            state, ServiceUpdate.build(TagSource.ALERTMANAGER, tags=["team-payments"])
        )
        self.assertEqual(upgraded.state.tags, ("team-payments",))
        self.assertEqual(upgraded.state.tag_sources, {"team-payments": "alertmanager"})

        later = merge_service(upgraded.state, ServiceUpdate.build(TagSource.OTEL, tags=[]))
        self.assertIn("team-payments", later.state.tags)
        self.assertFalse(later.changed)

    def test_merge_is_idempotent(self):
        update = ServiceUpdate.build(
            TagSource.ALERTMANAGER,
            tags=["a", "b", "a"],
            environment="production",
            component_type="database",
        )
        once = merge_service(state_with({"x": "otel"}), update)
        twice = merge_service(once.state, update)

        self.assertEqual(once.state, twice.state)
        self.assertFalse(twice.changed)
        self.assertEqual(twice.state.tags, ("a", "b", "x"))

    def test_operator_tags_are_never_removed_or_reattributed(self):
        state = merge_service(
            ServiceState(), ServiceUpdate.build(TagSource.OPERATOR, tags=["pci"])
        ).state

        for source in (TagSource.OTEL, TagSource.ALERTMANAGER):
            for tags in ([], ["pci"], ["other"]):
                with self.subTest(source=source, tags=tags):
                    result = merge_service(state, ServiceUpdate.build(source, tags=tags))
                    self.assertIn("pci", result.state.tags)
                    self.assertEqual(result.state.tag_sources["pci"], "operator")

    def test_none_tags_leave_tags_untouched(self):
        state = state_with({"a": "alertmanager"})
        result = merge_service(state, ServiceUpdate.build(TagSource.ALERTMANAGER))

        self.assertEqual(result.state.tags, ("a",))
        self.assertEqual(result.tag_changes, [])

    def test_scalars_fill_defaults_only(self):
        state = merge_service(
            ServiceState(), ServiceUpdate.build(TagSource.OTEL, environment="production")
        ).state
        self.assertEqual(state.environment, "production")

        result = merge_service(
            state, ServiceUpdate.build(TagSource.ALERTMANAGER, environment="staging")
        )
        self.assertEqual(result.state.environment, "production")
        self.assertEqual(result.field_changes, {})

    def test_operator_overwrites_scalars(self):
        state = ServiceState(environment="production", team="payments")
        result = merge_service(
            state, ServiceUpdate.build(TagSource.OPERATOR, tags=None, team="billing")
        )

        self.assertEqual(result.state.team, "billing")
        self.assertEqual(result.field_changes, {"team": ("payments", "billing")})
        self.assertEqual(result.state.environment, "production")

    def test_initial_state(self):
        state = initial_state(
            ServiceUpdate.build(TagSource.ALERTMANAGER, environment="staging", team="core")
        )

        self.assertEqual(state.environment, "staging")
        self.assertEqual(state.team, "core")
        self.assertEqual(state.component_type, "service")

    def test_build_cleans_tags(self):
        update = ServiceUpdate.build("otel", tags=[" a ", "", "a", "b"])

        self.assertEqual(update.tags, ("a", "b"))
        self.assertEqual(update.source, "otel")
