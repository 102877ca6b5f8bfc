"""
Service catalog models.

A Service is keyed by its (namespace, service) pair. Incidents refer to
services only by that pair; the two lifecycles are independent.
"""

from django.db import models

from apps.catalog.merge import DEFAULT_COMPONENT_TYPE, UNKNOWN, ServiceState


class Service(models.Model):
    """
    Descriptive metadata for one service.

    ``tag_sources`` maps every tag in ``tags`` to the highest-priority source
    currently asserting it. Both fields are only written through
    ``ServiceManager`` so the two stay in step.
    """

    namespace = models.CharField(max_length=255)
    service = models.CharField(max_length=255)

    environment = models.CharField(max_length=100, default=UNKNOWN)
    team = models.CharField(max_length=255, default=UNKNOWN)
    component_type = models.CharField(max_length=100, default=DEFAULT_COMPONENT_TYPE)

    tags = models.JSONField(default=list, blank=True)
    tag_sources = models.JSONField(
        default=dict,
        blank=True,
        help_text="Tag → source that currently justifies the tag.",
    )

    last_seen = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["namespace", "service"]
        constraints = [
            models.UniqueConstraint(
                fields=["namespace", "service"],
                name="unique_service_per_namespace",
            ),
        ]
        indexes = [
            models.Index(fields=["last_seen"], name="catalog_ser_last_se_7d2e4a_idx"),
        ]

    def __str__(self):
        return self.key

    @property
    def key(self) -> str:
        return f"{self.namespace}::{self.service}"

    def to_state(self) -> ServiceState:
        return ServiceState(
            environment=self.environment,
            team=self.team,
            component_type=self.component_type,
            tags=tuple(self.tags or ()),
            tag_sources=dict(self.tag_sources or {}),
        )

    def apply_state(self, state: ServiceState) -> None:
        self.environment = state.environment
        self.team = state.team
        self.component_type = state.component_type
        self.tags = list(state.tags)
        self.tag_sources = dict(state.tag_sources)
