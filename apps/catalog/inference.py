"""
Infer service metadata from alerts.

Alerts only carry a namespace, a service name and a label map. These helpers
turn them into a ``ServiceUpdate`` attributed to the alert pipeline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from apps.catalog.merge import DEFAULT_COMPONENT_TYPE, UNKNOWN, ServiceUpdate, TagSource

logger = logging.getLogger(__name__)

ALERT_CREATED_TAG = "alertmanager-created"
HIGH_PRIORITY_TAG = "high-priority"

ENVIRONMENT_HINTS = (
    ("prod", "production"),
    ("stag", "staging"),
    ("dev", "development"),
    ("test", "testing"),
)

COMPONENT_HINTS = (
    ("database", ("db", "database", "postgres", "mysql", "redis", "mongo")),
    ("gateway", ("gateway", "proxy", "nginx", "envoy")),
    ("queue", ("queue", "kafka", "rabbitmq", "message")),
)

TRUTHY_LABEL_VALUES = {"", "true"}


@dataclass(frozen=True)
class LabelTagConfig:
    """Which alert labels may become service tags, and how."""

    allowed_labels: frozenset[str] = frozenset()
    allowed_prefixes: tuple[str, ...] = ()
    max_tags: int = 10
    preserve_label_names: bool = False

    @classmethod
    def from_settings(cls) -> "LabelTagConfig":
        max_tags = getattr(settings, "ALERTS_MAX_LABEL_TAGS", 10)
        try:
            max_tags = int(max_tags)
        except (TypeError, ValueError):
            raise ImproperlyConfigured(
                f"ALERTS_MAX_LABEL_TAGS must be an integer, got {max_tags!r}"
            ) from None
        if max_tags < 0:
            raise ImproperlyConfigured("ALERTS_MAX_LABEL_TAGS must not be negative")

        return cls(
            allowed_labels=frozenset(getattr(settings, "ALERTS_TAG_LABELS", ())),
            allowed_prefixes=tuple(getattr(settings, "ALERTS_TAG_LABEL_PREFIXES", ())),
            max_tags=max_tags,
            preserve_label_names=bool(getattr(settings, "ALERTS_PRESERVE_LABEL_NAMES", False)),
        )


def infer_environment(namespace: str) -> str:
    lowered = (namespace or "").lower()
    for hint, environment in ENVIRONMENT_HINTS:
        if hint in lowered:
            return environment
    return UNKNOWN


def infer_component_type(service_name: str) -> str:
    lowered = (service_name or "").lower()
    for component_type, hints in COMPONENT_HINTS:
        if any(hint in lowered for hint in hints):
            return component_type
    return DEFAULT_COMPONENT_TYPE


def _label_tag_key(name: str, config: LabelTagConfig) -> str | None:
    if name in config.allowed_labels:
        return name
    for prefix in config.allowed_prefixes:
        if prefix and name.startswith(prefix):
            if config.preserve_label_names:
                return name
            return name[len(prefix):] or None
    return None


def tags_from_labels(labels: dict[str, str], config: LabelTagConfig) -> list[str]:
    """Convert allow-listed labels to ``key:value`` tags, capped at ``max_tags``."""
    tags: list[str] = []
    for name in sorted(labels or {}):
        key = _label_tag_key(name, config)
        if key is None:
            continue
        if len(tags) >= config.max_tags:
            logger.debug("Label tag cap of %d reached; dropping label %s", config.max_tags, name)
            continue
        value = str(labels[name]).strip()
        tag = key if value.lower() in TRUTHY_LABEL_VALUES else f"{key}:{value}"
        if tag not in tags:
            tags.append(tag)
    return tags


def service_update_from_alert(
    namespace: str,
    service_name: str,
    severity: str,
    labels: dict[str, str] | None = None,
    config: LabelTagConfig | None = None,
    source: str = TagSource.ALERTMANAGER.value,
) -> ServiceUpdate:
    """Build the metadata update an alert implies for its service."""
    config = config or LabelTagConfig.from_settings()
    labels = labels or {}

    environment = infer_environment(namespace)
    component_type = infer_component_type(service_name)

    tags = [ALERT_CREATED_TAG]
    if severity in ("critical", "fatal"):
        tags.append(HIGH_PRIORITY_TAG)
    if environment != UNKNOWN:
        tags.append(environment)
    if component_type != DEFAULT_COMPONENT_TYPE:
        tags.append(component_type)
    tags.extend(tags_from_labels(labels, config))

    return ServiceUpdate.build(
        source,
        tags=tags,
        environment=environment if environment != UNKNOWN else None,
        team=str(labels.get("team") or "").strip() or None,
        component_type=component_type if component_type != DEFAULT_COMPONENT_TYPE else None,
    )
