"""
Priority-based merge of service metadata.

Service descriptions arrive from three sources of different trust:
telemetry (``otel``) < alert pipeline (``alertmanager``) < human operator
(``operator``). ``merge_service`` reconciles one incoming update with the
stored state and reports what changed. It is a pure function: storage lives
in ``apps.catalog.services``.

Tag rules:
- a new tag is added and attributed to the incoming source
- an existing tag is re-attributed only to a strictly higher-priority source
- a tag attributed to the incoming source but missing from its update is
  retracted; tags owned by other sources are never removed

Scalar rules (environment, team, component_type): a value is written only
when the stored value is still the default sentinel, or when the update comes
from the operator.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping


class TagSource(str, enum.Enum):
    """Contributors of service metadata, lowest trust first."""

    OTEL = "otel"
    ALERTMANAGER = "alertmanager"
    OPERATOR = "operator"


SOURCE_PRIORITY: dict[str, int] = {
    TagSource.OTEL.value: 1,
    TagSource.ALERTMANAGER.value: 2,
    TagSource.OPERATOR.value: 3,
}

UNKNOWN = "unknown"
DEFAULT_COMPONENT_TYPE = "service"

# Value each scalar attribute holds until a source supplies a real one.
SCALAR_DEFAULTS: dict[str, str] = {
    "environment": UNKNOWN,
    "team": UNKNOWN,
    "component_type": DEFAULT_COMPONENT_TYPE,
}


@dataclass(frozen=True)
class ServiceState:
    """Mergeable part of a stored service."""

    environment: str = UNKNOWN
    team: str = UNKNOWN
    component_type: str = DEFAULT_COMPONENT_TYPE
    tags: tuple[str, ...] = ()
    tag_sources: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ServiceUpdate:
    """Partial service description from one source.

    ``tags=None`` means the source says nothing about tags: nothing is added
    and nothing is retracted. An empty list retracts every tag the source owns.
    """

    source: str
    tags: tuple[str, ...] | None = None
    environment: str | None = None
    team: str | None = None
    component_type: str | None = None

    @classmethod
    def build(cls, source, tags: Iterable[str] | None = None, **attributes) -> "ServiceUpdate":
        cleaned = None
        if tags is not None:
            cleaned = tuple(dict.fromkeys(t.strip() for t in tags if t and t.strip()))
        return cls(source=_source_value(source), tags=cleaned, **attributes)


@dataclass
class MergeResult:
    state: ServiceState
    tag_changes: list[str] = field(default_factory=list)
    field_changes: dict[str, tuple[str, str]] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.tag_changes or self.field_changes)


def _source_value(source) -> str:
    return source.value if isinstance(source, TagSource) else str(source)


def initial_state(update: ServiceUpdate) -> ServiceState:
    """State of a service created from its first update."""
    state, _ = _merge_scalars(ServiceState(), update, force=True)
    return state


def merge_tags(
    tags: Iterable[str],
    tag_sources: Mapping[str, str],
    incoming: Iterable[str],
    source: str,
    priority: Mapping[str, int] = SOURCE_PRIORITY,
) -> tuple[list[str], dict[str, str], list[str]]:
    """Merge an incoming tag list into the stored tags.

    Returns the sorted tag list, the tag→source attribution map and the
    change log.
    """
    incoming = list(incoming)
    incoming_set = set(incoming)
    merged_sources = dict(tag_sources)
    tag_set = set(tags)
    changes: list[str] = []
    new_priority = priority.get(source, 0)

    # Tags stored without an attribution are repaired to the lowest known source.
    for tag in tag_set:
        merged_sources.setdefault(tag, TagSource.OTEL.value)

    for tag in incoming:
        current = merged_sources.get(tag) if tag in tag_set else None
        if current is None:
            tag_set.add(tag)
            merged_sources[tag] = source
            changes.append(f"+{tag} ({source})")
        elif new_priority > priority.get(current, 0):
            merged_sources[tag] = source
            changes.append(f"~{tag} ({current}→{source})")

    for tag in sorted(tag_set):
        if merged_sources.get(tag) == source and tag not in incoming_set:
            tag_set.discard(tag)
            del merged_sources[tag]
            changes.append(f"-{tag} (removed by {source})")

    # Attributions for tags that are no longer present are dropped.
    merged_sources = {t: s for t, s in merged_sources.items() if t in tag_set}
    return sorted(tag_set), merged_sources, changes


def _merge_scalars(
    state: ServiceState,
    update: ServiceUpdate,
    force: bool = False,
) -> tuple[ServiceState, dict[str, tuple[str, str]]]:
    changes: dict[str, tuple[str, str]] = {}
    values = {}
    is_operator = update.source == TagSource.OPERATOR.value
    for name, default in SCALAR_DEFAULTS.items():
        incoming = getattr(update, name)
        if not incoming:
            continue
        current = getattr(state, name)
        if incoming == current:
            continue
        if force or is_operator or current == default:
            values[name] = incoming
            changes[name] = (current, incoming)
    return replace(state, **values), changes


def merge_service(
    existing: ServiceState,
    update: ServiceUpdate,
    priority: Mapping[str, int] = SOURCE_PRIORITY,
) -> MergeResult:
    """Merge ``update`` into ``existing`` according to source priority."""
    state, field_changes = _merge_scalars(existing, update)
    tag_changes: list[str] = []

    if update.tags is not None:
        tags, tag_sources, tag_changes = merge_tags(
            existing.tags,
            existing.tag_sources,
            update.tags,
            update.source,
            priority,
        )
        state = replace(state, tags=tuple(tags), tag_sources=tag_sources)

    return MergeResult(state=state, tag_changes=tag_changes, field_changes=field_changes)
