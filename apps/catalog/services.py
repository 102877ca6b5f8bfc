"""
Service catalog operations.

All writes to ``Service`` rows go through ``ServiceManager.upsert`` so the
priority merge in ``apps.catalog.merge`` is applied consistently, whichever
source the update comes from.
"""

import logging
from dataclasses import dataclass, field

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.catalog.merge import (
    ServiceUpdate,
    TagSource,
    initial_state,
    merge_service,
)
from apps.catalog.models import Service

logger = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    """Result of ensuring/merging one service."""

    created: bool = False
    existed: bool = False
    tag_changes: list[str] = field(default_factory=list)
    field_changes: dict[str, tuple[str, str]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "existed": self.existed,
            "tag_changes": list(self.tag_changes),
        }


class ServiceNotFound(LookupError):
    def __init__(self, namespace: str, service: str):
        self.namespace = namespace
        self.service = service
        super().__init__(f"Service {namespace}::{service} not found")


class ServiceManager:
    """Transactional create-or-merge of services."""

    @staticmethod
    def upsert(namespace: str, service: str, update: ServiceUpdate) -> UpsertResult:
        """
        Ensure the service exists and merge ``update`` into it.

        The row is locked for the rest of the surrounding transaction, so
        concurrent merges for the same service are serialized.
        """
        with transaction.atomic():
            existing = (
                Service.objects.select_for_update()
                .filter(namespace=namespace, service=service)
                .first()
            )
            if existing is None:
                created = ServiceManager._create(namespace, service, update)
                if created is not None:
                    return created
                # Lost a creation race; the row now exists.
                existing = Service.objects.select_for_update().get(
                    namespace=namespace, service=service
                )
            return ServiceManager._merge(existing, update)

    @staticmethod
    def _create(namespace: str, service: str, update: ServiceUpdate) -> UpsertResult | None:
        state = initial_state(update)
        tags = list(update.tags or ())
        try:
            with transaction.atomic():
                Service.objects.create(
                    namespace=namespace,
                    service=service,
                    environment=state.environment,
                    team=state.team,
                    component_type=state.component_type,
                    tags=sorted(tags),
                    tag_sources={tag: update.source for tag in tags},
                    last_seen=timezone.now(),
                )
        except IntegrityError:
            return None

        logger.info(
            "Created service %s::%s from %s with %d tag(s)",
            namespace,
            service,
            update.source,
            len(tags),
            extra={"service_key": f"{namespace}::{service}", "source": update.source},
        )
        return UpsertResult(
            created=True,
            existed=False,
            tag_changes=[f"+{tag} ({update.source})" for tag in tags],
        )

    @staticmethod
    def _merge(existing: Service, update: ServiceUpdate) -> UpsertResult:
        result = merge_service(existing.to_state(), update)
        existing.apply_state(result.state)
        existing.last_seen = timezone.now()
        existing.save()

        if result.changed:
            logger.info(
                "Merged %s update into %s: tags=%s fields=%s",
                update.source,
                existing.key,
                result.tag_changes,
                sorted(result.field_changes),
                extra={"service_key": existing.key, "source": update.source},
            )
        return UpsertResult(
            created=False,
            existed=True,
            tag_changes=result.tag_changes,
            field_changes=result.field_changes,
        )

    @staticmethod
    def set_operator_tags(namespace: str, service: str, tags: list[str]) -> Service:
        """Merge an operator-curated tag list into an existing service."""
        with transaction.atomic():
            existing = (
                Service.objects.select_for_update()
                .filter(namespace=namespace, service=service)
                .first()
            )
            if existing is None:
                raise ServiceNotFound(namespace, service)
            ServiceManager._merge(existing, ServiceUpdate.build(TagSource.OPERATOR, tags=tags))
        return existing

    @staticmethod
    def all_tags() -> list[str]:
        """Distinct tags across every service, sorted."""
        tags: set[str] = set()
        for service_tags in Service.objects.values_list("tags", flat=True):
            tags.update(service_tags or ())
        return sorted(tags)
