"""
Views for feeding and reading the service catalog.
"""

import json
import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apps.catalog.merge import ServiceUpdate, TagSource
from apps.catalog.models import Service
from apps.catalog.services import ServiceManager, ServiceNotFound

logger = logging.getLogger(__name__)


def _service_dict(service: Service) -> dict:
    return {
        "namespace": service.namespace,
        "service": service.service,
        "environment": service.environment,
        "team": service.team,
        "component_type": service.component_type,
        "tags": list(service.tags),
        "tag_sources": dict(service.tag_sources),
        "last_seen": service.last_seen.isoformat(),
    }


def _error(message: str, status: int) -> JsonResponse:
    return JsonResponse({"status": "error", "message": message}, status=status)


def _load_object(request) -> dict | None:
    try:
        data = json.loads(request.body or b"{}")
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON payload: {e}")
        return None
    return data if isinstance(data, dict) else None


def _tag_list(value) -> list[str] | None:
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        return None
    return value


@method_decorator(csrf_exempt, name="dispatch")
class TelemetryView(View):
    """
    Merge a telemetry-derived service description.

    POST /services/telemetry/
    """

    def post(self, request):
        data = _load_object(request)
        if data is None:
            return _error("Invalid JSON payload", 400)

        namespace = str(data.get("namespace") or "").strip()
        name = str(data.get("service") or "").strip()
        if not namespace or not name:
            return _error("namespace and service are required", 400)

        tags = None
        if "tags" in data:
            tags = _tag_list(data["tags"])
            if tags is None:
                return _error("tags must be a list of strings", 400)

        update = ServiceUpdate.build(
            TagSource.OTEL,
            tags=tags,
            environment=(data.get("environment") or None),
            team=(data.get("team") or None),
            component_type=(data.get("component_type") or None),
        )
        result = ServiceManager.upsert(namespace, name, update)
        service = Service.objects.get(namespace=namespace, service=name)

        return JsonResponse(
            {"status": "ok", **result.to_dict(), "service": _service_dict(service)},
            status=201 if result.created else 200,
        )


@method_decorator(csrf_exempt, name="dispatch")
class ServiceTagsView(View):
    """
    Replace the operator-curated tags of a service.

    PUT /services/<namespace>/<name>/tags/
    """

    def put(self, request, namespace, name):
        data = _load_object(request)
        if data is None:
            return _error("Invalid JSON payload", 400)

        tags = _tag_list(data.get("tags"))
        if tags is None:
            return _error("tags must be a list of strings", 400)

        try:
            service = ServiceManager.set_operator_tags(namespace, name, tags)
        except ServiceNotFound as e:
            return _error(str(e), 404)

        return JsonResponse({"status": "ok", "service": _service_dict(service)})


class TagListView(View):
    """
    List every tag in use.

    GET /services/tags/
    """

    def get(self, request):
        tags = ServiceManager.all_tags()
        return JsonResponse({"tags": tags, "count": len(tags)})
