"""Admin configuration for catalog models."""

from django.contrib import admin

from apps.catalog.models import Service
from config.admin import prettify_json


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    """Admin for Service model.

    Tags are read-only here; operators edit them through the tags endpoint
    so the source attribution stays consistent.
    """

    list_display = ["namespace", "service", "environment", "team", "component_type", "last_seen"]
    list_filter = ["environment", "component_type", "namespace"]
    search_fields = ["namespace", "service", "team"]
    readonly_fields = ["namespace", "service", "pretty_tag_sources", "last_seen", "created_at"]
    exclude = ["tags", "tag_sources"]
    date_hierarchy = "last_seen"

    def has_add_permission(self, request):
        return False

    @admin.display(description="Tags")
    def pretty_tag_sources(self, obj):
        return prettify_json(obj.tag_sources)
