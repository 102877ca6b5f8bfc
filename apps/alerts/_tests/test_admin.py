from unittest.mock import patch

import pytest

from apps.alerts.exceptions import IncidentAlreadyResolved
from apps.alerts.models import Incident, IncidentEvent, IncidentStatus
from apps.alerts.services import AlertOrchestrator, IncidentManager


@pytest.fixture
def incident(db):
    result = AlertOrchestrator().process_manual_alert(
        {"namespace": "payments", "service": "checkout", "message": "Card processor down"}
    )
    return Incident.objects.get(pk=result.results[0].incident_id)


@pytest.mark.django_db
class TestAdminPages:
    def test_index_shows_dashboard(self, admin_client, incident):
        response = admin_client.get("/admin/")
        assert response.status_code == 200
        assert response.context["firing_incidents"]["total"] == 1

    def test_incident_list_loads(self, admin_client, incident):
        response = admin_client.get("/admin/alerts/incident/")
        assert response.status_code == 200

    def test_incident_detail_loads(self, admin_client, incident):
        response = admin_client.get(f"/admin/alerts/incident/{incident.pk}/change/")
        assert response.status_code == 200

    def test_event_detail_shows_pretty_json(self, admin_client, incident):
        event = incident.events.get()
        response = admin_client.get(f"/admin/alerts/incidentevent/{event.pk}/change/")
        assert response.status_code == 200
        assert b"<pre" in response.content

    def test_service_list_loads(self, admin_client, incident):
        response = admin_client.get("/admin/catalog/service/")
        assert response.status_code == 200


@pytest.mark.django_db
class TestBulkActions:
    def test_acknowledge_selected_incidents(self, admin_client, incident):
        response = admin_client.post(
            "/admin/alerts/incident/",
            {"action": "acknowledge_selected", "_selected_action": [incident.pk]},
        )
        assert response.status_code == 302  # redirect after action
        incident.refresh_from_db()
        assert incident.is_acknowledged
        assert incident.acknowledged_by == "admin"

    def test_resolve_selected_incidents(self, admin_client, incident):
        response = admin_client.post(
            "/admin/alerts/incident/",
            {"action": "resolve_selected", "_selected_action": [incident.pk]},
        )
        assert response.status_code == 302
        incident.refresh_from_db()
        assert incident.status == IncidentStatus.RESOLVED
        assert IncidentEvent.objects.filter(incident=incident, type="resolved").count() == 1

    def test_resolve_selected_skips_incident_resolved_meanwhile(self, admin_client, incident):
        with patch.object(
            IncidentManager, "resolve", side_effect=IncidentAlreadyResolved(incident.pk)
        ):
            response = admin_client.post(
                "/admin/alerts/incident/",
                {"action": "resolve_selected", "_selected_action": [incident.pk]},
                follow=True,
            )

        assert response.status_code == 200
        assert "0 incident(s) resolved." in response.content.decode()


@pytest.mark.django_db
class TestPerObjectActions:
    def test_acknowledge_button_works(self, admin_client, incident):
        response = admin_client.post(
            f"/admin/alerts/incident/{incident.pk}/actions/acknowledge_incident/",
        )
        assert response.status_code == 302
        incident.refresh_from_db()
        assert incident.is_acknowledged

    def test_resolve_button_works(self, admin_client, incident):
        response = admin_client.post(
            f"/admin/alerts/incident/{incident.pk}/actions/resolve_incident/",
        )
        assert response.status_code == 302
        incident.refresh_from_db()
        assert incident.status == IncidentStatus.RESOLVED

    def test_resolve_button_on_resolved_incident(self, admin_client, incident):
        admin_client.post(f"/admin/alerts/incident/{incident.pk}/actions/resolve_incident/")
        response = admin_client.post(
            f"/admin/alerts/incident/{incident.pk}/actions/resolve_incident/",
        )
        assert response.status_code == 302
        assert IncidentEvent.objects.filter(incident=incident, type="resolved").count() == 1
