import base64
from datetime import datetime, timezone as dt_timezone

from django.test import TestCase
from rest_framework.test import APIClient

from core.models import AuditEvent, Event, EventTemplate, TemplateAgendaItem, TemplatePosition
from core.tests.helpers import make_church, make_member, make_ministry, make_template


def api_client(email, church=None, password="pass"):
    client = APIClient()
    credentials = base64.b64encode(f"{email}:{password}".encode("utf-8")).decode("utf-8")
    headers = {"HTTP_AUTHORIZATION": f"Basic {credentials}"}
    if church is not None:
        headers["HTTP_X_CHURCH_ID"] = str(church.id)
    client.credentials(**headers)
    return client


class ChurchIsolationTests(TestCase):
    def setUp(self):
        self.church1 = make_church(name="Grace Church")
        self.church2 = make_church(name="Hope Church")
        make_member(self.church1, "user@example.com", role="leader")
        make_template(self.church1, name="Grace Sunday")
        make_template(self.church2, name="Hope Sunday")

    def test_session_church_scopes_results(self):
        client = APIClient()
        client.login(email="user@example.com", password="pass")
        session = client.session
        session["active_church_id"] = self.church1.id
        session.save()
        response = client.get("/api/templates/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["name"] for item in response.json()], ["Grace Sunday"])

    def test_church_header_scopes_results(self):
        response = api_client("user@example.com", self.church1).get("/api/templates/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["name"] for item in response.json()], ["Grace Sunday"])

    def test_church_header_blocks_other_church(self):
        response = api_client("user@example.com", self.church2).get("/api/templates/")
        self.assertEqual(response.status_code, 403)

    def test_church_header_required(self):
        response = api_client("user@example.com").get("/api/templates/")
        self.assertEqual(response.status_code, 400)
        self.assertIn("X-Church-ID", response.content.decode("utf-8"))

    def test_other_church_template_is_not_found(self):
        foreign = EventTemplate.objects.get(name="Hope Sunday")
        response = api_client("user@example.com", self.church1).get(f"/api/templates/{foreign.id}/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Template not found."})


class TemplateApiTests(TestCase):
    def setUp(self):
        self.church = make_church()
        self.leader = make_member(self.church, "leader@example.com", role="leader")
        self.admin = make_member(self.church, "admin@example.com", role="admin")
        self.member = make_member(self.church, "member@example.com")
        self.client = api_client("leader@example.com", self.church)
        self.ministry, (self.vocals, self.keys) = make_ministry(self.church, roles=["Vocals", "Keys"])

    def create(self, **data):
        payload = {"name": "Sunday Service", "defaultStartTime": "09:00", "defaultDurationMinutes": 120}
        payload.update(data)
        return self.client.post("/api/templates/", payload, format="json")

    def test_create_and_read_template(self):
        response = self.create(invitedUserIds=[self.member.id], visibility="volunteers")
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["defaultStartTime"], "09:00")
        self.assertEqual(body["visibility"], "volunteers")
        self.assertEqual(body["invitedUserIds"], [self.member.id])
        self.assertEqual(body["capabilities"], {"canManage": True, "canDelete": False})
        self.assertEqual(body["agendaItems"], [])

        detail = self.client.get(f"/api/templates/{body['id']}/")
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.json()["name"], "Sunday Service")

    def test_invalid_header_is_a_bad_request(self):
        response = self.create(defaultStartTime="9am")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Invalid time format (HH:MM).", "field": "defaultStartTime"})

    def test_duplicate_name_conflicts(self):
        self.create()
        response = self.create()
        self.assertEqual(response.status_code, 409)

    def test_member_cannot_create(self):
        response = api_client("member@example.com", self.church).post(
            "/api/templates/", {"name": "Service", "defaultStartTime": "09:00"}, format="json"
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "You do not have permission to perform this action."})

    def test_patch_updates_only_sent_fields(self):
        template = make_template(self.church, description="Main")
        response = self.client.patch(f"/api/templates/{template.id}/", {"name": "Morning"}, format="json")
        self.assertEqual(response.status_code, 200)
        template.refresh_from_db()
        self.assertEqual(template.name, "Morning")
        self.assertEqual(template.description, "Main")

    def test_delete_requires_admin(self):
        template = make_template(self.church)
        self.assertEqual(self.client.delete(f"/api/templates/{template.id}/").status_code, 403)
        response = api_client("admin@example.com", self.church).delete(f"/api/templates/{template.id}/")
        self.assertEqual(response.status_code, 204)
        self.assertFalse(EventTemplate.objects.filter(id=template.id).exists())

    def test_hidden_template_is_not_found_for_uninvited_member(self):
        template = make_template(self.church, visibility="hidden")
        response = api_client("member@example.com", self.church).get(f"/api/templates/{template.id}/")
        self.assertEqual(response.status_code, 404)

    def test_duplicate_action(self):
        template = make_template(self.church)
        response = self.client.post(f"/api/templates/{template.id}/duplicate/")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["name"], "Sunday Service - copy")
        self.assertEqual(response.json()["message"], "Template duplicated as Sunday Service - copy.")

        again = self.client.post(f"/api/templates/{template.id}/duplicate/")
        self.assertEqual(again.status_code, 409)
        self.assertIn("rename the original", again.json()["error"])

    def test_agenda_endpoints(self):
        template = make_template(self.church)
        base = f"/api/templates/{template.id}/agenda/"
        welcome = self.client.post(base, {"title": "Welcome", "durationSeconds": 300}, format="json").json()
        song = self.client.post(base, {"isSongPlaceholder": True}, format="json").json()
        self.assertEqual(song["title"], "Song")
        self.assertEqual(song["durationSeconds"], 300)

        reordered = self.client.post(f"{base}reorder/", {"ids": [song["id"], welcome["id"]]}, format="json")
        self.assertEqual(reordered.status_code, 200)
        self.assertEqual([item["id"] for item in reordered.json()], [song["id"], welcome["id"]])

        stale = self.client.post(f"{base}reorder/", {"ids": [song["id"]]}, format="json")
        self.assertEqual(stale.status_code, 409)

        moved = self.client.post(f"{base}{welcome['id']}/move/", {"direction": "up"}, format="json")
        self.assertEqual([item["id"] for item in moved.json()], [welcome["id"], song["id"]])

        patched = self.client.patch(f"{base}{welcome['id']}/", {"title": "Greeting"}, format="json")
        self.assertEqual(patched.json()["title"], "Greeting")

        self.assertEqual(self.client.delete(f"{base}{song['id']}/").status_code, 204)
        self.assertEqual(TemplateAgendaItem.objects.filter(template=template).count(), 1)

    def test_position_endpoints(self):
        template = make_template(self.church)
        base = f"/api/templates/{template.id}/positions/"
        pairs = {"positions": [{"ministryId": self.ministry.id, "roleId": self.vocals.id}, {"ministryId": self.ministry.id}]}

        first = self.client.post(base, pairs, format="json")
        self.assertEqual(first.status_code, 201)
        self.assertEqual(len(first.json()["created"]), 2)

        second = self.client.post(base, pairs, format="json")
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.json(), {"created": [], "skipped": 2})

        vocals = TemplatePosition.objects.get(template=template, role=self.vocals)
        lowered = self.client.patch(f"{base}{vocals.id}/", {"quantityNeeded": 0}, format="json")
        self.assertEqual(lowered.json()["quantityNeeded"], 1)
        raised = self.client.patch(f"{base}{vocals.id}/", {"quantityNeeded": 3, "notes": "Alto"}, format="json")
        self.assertEqual(raised.json()["quantityNeeded"], 3)
        self.assertEqual(raised.json()["notes"], "Alto")

        moved = self.client.post(f"{base}{vocals.id}/move/", {"direction": "down"}, format="json")
        self.assertEqual(moved.json()[-1]["id"], vocals.id)

        self.assertEqual(self.client.delete(f"{base}{vocals.id}/").status_code, 204)
        self.assertEqual(TemplatePosition.objects.filter(template=template).count(), 1)

    def test_rejected_position_patch_changes_nothing(self):
        template = make_template(self.church)
        position = TemplatePosition.objects.create(
            template=template, ministry=self.ministry, role=self.vocals, title="Vocals", quantity_needed=1
        )
        url = f"/api/templates/{template.id}/positions/{position.id}/"

        response = self.client.patch(url, {"quantityNeeded": 5, "title": ""}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "title")
        position.refresh_from_db()
        self.assertEqual(position.quantity_needed, 1)
        self.assertEqual(position.title, "Vocals")

    def test_empty_position_patch_is_not_audited(self):
        template = make_template(self.church)
        position = TemplatePosition.objects.create(
            template=template, ministry=self.ministry, role=self.vocals, title="Vocals", quantity_needed=2
        )

        response = self.client.patch(f"/api/templates/{template.id}/positions/{position.id}/", {}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["quantityNeeded"], 2)
        self.assertFalse(AuditEvent.objects.filter(entity_type="TemplatePosition").exists())

    def test_missing_and_hidden_templates_answer_alike_on_write(self):
        hidden = make_template(self.church, name="Elders", visibility="hidden")
        missing = self.client.patch("/api/templates/999999/", {"name": "x"}, format="json")
        denied = self.client.patch(f"/api/templates/{hidden.id}/", {"name": "x"}, format="json")

        self.assertEqual(missing.status_code, 403)
        self.assertEqual(denied.status_code, 403)
        self.assertEqual(missing.json(), denied.json())

    def test_instantiate_all_dates(self):
        template = make_template(self.church)
        response = self.client.post(
            f"/api/templates/{template.id}/instantiate/", {"dates": ["2099-06-01", "2099-06-08"]}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(response.json()["createdEventIds"]), 2)

    def test_instantiate_reports_partial_failure(self):
        template = make_template(self.church)
        start = datetime(2099, 6, 8, 9, 0, tzinfo=dt_timezone.utc)
        Event.objects.create(church=self.church, template=template, title="Taken", start_time=start, end_time=start)

        response = self.client.post(
            f"/api/templates/{template.id}/instantiate/",
            {"dates": ["2099-06-01", "2099-06-08", "2099-06-15"]},
            format="json",
        )

        self.assertEqual(response.status_code, 409)
        body = response.json()
        self.assertEqual(len(body["createdEventIds"]), 1)
        self.assertEqual(body["failedAt"], "2099-06-08")
        self.assertEqual(body["message"], "1 of 3 created")

    def test_instantiate_past_date_is_rejected(self):
        template = make_template(self.church)
        response = self.client.post(
            f"/api/templates/{template.id}/instantiate/", {"dates": ["2000-01-01"]}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(Event.objects.exists())


class CatalogApiTests(TestCase):
    def setUp(self):
        self.church = make_church()
        self.member = make_member(self.church, "member@example.com")
        self.admin = make_member(self.church, "admin@example.com", role="admin")
        make_ministry(self.church, name="Worship", roles=["Vocals"])
        start = datetime(2099, 6, 1, 9, 0, tzinfo=dt_timezone.utc)
        Event.objects.create(church=self.church, title="Sunday", start_time=start, end_time=start)
        Event.objects.create(church=self.church, title="Elders", start_time=start, end_time=start, visibility="hidden")

    def test_ministries_include_roles(self):
        response = api_client("member@example.com", self.church).get("/api/ministries/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()[0]["name"], "Worship")
        self.assertEqual([role["name"] for role in response.json()[0]["roles"]], ["Vocals"])

    def test_events_respect_visibility(self):
        member_view = api_client("member@example.com", self.church).get("/api/events/").json()
        admin_view = api_client("admin@example.com", self.church).get("/api/events/").json()
        self.assertEqual([event["title"] for event in member_view], ["Sunday"])
        self.assertEqual(sorted(event["title"] for event in admin_view), ["Elders", "Sunday"])
