from datetime import datetime, time, timezone as dt_timezone

from django.test import TestCase

from core.models import AuditEvent, Event, EventTemplate, Location, TemplateAgendaItem, TemplatePosition
from core.services import templates as service
from core.services.duplication import duplicate_from_detail
from core.services.errors import AuthorizationError, DuplicateError, TemplateNotFound, ValidationError
from core.tests.helpers import make_church, make_member, make_ministry, make_template, principal


class TemplateHeaderTests(TestCase):
    def setUp(self):
        self.church = make_church()
        self.leader = make_member(self.church, "leader@example.com", role="leader")
        self.member = make_member(self.church, "member@example.com", role="member")
        self.as_leader = principal(self.leader, self.church)

    def test_create_applies_defaults(self):
        template = service.create_template(
            self.as_leader, self.church, {"name": " Sunday Service ", "default_start_time": "09:00"}
        )
        self.assertEqual(template.name, "Sunday Service")
        self.assertEqual(template.default_start_time, time(9, 0))
        self.assertEqual(template.default_duration_minutes, 120)
        self.assertEqual(template.event_type, "service")
        self.assertEqual(template.visibility, "members")
        self.assertEqual(template.created_by, self.leader)
        self.assertTrue(AuditEvent.objects.filter(entity_type="EventTemplate", action_type="create").exists())

    def test_create_validates_header(self):
        invalid = [
            {"name": "  ", "default_start_time": "09:00"},
            {"name": "Service", "default_start_time": "9am"},
            {"name": "Service", "default_start_time": "25:00"},
            {"name": "Service", "default_start_time": "09:00", "default_duration_minutes": 45},
            {"name": "Service", "default_start_time": "09:00", "event_type": "party"},
            {"name": "Service", "default_start_time": "09:00", "visibility": "everyone"},
        ]
        for data in invalid:
            with self.assertRaises(ValidationError):
                service.create_template(self.as_leader, self.church, data)
        self.assertFalse(EventTemplate.objects.exists())

    def test_names_are_unique_per_church(self):
        service.create_template(self.as_leader, self.church, {"name": "Service", "default_start_time": "09:00"})
        with self.assertRaises(DuplicateError):
            service.create_template(self.as_leader, self.church, {"name": "Service", "default_start_time": "18:00"})

        other = make_church(name="Hope Church")
        other_leader = make_member(other, "hope@example.com", role="leader")
        service.create_template(principal(other_leader, other), other, {"name": "Service", "default_start_time": "09:00"})
        self.assertEqual(EventTemplate.objects.filter(name="Service").count(), 2)

    def test_references_must_belong_to_the_church(self):
        other = make_church(name="Hope Church")
        foreign_location = Location.objects.create(church=other, name="Annex")
        outsider = make_member(other, "outsider@example.com")
        base = {"name": "Service", "default_start_time": "09:00"}
        with self.assertRaises(ValidationError):
            service.create_template(self.as_leader, self.church, {**base, "location_id": foreign_location.id})
        with self.assertRaises(ValidationError):
            service.create_template(self.as_leader, self.church, {**base, "invited_user_ids": [outsider.id]})
        with self.assertRaises(ValidationError):
            service.create_template(self.as_leader, self.church, {**base, "responsible_person_id": outsider.id})

    def test_members_cannot_create(self):
        volunteer = make_member(self.church, "volunteer@example.com", role="volunteer")
        for user in (self.member, volunteer):
            with self.assertRaises(AuthorizationError):
                service.create_template(
                    principal(user, self.church), self.church, {"name": "Service", "default_start_time": "09:00"}
                )

    def test_hidden_without_invitees_is_kept_with_a_warning(self):
        with self.assertLogs("core.services.templates", level="WARNING"):
            template = service.create_template(
                self.as_leader,
                self.church,
                {"name": "Elders", "default_start_time": "19:00", "visibility": "hidden"},
            )
        self.assertEqual(template.visibility, "hidden")
        self.assertEqual(len(service.configuration_warnings(template)), 1)

    def test_update_is_partial(self):
        template = service.create_template(
            self.as_leader, self.church, {"name": "Service", "default_start_time": "09:00", "description": "Main"}
        )
        updated = service.update_template(self.as_leader, self.church, template.id, {"name": "Morning Service"})
        self.assertEqual(updated.name, "Morning Service")
        self.assertEqual(updated.description, "Main")
        self.assertEqual(updated.default_start_time, time(9, 0))
        audit = AuditEvent.objects.get(entity_type="EventTemplate", action_type="update")
        self.assertEqual(audit.diff_json["name"], ["Service", "Morning Service"])

    def test_update_replaces_invitees(self):
        template = service.create_template(
            self.as_leader,
            self.church,
            {"name": "Service", "default_start_time": "09:00", "invited_user_ids": [self.member.id]},
        )
        updated = service.update_template(
            self.as_leader, self.church, template.id, {"invited_user_ids": [self.leader.id]}
        )
        self.assertEqual(service.invitee_ids(updated), [self.leader.id])

    def test_update_to_taken_name_is_rejected(self):
        make_template(self.church, name="Evening")
        template = make_template(self.church, name="Morning")
        with self.assertRaises(DuplicateError):
            service.update_template(self.as_leader, self.church, template.id, {"name": "Evening"})

    def test_delete_requires_admin_and_keeps_events(self):
        admin = make_member(self.church, "admin@example.com", role="admin")
        template = make_template(self.church)
        TemplateAgendaItem.objects.create(template=template, title="Welcome")
        event = Event.objects.create(
            church=self.church,
            template=template,
            title=template.name,
            start_time=datetime(2025, 6, 1, 9, tzinfo=dt_timezone.utc),
            end_time=datetime(2025, 6, 1, 11, tzinfo=dt_timezone.utc),
        )

        with self.assertRaises(AuthorizationError):
            service.delete_template(self.as_leader, self.church, template.id)

        service.delete_template(principal(admin, self.church), self.church, template.id)

        self.assertFalse(EventTemplate.objects.filter(id=template.id).exists())
        self.assertFalse(TemplateAgendaItem.objects.exists())
        event.refresh_from_db()
        self.assertIsNone(event.template)

    def test_delete_missing_template_is_denied(self):
        admin = make_member(self.church, "admin@example.com", role="admin")
        with self.assertRaises(AuthorizationError):
            service.delete_template(principal(admin, self.church), self.church, 12345)


class TemplateAccessTests(TestCase):
    def setUp(self):
        self.church = make_church()
        self.member = make_member(self.church, "member@example.com")
        self.volunteer = make_member(self.church, "volunteer@example.com", role="volunteer")
        self.leader = make_member(self.church, "leader@example.com", role="leader")
        self.admin = make_member(self.church, "admin@example.com", role="admin")
        self.hidden = make_template(self.church, name="Elders", visibility="hidden")
        self.hidden.invited_users.add(self.member)
        self.leaders_only = make_template(self.church, name="Staff Meeting", visibility="leaders")
        self.open = make_template(self.church, name="Sunday Service")

    def names(self, user):
        return [template.name for template in service.list_templates(principal(user, self.church), self.church)]

    def test_list_respects_visibility(self):
        self.assertEqual(self.names(self.member), ["Elders", "Sunday Service"])
        self.assertEqual(self.names(self.volunteer), ["Sunday Service"])
        self.assertEqual(self.names(self.leader), ["Staff Meeting", "Sunday Service"])
        self.assertEqual(self.names(self.admin), ["Elders", "Staff Meeting", "Sunday Service"])

    def test_list_requires_membership(self):
        other = make_church(name="Hope Church")
        outsider = make_member(other, "outsider@example.com", role="owner")
        with self.assertRaises(AuthorizationError):
            service.list_templates(principal(outsider, self.church), self.church)

    def test_list_counts_agenda_and_needed_positions(self):
        ministry, (vocals, keys) = make_ministry(self.church, roles=["Vocals", "Keys"])
        TemplateAgendaItem.objects.create(template=self.open, title="Welcome")
        TemplatePosition.objects.create(template=self.open, ministry=ministry, role=vocals, title="Vocals", quantity_needed=2)
        TemplatePosition.objects.create(template=self.open, ministry=ministry, role=keys, title="Keys", quantity_needed=1)

        listed = {t.name: t for t in service.list_templates(principal(self.admin, self.church), self.church)}

        self.assertEqual(listed["Sunday Service"].agenda_item_count, 1)
        self.assertEqual(listed["Sunday Service"].position_count, 3)
        self.assertEqual(listed["Elders"].agenda_item_count, 0)

    def test_hidden_template_reads_as_missing_for_uninvited(self):
        with self.assertRaises(TemplateNotFound):
            service.get_template(principal(self.leader, self.church), self.church, self.hidden.id)
        self.assertEqual(service.get_template(principal(self.member, self.church), self.church, self.hidden.id), self.hidden)
        self.assertEqual(service.get_template(principal(self.admin, self.church), self.church, self.hidden.id), self.hidden)

    def test_templates_of_other_churches_are_missing(self):
        other = make_church(name="Hope Church")
        foreign = make_template(other)
        with self.assertRaises(TemplateNotFound):
            service.get_template(principal(self.admin, self.church), self.church, foreign.id)

    def test_writing_an_unreadable_template_is_denied(self):
        with self.assertRaises(AuthorizationError) as hidden:
            service.update_template(principal(self.leader, self.church), self.church, self.hidden.id, {"name": "x"})
        with self.assertRaises(AuthorizationError) as missing:
            service.update_template(principal(self.leader, self.church), self.church, 12345, {"name": "x"})
        self.assertEqual(hidden.exception.user_message, missing.exception.user_message)
        self.hidden.refresh_from_db()
        self.assertEqual(self.hidden.name, "Elders")

    def test_capabilities(self):
        self.assertEqual(
            service.template_capabilities(principal(self.leader, self.church)),
            {"can_manage": True, "can_delete": False},
        )
        self.assertEqual(
            service.template_capabilities(principal(self.volunteer, self.church)),
            {"can_manage": False, "can_delete": False},
        )


class AgendaTests(TestCase):
    def setUp(self):
        self.church = make_church()
        self.leader = make_member(self.church, "leader@example.com", role="leader")
        self.as_leader = principal(self.leader, self.church)
        self.template = make_template(self.church)
        self.ministry, _ = make_ministry(self.church)

    def add(self, **data):
        return service.add_agenda_item(self.as_leader, self.church, self.template.id, data)

    def test_items_are_appended_in_order(self):
        first = self.add(title="Welcome", duration_seconds=300)
        second = self.add(title="Announcements", duration_seconds=180, ministry_id=self.ministry.id)
        ordered = service.ordered_agenda(self.template)
        self.assertEqual([item.id for item in ordered], [first.id, second.id])
        self.assertEqual(second.ministry, self.ministry)

    def test_song_placeholder_defaults(self):
        item = self.add(is_song_placeholder=True)
        self.assertEqual(item.title, "Song")
        self.assertEqual(item.duration_seconds, 300)
        self.assertIsNone(item.ministry)

    def test_song_placeholder_cannot_have_a_ministry(self):
        with self.assertRaises(ValidationError):
            self.add(is_song_placeholder=True, ministry_id=self.ministry.id)

    def test_item_validation(self):
        with self.assertRaises(ValidationError):
            self.add(title="")
        with self.assertRaises(ValidationError):
            self.add(title="Welcome", duration_seconds=0)

    def test_update_item(self):
        item = self.add(title="Welcome", duration_seconds=300, ministry_id=self.ministry.id)
        updated = service.update_agenda_item(
            self.as_leader, self.church, self.template.id, item.id, {"duration_seconds": 240}
        )
        self.assertEqual(updated.duration_seconds, 240)
        self.assertEqual(updated.title, "Welcome")
        self.assertEqual(updated.ministry, self.ministry)

    def test_turning_an_item_into_a_placeholder_drops_its_ministry(self):
        item = self.add(title="Special number", ministry_id=self.ministry.id)
        updated = service.update_agenda_item(
            self.as_leader, self.church, self.template.id, item.id, {"is_song_placeholder": True}
        )
        self.assertIsNone(updated.ministry)

    def test_reorder_move_and_remove(self):
        items = [self.add(title=title) for title in ("Welcome", "Worship", "Sermon")]
        ids = [item.id for item in items]

        reordered = service.reorder_agenda_items(self.as_leader, self.church, self.template.id, [ids[2], ids[0], ids[1]])
        self.assertEqual([item.id for item in reordered], [ids[2], ids[0], ids[1]])

        moved = service.move_agenda_item(self.as_leader, self.church, self.template.id, ids[1], "up")
        self.assertEqual([item.id for item in moved], [ids[2], ids[1], ids[0]])

        service.remove_agenda_item(self.as_leader, self.church, self.template.id, ids[2])
        self.assertEqual([item.id for item in service.ordered_agenda(self.template)], [ids[1], ids[0]])

    def test_members_cannot_edit_agenda(self):
        member = make_member(self.church, "member@example.com")
        with self.assertRaises(AuthorizationError):
            service.add_agenda_item(principal(member, self.church), self.church, self.template.id, {"title": "x"})


class DuplicateTemplateTests(TestCase):
    def setUp(self):
        self.church = make_church()
        self.leader = make_member(self.church, "leader@example.com", role="leader")
        self.as_leader = principal(self.leader, self.church)
        self.ministry, (self.vocals, self.keys) = make_ministry(self.church, roles=["Vocals", "Keys"])
        self.original = make_template(self.church, name="Sunday Service", description="Main", visibility="volunteers")
        self.original.invited_users.add(self.leader)
        for index, title in enumerate(["Welcome", "Worship", "Sermon"]):
            TemplateAgendaItem.objects.create(template=self.original, title=title, sort_order=index)
        TemplatePosition.objects.create(
            template=self.original, ministry=self.ministry, role=self.vocals, title="Vocals", quantity_needed=2, sort_order=0
        )
        TemplatePosition.objects.create(
            template=self.original, ministry=self.ministry, role=self.keys, title="Keys", quantity_needed=1, sort_order=1
        )

    def agenda_titles(self, template):
        return [item.title for item in service.ordered_agenda(template)]

    def test_copy_has_same_content(self):
        copy = service.duplicate_template(self.as_leader, self.church, self.original.id)

        self.assertEqual(copy.name, "Sunday Service - copy")
        self.assertEqual(copy.description, "Main")
        self.assertEqual(copy.visibility, "volunteers")
        self.assertEqual(copy.default_start_time, self.original.default_start_time)
        self.assertEqual(service.invitee_ids(copy), [self.leader.id])
        self.assertEqual(self.agenda_titles(copy), ["Welcome", "Worship", "Sermon"])
        self.assertEqual(
            [(p.role_id, p.quantity_needed) for p in service.ordered_positions(copy)],
            [(self.vocals.id, 2), (self.keys.id, 1)],
        )

    def test_editing_the_copy_leaves_the_original_alone(self):
        copy = service.duplicate_template(self.as_leader, self.church, self.original.id)
        copy_ids = [item.id for item in service.ordered_agenda(copy)]

        service.reorder_agenda_items(self.as_leader, self.church, copy.id, list(reversed(copy_ids)))
        position = service.ordered_positions(copy)[0]
        service.set_position_quantity(self.as_leader, self.church, copy.id, position.id, 5)

        self.assertEqual(self.agenda_titles(self.original), ["Welcome", "Worship", "Sermon"])
        self.assertEqual(self.agenda_titles(copy), ["Sermon", "Worship", "Welcome"])
        self.assertEqual(service.ordered_positions(self.original)[0].quantity_needed, 2)

    def test_second_copy_collides(self):
        service.duplicate_template(self.as_leader, self.church, self.original.id)
        with self.assertRaises(DuplicateError) as ctx:
            service.duplicate_template(self.as_leader, self.church, self.original.id)
        self.assertIn("rename the original", ctx.exception.user_message)

    def test_duplicate_from_detail_reports_outcome(self):
        outcome = duplicate_from_detail(self.as_leader, self.church, self.original.id)
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.message, "Template duplicated as Sunday Service - copy.")

        failed = duplicate_from_detail(self.as_leader, self.church, self.original.id)
        self.assertFalse(failed.ok)
        self.assertIsNone(failed.template)
        self.assertIn("already exists", failed.message)
