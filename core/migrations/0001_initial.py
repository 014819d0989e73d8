import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

VISIBILITY_CHOICES = [
    ("members", "All Members"),
    ("volunteers", "Volunteers+"),
    ("leaders", "Leaders+"),
    ("hidden", "Private"),
]

EVENT_TYPE_CHOICES = [
    ("service", "Service"),
    ("rehearsal", "Rehearsal"),
    ("meeting", "Meeting"),
    ("special_event", "Special Event"),
    ("other", "Other"),
]

DURATION_CHOICES = [
    (30, "30 minutes"),
    (60, "1 hour"),
    (90, "1.5 hours"),
    (120, "2 hours"),
    (150, "2.5 hours"),
    (180, "3 hours"),
    (240, "4 hours"),
]


def _timestamps():
    return [
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


def _id():
    return ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID"))


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Church",
            fields=[
                _id(),
                *_timestamps(),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("timezone", models.CharField(default="UTC", max_length=64)),
                (
                    "first_day_of_week",
                    models.PositiveSmallIntegerField(choices=[(0, "Sunday"), (1, "Monday")], default=1),
                ),
            ],
            options={"abstract": False},
        ),
        migrations.CreateModel(
            name="Campus",
            fields=[
                _id(),
                *_timestamps(),
                ("name", models.CharField(max_length=200)),
                ("active", models.BooleanField(default=True)),
                (
                    "church",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="campuses", to="core.church"
                    ),
                ),
            ],
            options={"unique_together": {("church", "name")}},
        ),
        migrations.CreateModel(
            name="Location",
            fields=[
                _id(),
                *_timestamps(),
                ("name", models.CharField(max_length=200)),
                ("address", models.TextField(blank=True)),
                (
                    "campus",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="core.campus"
                    ),
                ),
                (
                    "church",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="locations", to="core.church"
                    ),
                ),
            ],
            options={"abstract": False},
        ),
        migrations.CreateModel(
            name="ChurchMembership",
            fields=[
                _id(),
                *_timestamps(),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("owner", "Owner"),
                            ("admin", "Admin"),
                            ("leader", "Leader"),
                            ("volunteer", "Volunteer"),
                            ("member", "Member"),
                        ],
                        default="member",
                        max_length=20,
                    ),
                ),
                ("active", models.BooleanField(default=True)),
                (
                    "campus",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="core.campus"
                    ),
                ),
                (
                    "church",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="memberships", to="core.church"
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="church_memberships",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"unique_together": {("church", "user")}},
        ),
        migrations.CreateModel(
            name="Ministry",
            fields=[
                _id(),
                *_timestamps(),
                ("name", models.CharField(max_length=120)),
                ("color", models.CharField(blank=True, max_length=20)),
                ("active", models.BooleanField(default=True)),
                (
                    "campus",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="core.campus"
                    ),
                ),
                (
                    "church",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="ministries", to="core.church"
                    ),
                ),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="MinistryRole",
            fields=[
                _id(),
                ("name", models.CharField(max_length=120)),
                (
                    "ministry",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="roles", to="core.ministry"
                    ),
                ),
            ],
            options={"ordering": ["name"], "unique_together": {("ministry", "name")}},
        ),
        migrations.CreateModel(
            name="EventTemplate",
            fields=[
                _id(),
                *_timestamps(),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True)),
                (
                    "event_type",
                    models.CharField(choices=EVENT_TYPE_CHOICES, default="service", max_length=20),
                ),
                ("default_start_time", models.TimeField()),
                (
                    "default_duration_minutes",
                    models.PositiveIntegerField(choices=DURATION_CHOICES, default=120),
                ),
                (
                    "visibility",
                    models.CharField(choices=VISIBILITY_CHOICES, default="members", max_length=20),
                ),
                (
                    "campus",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="core.campus"
                    ),
                ),
                (
                    "church",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="event_templates", to="core.church"
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="templates_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "invited_users",
                    models.ManyToManyField(
                        blank=True, related_name="template_invitations", to=settings.AUTH_USER_MODEL
                    ),
                ),
                (
                    "location",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="core.location"
                    ),
                ),
                (
                    "responsible_person",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="responsible_templates",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="templates_updated",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(fields=("church", "name"), name="unique_template_name_per_church")
                ],
            },
        ),
        migrations.CreateModel(
            name="TemplateAgendaItem",
            fields=[
                _id(),
                *_timestamps(),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True)),
                ("duration_seconds", models.PositiveIntegerField(default=300)),
                ("is_song_placeholder", models.BooleanField(default=False)),
                ("sort_order", models.IntegerField(default=0)),
                (
                    "ministry",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="core.ministry"
                    ),
                ),
                (
                    "template",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="agenda_items",
                        to="core.eventtemplate",
                    ),
                ),
            ],
            options={"ordering": ["sort_order", "id"]},
        ),
        migrations.CreateModel(
            name="TemplatePosition",
            fields=[
                _id(),
                *_timestamps(),
                ("title", models.CharField(max_length=200)),
                ("quantity_needed", models.PositiveSmallIntegerField(default=1)),
                ("notes", models.TextField(blank=True)),
                ("sort_order", models.IntegerField(blank=True, null=True)),
                (
                    "ministry",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="core.ministry"),
                ),
                (
                    "role",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, to="core.ministryrole"
                    ),
                ),
                (
                    "template",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="positions",
                        to="core.eventtemplate",
                    ),
                ),
            ],
            options={
                "ordering": ["sort_order", "id"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(role__isnull=False),
                        fields=("template", "ministry", "role"),
                        name="unique_template_position_role",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(role__isnull=True),
                        fields=("template", "ministry"),
                        name="unique_template_position_any_role",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Event",
            fields=[
                _id(),
                *_timestamps(),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True)),
                (
                    "event_type",
                    models.CharField(choices=EVENT_TYPE_CHOICES, default="service", max_length=20),
                ),
                ("start_time", models.DateTimeField()),
                ("end_time", models.DateTimeField()),
                ("is_all_day", models.BooleanField(default=False)),
                (
                    "status",
                    models.CharField(
                        choices=[("draft", "Draft"), ("published", "Published"), ("cancelled", "Cancelled")],
                        default="published",
                        max_length=20,
                    ),
                ),
                (
                    "visibility",
                    models.CharField(choices=VISIBILITY_CHOICES, default="members", max_length=20),
                ),
                (
                    "campus",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="core.campus"
                    ),
                ),
                (
                    "church",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="events", to="core.church"
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="events_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "invited_users",
                    models.ManyToManyField(blank=True, related_name="event_invitations", to=settings.AUTH_USER_MODEL),
                ),
                (
                    "location",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="core.location"
                    ),
                ),
                (
                    "responsible_person",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="responsible_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "template",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="events",
                        to="core.eventtemplate",
                    ),
                ),
            ],
            options={
                "ordering": ["start_time"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(template__isnull=False) & ~models.Q(status="cancelled"),
                        fields=("template", "start_time"),
                        name="unique_live_event_per_template_start",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="EventAgendaItem",
            fields=[
                _id(),
                *_timestamps(),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True)),
                ("duration_seconds", models.PositiveIntegerField(default=300)),
                ("is_song_placeholder", models.BooleanField(default=False)),
                ("sort_order", models.IntegerField(default=0)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="agenda_items", to="core.event"
                    ),
                ),
                (
                    "ministry",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="core.ministry"
                    ),
                ),
            ],
            options={"ordering": ["sort_order", "id"]},
        ),
        migrations.CreateModel(
            name="EventPosition",
            fields=[
                _id(),
                *_timestamps(),
                ("title", models.CharField(max_length=200)),
                ("quantity_needed", models.PositiveSmallIntegerField(default=1)),
                ("notes", models.TextField(blank=True)),
                ("sort_order", models.IntegerField(blank=True, null=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="positions", to="core.event"
                    ),
                ),
                (
                    "ministry",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="core.ministry"),
                ),
                (
                    "role",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="core.ministryrole"
                    ),
                ),
            ],
            options={"ordering": ["sort_order", "id"]},
        ),
        migrations.CreateModel(
            name="AuditEvent",
            fields=[
                _id(),
                ("entity_type", models.CharField(max_length=100)),
                ("entity_id", models.CharField(max_length=100)),
                ("action_type", models.CharField(max_length=50)),
                ("diff_json", models.JSONField(blank=True, default=dict)),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                (
                    "actor_user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "church",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="core.church"
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["entity_type", "entity_id"], name="core_audite_entity__6d1c2b_idx"),
                    models.Index(fields=["church", "timestamp"], name="core_audite_church__8f3a1e_idx"),
                ],
            },
        ),
    ]
