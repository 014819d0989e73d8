from django.conf import settings
from django.db import models
from django.db.models import Q


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Church(TimeStampedModel):
    FIRST_DAY_CHOICES = [
        (0, "Sunday"),
        (1, "Monday"),
    ]
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=80, unique=True)
    timezone = models.CharField(max_length=64, default="UTC")
    first_day_of_week = models.PositiveSmallIntegerField(choices=FIRST_DAY_CHOICES, default=1)

    def __str__(self):
        return self.name


class Campus(TimeStampedModel):
    church = models.ForeignKey(Church, on_delete=models.CASCADE, related_name="campuses")
    name = models.CharField(max_length=200)
    active = models.BooleanField(default=True)

    class Meta:
        unique_together = ("church", "name")

    def __str__(self):
        return self.name


class Location(TimeStampedModel):
    church = models.ForeignKey(Church, on_delete=models.CASCADE, related_name="locations")
    campus = models.ForeignKey(Campus, on_delete=models.SET_NULL, null=True, blank=True)
    name = models.CharField(max_length=200)
    address = models.TextField(blank=True)

    def __str__(self):
        return self.name


class ChurchMembership(TimeStampedModel):
    ROLE_CHOICES = [
        ("owner", "Owner"),
        ("admin", "Admin"),
        ("leader", "Leader"),
        ("volunteer", "Volunteer"),
        ("member", "Member"),
    ]
    church = models.ForeignKey(Church, on_delete=models.CASCADE, related_name="memberships")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="church_memberships")
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="member")
    campus = models.ForeignKey(Campus, on_delete=models.SET_NULL, null=True, blank=True)
    active = models.BooleanField(default=True)

    class Meta:
        unique_together = ("church", "user")

    def __str__(self):
        return f"{self.user} @ {self.church} ({self.role})"


class Ministry(TimeStampedModel):
    church = models.ForeignKey(Church, on_delete=models.CASCADE, related_name="ministries")
    campus = models.ForeignKey(Campus, on_delete=models.SET_NULL, null=True, blank=True)
    name = models.CharField(max_length=120)
    color = models.CharField(max_length=20, blank=True)
    active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class MinistryRole(models.Model):
    ministry = models.ForeignKey(Ministry, on_delete=models.CASCADE, related_name="roles")
    name = models.CharField(max_length=120)

    class Meta:
        unique_together = ("ministry", "name")
        ordering = ["name"]

    def __str__(self):
        return self.name


EVENT_TYPE_CHOICES = [
    ("service", "Service"),
    ("rehearsal", "Rehearsal"),
    ("meeting", "Meeting"),
    ("special_event", "Special Event"),
    ("other", "Other"),
]

VISIBILITY_CHOICES = [
    ("members", "All Members"),
    ("volunteers", "Volunteers+"),
    ("leaders", "Leaders+"),
    ("hidden", "Private"),
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

DEFAULT_SONG_DURATION_SECONDS = 300


class EventTemplate(TimeStampedModel):
    church = models.ForeignKey(Church, on_delete=models.CASCADE, related_name="event_templates")
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    event_type = models.CharField(max_length=20, choices=EVENT_TYPE_CHOICES, default="service")
    location = models.ForeignKey(Location, on_delete=models.SET_NULL, null=True, blank=True)
    responsible_person = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="responsible_templates"
    )
    campus = models.ForeignKey(Campus, on_delete=models.SET_NULL, null=True, blank=True)
    default_start_time = models.TimeField()
    default_duration_minutes = models.PositiveIntegerField(choices=DURATION_CHOICES, default=120)
    visibility = models.CharField(max_length=20, choices=VISIBILITY_CHOICES, default="members")
    invited_users = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name="template_invitations")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="templates_created"
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="templates_updated"
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["church", "name"], name="unique_template_name_per_church"),
        ]
        ordering = ["name"]

    def __str__(self):
        return self.name


class TemplateAgendaItem(TimeStampedModel):
    template = models.ForeignKey(EventTemplate, on_delete=models.CASCADE, related_name="agenda_items")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    duration_seconds = models.PositiveIntegerField(default=DEFAULT_SONG_DURATION_SECONDS)
    is_song_placeholder = models.BooleanField(default=False)
    ministry = models.ForeignKey(Ministry, on_delete=models.SET_NULL, null=True, blank=True)
    sort_order = models.IntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "id"]

    def __str__(self):
        return self.title


class TemplatePosition(TimeStampedModel):
    template = models.ForeignKey(EventTemplate, on_delete=models.CASCADE, related_name="positions")
    ministry = models.ForeignKey(Ministry, on_delete=models.CASCADE)
    role = models.ForeignKey(MinistryRole, on_delete=models.CASCADE, null=True, blank=True)
    title = models.CharField(max_length=200)
    quantity_needed = models.PositiveSmallIntegerField(default=1)
    notes = models.TextField(blank=True)
    sort_order = models.IntegerField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["template", "ministry", "role"],
                condition=Q(role__isnull=False),
                name="unique_template_position_role",
            ),
            models.UniqueConstraint(
                fields=["template", "ministry"],
                condition=Q(role__isnull=True),
                name="unique_template_position_any_role",
            ),
        ]
        ordering = ["sort_order", "id"]

    def __str__(self):
        return self.title


class Event(TimeStampedModel):
    STATUS_CHOICES = [
        ("draft", "Draft"),
        ("published", "Published"),
        ("cancelled", "Cancelled"),
    ]
    church = models.ForeignKey(Church, on_delete=models.CASCADE, related_name="events")
    template = models.ForeignKey(EventTemplate, on_delete=models.SET_NULL, null=True, blank=True, related_name="events")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    event_type = models.CharField(max_length=20, choices=EVENT_TYPE_CHOICES, default="service")
    location = models.ForeignKey(Location, on_delete=models.SET_NULL, null=True, blank=True)
    responsible_person = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="responsible_events"
    )
    campus = models.ForeignKey(Campus, on_delete=models.SET_NULL, null=True, blank=True)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    is_all_day = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="published")
    visibility = models.CharField(max_length=20, choices=VISIBILITY_CHOICES, default="members")
    invited_users = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name="event_invitations")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="events_created"
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["template", "start_time"],
                condition=Q(template__isnull=False) & ~Q(status="cancelled"),
                name="unique_live_event_per_template_start",
            )
        ]
        ordering = ["start_time"]

    def __str__(self):
        return f"{self.title} - {self.start_time}"


class EventAgendaItem(TimeStampedModel):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="agenda_items")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    duration_seconds = models.PositiveIntegerField(default=DEFAULT_SONG_DURATION_SECONDS)
    is_song_placeholder = models.BooleanField(default=False)
    ministry = models.ForeignKey(Ministry, on_delete=models.SET_NULL, null=True, blank=True)
    sort_order = models.IntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "id"]


class EventPosition(TimeStampedModel):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="positions")
    ministry = models.ForeignKey(Ministry, on_delete=models.CASCADE)
    role = models.ForeignKey(MinistryRole, on_delete=models.SET_NULL, null=True, blank=True)
    title = models.CharField(max_length=200)
    quantity_needed = models.PositiveSmallIntegerField(default=1)
    notes = models.TextField(blank=True)
    sort_order = models.IntegerField(null=True, blank=True)

    class Meta:
        ordering = ["sort_order", "id"]


class AuditEvent(models.Model):
    church = models.ForeignKey(Church, on_delete=models.SET_NULL, null=True, blank=True)
    actor_user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    entity_type = models.CharField(max_length=100)
    entity_id = models.CharField(max_length=100)
    action_type = models.CharField(max_length=50)
    diff_json = models.JSONField(default=dict, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["entity_type", "entity_id"], name="core_audite_entity__6d1c2b_idx"),
            models.Index(fields=["church", "timestamp"], name="core_audite_church__8f3a1e_idx"),
        ]
