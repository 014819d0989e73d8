import logging
import re
from datetime import datetime, time

from django.db import IntegrityError, transaction
from django.db.models import Count, IntegerField, OuterRef, Subquery, Sum, Value
from django.db.models.functions import Coalesce

from core.models import (
    DEFAULT_SONG_DURATION_SECONDS,
    DURATION_CHOICES,
    EVENT_TYPE_CHOICES,
    VISIBILITY_CHOICES,
    Campus,
    ChurchMembership,
    EventTemplate,
    Location,
    Ministry,
    TemplateAgendaItem,
    TemplatePosition,
)
from core.services import errors
from core.services.audit import field_changes, log_audit
from core.services.ordering import OrderedCollection
from core.services.permissions import default_policy, delete_rank, manage_rank
from core.services.positions import PositionRequirementSet
from core.services.visibility import needs_invitees

logger = logging.getLogger(__name__)

EVENT_TYPES = {value for value, _ in EVENT_TYPE_CHOICES}
VISIBILITY_LEVELS = {value for value, _ in VISIBILITY_CHOICES}
DURATION_MINUTES = {value for value, _ in DURATION_CHOICES}
TIME_RE = re.compile(r"^\d{2}:\d{2}$")
COPY_SUFFIX = " - copy"
SONG_PLACEHOLDER_TITLE = "Song"
NAME_MAX_LENGTH = EventTemplate._meta.get_field("name").max_length

HEADER_FIELDS = (
    "name",
    "description",
    "event_type",
    "location",
    "responsible_person",
    "campus",
    "default_start_time",
    "default_duration_minutes",
    "visibility",
)


# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------


def invitee_ids(obj):
    return [user.pk for user in obj.invited_users.all()]


def _actor(principal):
    return getattr(principal, "user", None)


def require_write(principal, policy=None):
    policy = policy or default_policy()
    if not policy.can_write(principal, manage_rank()):
        raise errors.AuthorizationError()


def require_delete(principal, policy=None):
    policy = policy or default_policy()
    if not policy.can_delete(principal, delete_rank()):
        raise errors.AuthorizationError()


def template_capabilities(principal, policy=None):
    policy = policy or default_policy()
    return {
        "can_manage": policy.can_write(principal, manage_rank()),
        "can_delete": policy.can_delete(principal, delete_rank()),
    }


def _readable(principal, template, policy):
    return policy.can_read(principal, template.visibility, invitee_ids(template))


def get_template(principal, church, template_id, policy=None):
    policy = policy or default_policy()
    template = (
        EventTemplate.objects.filter(church=church, id=template_id)
        .select_related("location", "campus", "responsible_person")
        .prefetch_related("invited_users")
        .first()
    )
    if template is None or not _readable(principal, template, policy):
        raise errors.TemplateNotFound(detail=f"church={getattr(church, 'id', None)} template={template_id}")
    return template


def load_for_write(principal, church, template_id, policy, for_delete=False):
    if for_delete:
        require_delete(principal, policy)
    else:
        require_write(principal, policy)
    template = (
        EventTemplate.objects.filter(church=church, id=template_id).prefetch_related("invited_users").first()
    )
    # Missing and unreadable templates answer alike.
    if template is None or not _readable(principal, template, policy):
        raise errors.AuthorizationError(
            detail=f"church={getattr(church, 'id', None)} template={template_id} not writable by {principal.principal_id}"
        )
    return template


def list_templates(principal, church, policy=None):
    policy = policy or default_policy()
    if principal is None:
        raise errors.AuthorizationError()
    agenda_count = (
        TemplateAgendaItem.objects.filter(template=OuterRef("pk"))
        .values("template")
        .annotate(total=Count("id"))
        .values("total")
    )
    positions_needed = (
        TemplatePosition.objects.filter(template=OuterRef("pk"))
        .values("template")
        .annotate(total=Sum("quantity_needed"))
        .values("total")
    )
    queryset = (
        EventTemplate.objects.filter(church=church)
        .select_related("location", "campus", "responsible_person")
        .prefetch_related("invited_users")
        .annotate(
            agenda_item_count=Coalesce(Subquery(agenda_count, output_field=IntegerField()), Value(0)),
            position_count=Coalesce(Subquery(positions_needed, output_field=IntegerField()), Value(0)),
        )
        .order_by("name")
    )
    return [template for template in queryset if _readable(principal, template, policy)]


def ordered_agenda(template):
    return OrderedCollection(template.agenda_items.select_related("ministry")).ordered()


def ordered_positions(template):
    return OrderedCollection(template.positions.select_related("ministry", "role")).ordered()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def parse_start_time(value):
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str) or not TIME_RE.match(value):
        raise errors.ValidationError("Invalid time format (HH:MM).", field="defaultStartTime")
    try:
        return datetime.strptime(value, "%H:%M").time()
    except ValueError as exc:
        raise errors.ValidationError("Invalid time format (HH:MM).", field="defaultStartTime") from exc


def _church_object(model, church, object_id, field, label):
    if object_id in (None, ""):
        return None
    obj = model.objects.filter(church=church, id=object_id).first()
    if obj is None:
        raise errors.ValidationError(f"Select a valid {label}.", field=field)
    return obj


def _church_users(church, user_ids, field):
    user_ids = list(dict.fromkeys(user_ids or []))
    memberships = ChurchMembership.objects.filter(church=church, user_id__in=user_ids, active=True).select_related("user")
    users = [membership.user for membership in memberships]
    if len(users) != len(user_ids):
        raise errors.ValidationError("Select people from this church.", field=field)
    return users


def clean_template_header(church, data, partial=False):
    """Validate a template header payload (snake_case keys).

    With ``partial`` only the keys present are validated and returned, which is
    what an edit form sends.
    """
    cleaned = {}

    def given(key):
        return key in data or not partial

    if given("name"):
        name = (data.get("name") or "").strip()
        if not name:
            raise errors.ValidationError("Name is required.", field="name")
        if len(name) > NAME_MAX_LENGTH:
            raise errors.ValidationError("Name is too long.", field="name")
        cleaned["name"] = name
    if given("description"):
        cleaned["description"] = (data.get("description") or "").strip()
    if given("event_type"):
        event_type = data.get("event_type") or "service"
        if event_type not in EVENT_TYPES:
            raise errors.ValidationError("Select a valid event type.", field="eventType")
        cleaned["event_type"] = event_type
    if given("visibility"):
        visibility = data.get("visibility") or "members"
        if visibility not in VISIBILITY_LEVELS:
            raise errors.ValidationError("Select a valid visibility.", field="visibility")
        cleaned["visibility"] = visibility
    if given("default_start_time"):
        cleaned["default_start_time"] = parse_start_time(data.get("default_start_time"))
    if given("default_duration_minutes"):
        duration = data.get("default_duration_minutes")
        if duration is None:
            duration = 120
        if isinstance(duration, bool) or duration not in DURATION_MINUTES:
            raise errors.ValidationError("Select a valid duration.", field="defaultDurationMinutes")
        cleaned["default_duration_minutes"] = duration
    if given("location_id"):
        cleaned["location"] = _church_object(Location, church, data.get("location_id"), "locationId", "location")
    if given("campus_id"):
        cleaned["campus"] = _church_object(Campus, church, data.get("campus_id"), "campusId", "campus")
    if given("responsible_person_id"):
        person_id = data.get("responsible_person_id")
        cleaned["responsible_person"] = (
            _church_users(church, [person_id], "responsiblePersonId")[0] if person_id else None
        )
    if given("invited_user_ids"):
        cleaned["invited_users"] = _church_users(church, data.get("invited_user_ids"), "invitedUserIds")
    return cleaned


def clean_agenda_item(church, data, current=None):
    cleaned = {}
    partial = current is not None

    def given(key):
        return key in data or not partial

    is_placeholder = bool(data.get("is_song_placeholder")) if given("is_song_placeholder") else current.is_song_placeholder
    cleaned["is_song_placeholder"] = is_placeholder

    if given("title"):
        title = (data.get("title") or "").strip()
        if not title and is_placeholder:
            title = SONG_PLACEHOLDER_TITLE
        if not title:
            raise errors.ValidationError("Title is required.", field="title")
        cleaned["title"] = title
    if given("description"):
        cleaned["description"] = (data.get("description") or "").strip()
    if given("duration_seconds"):
        duration = data.get("duration_seconds")
        if duration is None:
            duration = DEFAULT_SONG_DURATION_SECONDS
        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            raise errors.ValidationError("Duration must be a positive number of seconds.", field="durationSeconds")
        cleaned["duration_seconds"] = duration
    if "ministry_id" in data and data.get("ministry_id"):
        if is_placeholder:
            raise errors.ValidationError("A song placeholder cannot have a ministry.", field="ministryId")
        cleaned["ministry"] = _church_object(Ministry, church, data.get("ministry_id"), "ministryId", "ministry")
    elif given("ministry_id") or is_placeholder:
        cleaned["ministry"] = None
    return cleaned


def configuration_warnings(template):
    warnings = []
    if needs_invitees(template.visibility, invitee_ids(template)):
        warnings.append("This template is private but nobody is invited yet.")
    return warnings


def _warn_if_unconfigured(template):
    for warning in configuration_warnings(template):
        logger.warning("Template %s: %s", template.id, warning)


# ---------------------------------------------------------------------------
# Template header
# ---------------------------------------------------------------------------


def _name_taken(church, name, exclude_id=None):
    queryset = EventTemplate.objects.filter(church=church, name=name)
    if exclude_id:
        queryset = queryset.exclude(id=exclude_id)
    return queryset.exists()


def create_template(principal, church, data, policy=None):
    require_write(principal, policy)
    cleaned = clean_template_header(church, data)
    invitees = cleaned.pop("invited_users", [])
    actor = _actor(principal)
    if _name_taken(church, cleaned["name"]):
        raise errors.DuplicateError("A template with this name already exists.", detail=cleaned["name"])
    try:
        with transaction.atomic():
            template = EventTemplate.objects.create(church=church, created_by=actor, updated_by=actor, **cleaned)
            template.invited_users.set(invitees)
    except IntegrityError as exc:
        raise errors.DuplicateError("A template with this name already exists.", detail=str(exc)) from exc
    log_audit(church, actor, "EventTemplate", template.id, "create", {"name": template.name})
    logger.info("Template %s created in church %s", template.id, church.id)
    _warn_if_unconfigured(template)
    return template


def update_template(principal, church, template_id, data, policy=None):
    policy = policy or default_policy()
    template = load_for_write(principal, church, template_id, policy)
    cleaned = clean_template_header(church, data, partial=True)
    invitees = cleaned.pop("invited_users", None)
    if "name" in cleaned and _name_taken(church, cleaned["name"], exclude_id=template.id):
        raise errors.DuplicateError("A template with this name already exists.", detail=cleaned["name"])
    actor = _actor(principal)
    changes = field_changes(template, cleaned)
    try:
        with transaction.atomic():
            for field, value in cleaned.items():
                setattr(template, field, value)
            template.updated_by = actor
            template.save()
            if invitees is not None:
                template.invited_users.set(invitees)
                changes["invited_user_ids"] = [user.pk for user in invitees]
    except IntegrityError as exc:
        raise errors.DuplicateError("A template with this name already exists.", detail=str(exc)) from exc
    log_audit(church, actor, "EventTemplate", template.id, "update", changes)
    _warn_if_unconfigured(template)
    return template


def delete_template(principal, church, template_id, policy=None):
    policy = policy or default_policy()
    template = load_for_write(principal, church, template_id, policy, for_delete=True)
    name = template.name
    with transaction.atomic():
        template.delete()
    log_audit(church, _actor(principal), "EventTemplate", template_id, "delete", {"name": name})
    logger.info("Template %s deleted from church %s", template_id, church.id)


def _copy_name(name):
    return f"{name[: NAME_MAX_LENGTH - len(COPY_SUFFIX)]}{COPY_SUFFIX}"


def duplicate_template(principal, church, template_id, policy=None):
    policy = policy or default_policy()
    original = load_for_write(principal, church, template_id, policy)
    actor = _actor(principal)
    name = _copy_name(original.name)
    if _name_taken(church, name):
        raise errors.DuplicateError(
            "A template with this name already exists. Please rename the original first.", detail=name
        )
    agenda = ordered_agenda(original)
    positions = ordered_positions(original)
    try:
        with transaction.atomic():
            copy = EventTemplate.objects.create(
                church=church,
                name=name,
                created_by=actor,
                updated_by=actor,
                **{field: getattr(original, field) for field in HEADER_FIELDS if field != "name"},
            )
            copy.invited_users.set(original.invited_users.all())
            TemplateAgendaItem.objects.bulk_create(
                [
                    TemplateAgendaItem(
                        template=copy,
                        title=item.title,
                        description=item.description,
                        duration_seconds=item.duration_seconds,
                        is_song_placeholder=item.is_song_placeholder,
                        ministry_id=item.ministry_id,
                        sort_order=item.sort_order,
                    )
                    for item in agenda
                ]
            )
            TemplatePosition.objects.bulk_create(
                [
                    TemplatePosition(
                        template=copy,
                        ministry_id=position.ministry_id,
                        role_id=position.role_id,
                        title=position.title,
                        quantity_needed=position.quantity_needed,
                        notes=position.notes,
                        sort_order=position.sort_order,
                    )
                    for position in positions
                ]
            )
    except IntegrityError as exc:
        raise errors.DuplicateError(
            "A template with this name already exists. Please rename the original first.", detail=str(exc)
        ) from exc
    log_audit(church, actor, "EventTemplate", copy.id, "duplicate", {"source_template_id": original.id})
    logger.info("Template %s duplicated as %s", original.id, copy.id)
    return copy


# ---------------------------------------------------------------------------
# Agenda items
# ---------------------------------------------------------------------------


def _agenda(template):
    return OrderedCollection(TemplateAgendaItem.objects.filter(template=template))


def _agenda_item(template, item_id):
    item = TemplateAgendaItem.objects.filter(template=template, id=item_id).first()
    if item is None:
        raise errors.NotFound("Agenda item not found.", detail=f"template={template.id} item={item_id}")
    return item


def add_agenda_item(principal, church, template_id, data, policy=None):
    template = load_for_write(principal, church, template_id, policy or default_policy())
    cleaned = clean_agenda_item(church, data)
    with transaction.atomic():
        item = _agenda(template).append(TemplateAgendaItem(template=template, **cleaned))
    log_audit(church, _actor(principal), "TemplateAgendaItem", item.id, "create", {"template_id": template.id})
    return item


def update_agenda_item(principal, church, template_id, item_id, data, policy=None):
    template = load_for_write(principal, church, template_id, policy or default_policy())
    item = _agenda_item(template, item_id)
    cleaned = clean_agenda_item(church, data, current=item)
    changes = field_changes(item, cleaned)
    for field, value in cleaned.items():
        setattr(item, field, value)
    item.save(update_fields=list(cleaned) + ["updated_at"])
    if changes:
        log_audit(church, _actor(principal), "TemplateAgendaItem", item.id, "update", changes)
    return item


def remove_agenda_item(principal, church, template_id, item_id, policy=None):
    template = load_for_write(principal, church, template_id, policy or default_policy())
    _agenda(template).remove(item_id)
    log_audit(church, _actor(principal), "TemplateAgendaItem", item_id, "delete", {"template_id": template.id})


def reorder_agenda_items(principal, church, template_id, item_ids, policy=None):
    template = load_for_write(principal, church, template_id, policy or default_policy())
    ids = _agenda(template).reorder(item_ids)
    log_audit(church, _actor(principal), "EventTemplate", template.id, "reorder_agenda", {"ids": ids})
    return ordered_agenda(template)


def move_agenda_item(principal, church, template_id, item_id, direction, policy=None):
    template = load_for_write(principal, church, template_id, policy or default_policy())
    if _agenda(template).move(item_id, direction):
        log_audit(
            church, _actor(principal), "TemplateAgendaItem", item_id, "move", {"direction": direction}
        )
    return ordered_agenda(template)


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------


def add_positions(principal, church, template_id, pairs, policy=None):
    template = load_for_write(principal, church, template_id, policy or default_policy())
    created, skipped = PositionRequirementSet(template).add_many(pairs)
    if created:
        log_audit(
            church,
            _actor(principal),
            "EventTemplate",
            template.id,
            "add_positions",
            {"position_ids": [position.id for position in created], "skipped": len(skipped)},
        )
    return created, skipped


def add_position(principal, church, template_id, ministry_id, role_id=None, quantity=1, notes="", policy=None):
    template = load_for_write(principal, church, template_id, policy or default_policy())
    position = PositionRequirementSet(template).add(ministry_id, role_id, quantity=quantity, notes=notes)
    log_audit(church, _actor(principal), "TemplatePosition", position.id, "create", {"template_id": template.id})
    return position


def set_position_quantity(principal, church, template_id, position_id, quantity, policy=None):
    template = load_for_write(principal, church, template_id, policy or default_policy())
    position = PositionRequirementSet(template).set_quantity(position_id, quantity)
    log_audit(
        church, _actor(principal), "TemplatePosition", position.id, "update", {"quantity_needed": position.quantity_needed}
    )
    return position


def update_position(
    principal, church, template_id, position_id, quantity=None, title=None, notes=None, policy=None
):
    template = load_for_write(principal, church, template_id, policy or default_policy())
    position, changes = PositionRequirementSet(template).update(
        position_id, quantity=quantity, title=title, notes=notes
    )
    if changes:
        log_audit(church, _actor(principal), "TemplatePosition", position.id, "update", changes)
    return position


def remove_position(principal, church, template_id, position_id, policy=None):
    template = load_for_write(principal, church, template_id, policy or default_policy())
    PositionRequirementSet(template).remove(position_id)
    log_audit(church, _actor(principal), "TemplatePosition", position_id, "delete", {"template_id": template.id})


def reorder_positions(principal, church, template_id, position_ids, policy=None):
    template = load_for_write(principal, church, template_id, policy or default_policy())
    ids = PositionRequirementSet(template).reorder(position_ids)
    log_audit(church, _actor(principal), "EventTemplate", template.id, "reorder_positions", {"ids": ids})
    return ordered_positions(template)


def move_position(principal, church, template_id, position_id, direction, policy=None):
    template = load_for_write(principal, church, template_id, policy or default_policy())
    if PositionRequirementSet(template).move(position_id, direction):
        log_audit(church, _actor(principal), "TemplatePosition", position_id, "move", {"direction": direction})
    return ordered_positions(template)
