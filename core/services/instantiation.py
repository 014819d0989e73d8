"""Turn a template into concrete events on operator-chosen dates.

Dates are processed one at a time in chronological order. Each date is
committed on its own; the loop stops at the first failure and never undoes the
dates already created.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser
from django.db import DatabaseError, transaction
from django.utils import timezone

from core.models import Event, EventAgendaItem, EventPosition
from core.services import errors
from core.services.audit import log_audit
from core.services.permissions import default_policy
from core.services.templates import get_template, invitee_ids, ordered_agenda, ordered_positions, require_write

logger = logging.getLogger(__name__)

ALL_CREATED = "all_created"
PARTIALLY_CREATED = "partially_created"
NONE_CREATED = "none_created"


@dataclass(frozen=True)
class AgendaSnapshot:
    title: str
    description: str
    duration_seconds: int
    is_song_placeholder: bool
    ministry_id: int
    sort_order: int


@dataclass(frozen=True)
class PositionSnapshot:
    ministry_id: int
    role_id: int
    title: str
    quantity_needed: int
    notes: str
    sort_order: int


@dataclass(frozen=True)
class TemplateSnapshot:
    id: int
    name: str
    description: str
    event_type: str
    location_id: int
    responsible_person_id: int
    campus_id: int
    default_start_time: time
    default_duration_minutes: int
    visibility: str
    invitee_ids: tuple
    agenda: tuple
    positions: tuple


@dataclass
class DateOutcome:
    date: date
    event_id: int = None
    error: errors.ServiceError = None

    @property
    def ok(self):
        return self.error is None


@dataclass
class InstantiationResult:
    template_id: int
    dates: list
    outcomes: list = field(default_factory=list)

    @property
    def total(self):
        return len(self.dates)

    @property
    def created_event_ids(self):
        return [outcome.event_id for outcome in self.outcomes if outcome.ok]

    @property
    def failure(self):
        return next((outcome for outcome in self.outcomes if not outcome.ok), None)

    @property
    def failed_at(self):
        failure = self.failure
        return failure.date if failure else None

    @property
    def error(self):
        failure = self.failure
        return failure.error if failure else None

    @property
    def not_attempted(self):
        return self.dates[len(self.outcomes):]

    @property
    def status(self):
        if self.failure is None:
            return ALL_CREATED
        if self.created_event_ids:
            return PARTIALLY_CREATED
        return NONE_CREATED

    @property
    def up_to_index(self):
        return len(self.created_event_ids)

    def summary(self):
        return f"{len(self.created_event_ids)} of {self.total} created"

    def as_payload(self):
        payload = {"createdEventIds": self.created_event_ids}
        if self.failure is not None:
            payload["failedAt"] = self.failed_at.isoformat()
            payload["error"] = self.error.user_message
        return payload

    def raise_for_failure(self):
        if self.failure is not None:
            raise errors.PartialInstantiationFailure(self)
        return self


def snapshot_template(template):
    return TemplateSnapshot(
        id=template.id,
        name=template.name,
        description=template.description,
        event_type=template.event_type,
        location_id=template.location_id,
        responsible_person_id=template.responsible_person_id,
        campus_id=template.campus_id,
        default_start_time=template.default_start_time,
        default_duration_minutes=template.default_duration_minutes,
        visibility=template.visibility,
        invitee_ids=tuple(invitee_ids(template)),
        agenda=tuple(
            AgendaSnapshot(
                title=item.title,
                description=item.description,
                duration_seconds=item.duration_seconds,
                is_song_placeholder=item.is_song_placeholder,
                ministry_id=None if item.is_song_placeholder else item.ministry_id,
                sort_order=index,
            )
            for index, item in enumerate(ordered_agenda(template))
        ),
        positions=tuple(
            PositionSnapshot(
                ministry_id=position.ministry_id,
                role_id=position.role_id,
                title=position.title,
                quantity_needed=position.quantity_needed,
                notes=position.notes,
                sort_order=index,
            )
            for index, position in enumerate(ordered_positions(template))
        ),
    )


def parse_dates(values):
    if not values:
        raise errors.ValidationError("Select at least one date.", field="dates")
    parsed = set()
    for value in values:
        if isinstance(value, datetime):
            parsed.add(value.date())
        elif isinstance(value, date):
            parsed.add(value)
        elif isinstance(value, str):
            try:
                parsed.add(date_parser.isoparse(value).date())
            except ValueError as exc:
                raise errors.ValidationError(f"Invalid date: {value}.", field="dates") from exc
        else:
            raise errors.ValidationError("Invalid date.", field="dates")
    return sorted(parsed)


def church_zone(church):
    return ZoneInfo(church.timezone or "UTC")


def project_times(snapshot, day, zone):
    starts_at = timezone.make_aware(datetime.combine(day, snapshot.default_start_time), zone)
    # Elapsed time, so durations stay exact across DST changes.
    ends_at = starts_at.astimezone(dt_timezone.utc) + timedelta(minutes=snapshot.default_duration_minutes)
    return starts_at, ends_at.astimezone(zone)


def _commit(snapshot, church, day, zone, actor):
    starts_at, ends_at = project_times(snapshot, day, zone)
    with transaction.atomic():
        clash = (
            Event.objects.filter(template_id=snapshot.id, start_time=starts_at)
            .exclude(status="cancelled")
            .exists()
        )
        if clash:
            raise errors.DuplicateError(
                f"An event from this template already exists on {day.isoformat()}.",
                detail=f"template={snapshot.id} start={starts_at.isoformat()}",
            )
        event = Event.objects.create(
            church=church,
            template_id=snapshot.id,
            title=snapshot.name,
            description=snapshot.description,
            event_type=snapshot.event_type,
            location_id=snapshot.location_id,
            responsible_person_id=snapshot.responsible_person_id,
            campus_id=snapshot.campus_id,
            start_time=starts_at,
            end_time=ends_at,
            is_all_day=False,
            status="published",
            visibility=snapshot.visibility,
            created_by=actor,
        )
        if snapshot.invitee_ids:
            event.invited_users.set(snapshot.invitee_ids)
        EventAgendaItem.objects.bulk_create(
            [
                EventAgendaItem(
                    event=event,
                    title=item.title,
                    description=item.description,
                    duration_seconds=item.duration_seconds,
                    is_song_placeholder=item.is_song_placeholder,
                    ministry_id=item.ministry_id,
                    sort_order=item.sort_order,
                )
                for item in snapshot.agenda
            ]
        )
        EventPosition.objects.bulk_create(
            [
                EventPosition(
                    event=event,
                    ministry_id=position.ministry_id,
                    role_id=position.role_id,
                    title=position.title,
                    quantity_needed=position.quantity_needed,
                    notes=position.notes,
                    sort_order=position.sort_order,
                )
                for position in snapshot.positions
            ]
        )
        log_audit(church, actor, "Event", event.id, "create", {"template_id": snapshot.id, "date": day.isoformat()})
    return event


def instantiate_template(principal, church, template_id, dates, today=None, policy=None):
    policy = policy or default_policy()
    require_write(principal, policy)
    days = parse_dates(dates)
    zone = church_zone(church)
    today = today or timezone.localdate(timezone=zone)
    past = [day for day in days if day < today]
    if past:
        raise errors.ValidationError(
            "Events cannot be created in the past.", detail=f"past dates: {[d.isoformat() for d in past]}", field="dates"
        )

    snapshot = snapshot_template(get_template(principal, church, template_id, policy))
    actor = getattr(principal, "user", None)
    result = InstantiationResult(template_id=snapshot.id, dates=days)
    for day in days:
        try:
            event = _commit(snapshot, church, day, zone, actor)
        except errors.ServiceError as exc:
            result.outcomes.append(DateOutcome(date=day, error=exc))
        except DatabaseError as exc:
            result.outcomes.append(
                DateOutcome(date=day, error=errors.ServiceError("Failed to create event.", detail=str(exc)))
            )
        else:
            result.outcomes.append(DateOutcome(date=day, event_id=event.id))
            continue
        logger.warning(
            "Template %s instantiation stopped at %s: %s",
            snapshot.id,
            day.isoformat(),
            result.error.detail or result.error.user_message,
        )
        break

    logger.info("Template %s instantiated: %s", snapshot.id, result.summary())
    return result
