from datetime import date, datetime, time

from core.models import AuditEvent


def _jsonable(value):
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    if hasattr(value, "pk"):
        return value.pk
    return value


def field_changes(instance, values):
    changes = {}
    for field, new_value in values.items():
        old_value = getattr(instance, field, None)
        if old_value != new_value:
            changes[field] = [_jsonable(old_value), _jsonable(new_value)]
    return changes


def log_audit(church, actor, entity_type, entity_id, action_type, diff=None):
    AuditEvent.objects.create(
        church=church,
        actor_user=actor,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action_type=action_type,
        diff_json=diff or {},
    )
