from dataclasses import dataclass

from core.models import EventTemplate
from core.services import errors
from core.services.templates import duplicate_template


@dataclass
class DuplicationOutcome:
    template: EventTemplate = None
    message: str = ""
    error: errors.ServiceError = None

    @property
    def ok(self):
        return self.error is None


def duplicate_from_detail(principal, church, template_id, policy=None):
    """Duplicate from a template's detail page and describe the result for the user."""
    try:
        copy = duplicate_template(principal, church, template_id, policy=policy)
    except errors.ServiceError as exc:
        return DuplicationOutcome(message=exc.user_message, error=exc)
    return DuplicationOutcome(template=copy, message=f"Template duplicated as {copy.name}.")
