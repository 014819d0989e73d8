from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from core.models import EventTemplate
from core.services import errors
from core.services.instantiation import instantiate_template
from core.services.permissions import principal_for


class Command(BaseCommand):
    help = "Create events from a template on the given dates."

    def add_arguments(self, parser):
        parser.add_argument("--template-id", type=int, required=True)
        parser.add_argument("--date", action="append", dest="dates", required=True, help="YYYY-MM-DD, repeatable")
        parser.add_argument("--user", required=True, help="Email of the member the events are created for")

    def handle(self, *args, **options):
        template = EventTemplate.objects.select_related("church").filter(id=options["template_id"]).first()
        if template is None:
            raise CommandError("Template not found.")
        user = get_user_model().objects.filter(email__iexact=options["user"]).first()
        if user is None:
            raise CommandError("User not found.")

        principal = principal_for(user, template.church)
        try:
            result = instantiate_template(principal, template.church, template.id, options["dates"])
        except errors.ServiceError as exc:
            raise CommandError(exc.user_message) from exc

        for outcome in result.outcomes:
            if outcome.ok:
                self.stdout.write(f"{outcome.date.isoformat()}: event {outcome.event_id}")
            else:
                self.stderr.write(f"{outcome.date.isoformat()}: {outcome.error.user_message}")
        for day in result.not_attempted:
            self.stderr.write(f"{day.isoformat()}: not attempted")
        try:
            result.raise_for_failure()
        except errors.PartialInstantiationFailure as exc:
            raise CommandError(exc.user_message) from exc
        self.stdout.write(self.style.SUCCESS(result.summary()))
