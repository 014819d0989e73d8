import logging

from django.db import IntegrityError, transaction
from django.db.models import Sum

from core.models import Ministry, MinistryRole, TemplatePosition
from core.services import errors
from core.services.audit import field_changes
from core.services.ordering import OrderedCollection

logger = logging.getLogger(__name__)


def position_title(ministry, role=None):
    return role.name if role is not None else ministry.name


class PositionRequirementSet:
    """Staffing needs of one template, unique per (ministry, role)."""

    def __init__(self, template):
        self.template = template
        self.collection = OrderedCollection(TemplatePosition.objects.filter(template=template))

    def ordered(self):
        return self.collection.ordered()

    def _get(self, position_id):
        position = TemplatePosition.objects.filter(template=self.template, id=position_id).first()
        if position is None:
            raise errors.NotFound("Position not found.", detail=f"template={self.template.id} position={position_id}")
        return position

    def _resolve(self, ministry, role):
        if not isinstance(ministry, Ministry):
            ministry = Ministry.objects.filter(id=ministry, church_id=self.template.church_id).first()
        if ministry is None or ministry.church_id != self.template.church_id:
            raise errors.ValidationError("Select a valid ministry.", field="ministryId")
        if role is not None and not isinstance(role, MinistryRole):
            role = MinistryRole.objects.filter(id=role).first()
            if role is None:
                raise errors.ValidationError("Select a valid role.", field="roleId")
        if role is not None and role.ministry_id != ministry.id:
            raise errors.ValidationError("The role does not belong to this ministry.", field="roleId")
        return ministry, role

    def exists(self, ministry, role=None):
        return TemplatePosition.objects.filter(
            template=self.template,
            ministry=ministry,
            role=role,
        ).exists()

    def add(self, ministry, role=None, quantity=1, notes=""):
        ministry, role = self._resolve(ministry, role)
        if quantity < 1:
            raise errors.ValidationError("Quantity must be at least 1.", field="quantityNeeded")
        if self.exists(ministry, role):
            raise errors.DuplicateError(
                "This position was already added.",
                detail=f"template={self.template.id} ministry={ministry.id} role={getattr(role, 'id', None)}",
            )
        position = TemplatePosition(
            template=self.template,
            ministry=ministry,
            role=role,
            title=position_title(ministry, role),
            quantity_needed=quantity,
            notes=notes or "",
        )
        try:
            with transaction.atomic():
                self.collection.append(position)
        except IntegrityError as exc:
            raise errors.DuplicateError("This position was already added.", detail=str(exc)) from exc
        return position

    def add_many(self, pairs):
        resolved = [self._resolve(ministry, role) for ministry, role in pairs]
        created = []
        skipped = []
        for ministry, role in resolved:
            try:
                created.append(self.add(ministry, role))
            except errors.DuplicateError:
                skipped.append((ministry, role))
        if skipped:
            logger.info("Skipped %s position(s) already on template %s", len(skipped), self.template.id)
        return created, skipped

    def set_quantity(self, position_id, quantity):
        position = self._get(position_id)
        if quantity < 1:
            return position
        if position.quantity_needed != quantity:
            position.quantity_needed = quantity
            position.save(update_fields=["quantity_needed", "updated_at"])
        return position

    def increment(self, position_id):
        position = self._get(position_id)
        return self.set_quantity(position_id, position.quantity_needed + 1)

    def decrement(self, position_id):
        position = self._get(position_id)
        return self.set_quantity(position_id, position.quantity_needed - 1)

    def update(self, position_id, quantity=None, title=None, notes=None):
        """Apply an edit to one position and return ``(position, changes)``.

        Every value is validated before anything is saved. A quantity below 1
        is ignored like in :meth:`set_quantity`.
        """
        position = self._get(position_id)
        values = {}
        if title is not None:
            title = title.strip()
            if not title:
                raise errors.ValidationError("Title is required.", field="title")
            values["title"] = title
        if notes is not None:
            values["notes"] = notes
        if quantity is not None and quantity >= 1:
            values["quantity_needed"] = quantity
        changes = field_changes(position, values)
        if changes:
            with transaction.atomic():
                for field in changes:
                    setattr(position, field, values[field])
                position.save(update_fields=list(changes) + ["updated_at"])
        return position, changes

    def remove(self, position_id):
        self.collection.remove(position_id)

    def reorder(self, ids):
        return self.collection.reorder(ids)

    def move(self, position_id, direction):
        return self.collection.move(position_id, direction)

    def total_needed(self):
        return TemplatePosition.objects.filter(template=self.template).aggregate(total=Sum("quantity_needed"))["total"] or 0
