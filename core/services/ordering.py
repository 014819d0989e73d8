from django.db import transaction
from django.db.models import F, Max

from core.services import errors

UP = "up"
DOWN = "down"
DIRECTIONS = (UP, DOWN)


class OrderedCollection:
    """Items of one parent kept in a total order by an integer ``sort_order``.

    ``queryset`` must already be restricted to a single parent (one template's
    agenda items, one template's positions). Keys are not required to be
    contiguous: removals leave gaps and only a full reorder renumbers.
    """

    def __init__(self, queryset, field="sort_order"):
        self.queryset = queryset
        self.field = field

    def _sorted(self, queryset):
        return queryset.order_by(F(self.field).asc(nulls_last=True), "id")

    def ordered(self):
        return list(self._sorted(self.queryset))

    def ordered_ids(self):
        return list(self._sorted(self.queryset).values_list("id", flat=True))

    def next_sort_order(self):
        current = self.queryset.aggregate(value=Max(self.field))["value"]
        return 0 if current is None else current + 1

    def append(self, item):
        setattr(item, self.field, self.next_sort_order())
        item.save()
        return item

    def _renumber(self, items):
        for index, item in enumerate(items):
            setattr(item, self.field, index)
        self.queryset.model.objects.bulk_update(items, [self.field])

    def reorder(self, ids):
        ids = list(ids)
        with transaction.atomic():
            items = {item.id: item for item in self.queryset.select_for_update()}
            if len(ids) != len(set(ids)) or set(ids) != set(items):
                raise errors.OrderMismatch(
                    detail=f"expected {sorted(items)}, received {ids}",
                )
            if len(items) < 2:
                return ids
            self._renumber([items[item_id] for item_id in ids])
        return ids

    def move(self, item_id, direction):
        if direction not in DIRECTIONS:
            raise errors.ValidationError("Direction must be 'up' or 'down'.", field="direction")
        with transaction.atomic():
            items = list(self._sorted(self.queryset.select_for_update()))
            index = next((i for i, item in enumerate(items) if item.id == item_id), None)
            if index is None:
                raise errors.NotFound("Item not found.", detail=f"id={item_id}")
            target = index - 1 if direction == UP else index + 1
            if target < 0 or target >= len(items):
                return False
            current, neighbor = items[index], items[target]
            current_key = getattr(current, self.field)
            neighbor_key = getattr(neighbor, self.field)
            if current_key is None or neighbor_key is None or current_key == neighbor_key:
                items[index], items[target] = neighbor, current
                self._renumber(items)
                return True
            setattr(current, self.field, neighbor_key)
            setattr(neighbor, self.field, current_key)
            self.queryset.model.objects.bulk_update([current, neighbor], [self.field])
        return True

    def remove(self, item_id):
        deleted, _ = self.queryset.filter(id=item_id).delete()
        if not deleted:
            raise errors.NotFound("Item not found.", detail=f"id={item_id}")
