from dataclasses import dataclass

HIDDEN = "hidden"


@dataclass(frozen=True)
class Principal:
    principal_id: int
    rank: int
    user: object = None


class VisibilityPolicy:
    """Rank comparisons for templates and events.

    ``level_ranks`` maps each non-hidden visibility level to the minimum rank
    that may read it. ``override_rank`` is the rank from which hidden items are
    readable without an invitation. Nothing here knows role names.
    """

    def __init__(self, level_ranks, override_rank):
        self.level_ranks = dict(level_ranks)
        self.override_rank = override_rank

    def can_read(self, principal, visibility, invitees=()):
        if principal is None:
            return False
        if principal.rank >= self.override_rank:
            return True
        if visibility == HIDDEN:
            return principal.principal_id in set(invitees)
        minimum = self.level_ranks.get(visibility)
        if minimum is None:
            return False
        return principal.rank >= minimum

    def can_write(self, principal, required_rank):
        return principal is not None and principal.rank >= required_rank

    def can_delete(self, principal, required_rank):
        return principal is not None and principal.rank >= required_rank

    def readable_levels(self, principal):
        if principal is None:
            return []
        return [level for level, minimum in self.level_ranks.items() if principal.rank >= minimum]


def needs_invitees(visibility, invitees):
    return visibility == HIDDEN and not list(invitees)
