from core.models import ChurchMembership
from core.services.visibility import Principal, VisibilityPolicy

ROLE_RANKS = {
    "member": 1,
    "volunteer": 2,
    "leader": 3,
    "admin": 4,
    "owner": 5,
}

MANAGE_ROLE = "leader"
DELETE_ROLE = "admin"
OVERRIDE_ROLE = "admin"

VISIBILITY_MIN_ROLES = {
    "members": "member",
    "volunteers": "volunteer",
    "leaders": "leader",
}


def role_rank(role):
    return ROLE_RANKS.get(role, 0)


def manage_rank(rank=role_rank):
    return rank(MANAGE_ROLE)


def delete_rank(rank=role_rank):
    return rank(DELETE_ROLE)


def default_policy(rank=role_rank):
    return VisibilityPolicy(
        level_ranks={level: rank(role) for level, role in VISIBILITY_MIN_ROLES.items()},
        override_rank=rank(OVERRIDE_ROLE),
    )


def _membership_role(user, church):
    membership = ChurchMembership.objects.filter(user=user, church=church, active=True).only("role").first()
    return membership.role if membership else None


def principal_for(user, church, rank=role_rank):
    if user is None or not user.is_authenticated or church is None:
        return None
    if user.is_system_admin:
        return Principal(principal_id=user.pk, rank=rank("owner"), user=user)
    role = _membership_role(user, church)
    if role is None:
        return None
    return Principal(principal_id=user.pk, rank=rank(role), user=user)


def request_principal(request):
    if hasattr(request, "_church_principal"):
        return request._church_principal
    request._church_principal = principal_for(request.user, getattr(request, "active_church", None))
    return request._church_principal


def user_has_rank(user, church, role):
    principal = principal_for(user, church)
    return principal is not None and principal.rank >= role_rank(role)
