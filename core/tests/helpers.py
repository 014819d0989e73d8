from datetime import time

from django.contrib.auth import get_user_model

from core.models import Church, ChurchMembership, EventTemplate, Ministry, MinistryRole
from core.services.permissions import principal_for


def make_church(name="Grace Church", slug=None, timezone="UTC"):
    return Church.objects.create(name=name, slug=slug or name.lower().replace(" ", "-"), timezone=timezone)


def make_member(church, email, role="member", password="pass"):
    user = get_user_model().objects.create_user(email=email, full_name=email.split("@")[0].title(), password=password)
    ChurchMembership.objects.create(church=church, user=user, role=role)
    return user


def principal(user, church):
    return principal_for(user, church)


def make_template(church, name="Sunday Service", **extra):
    extra.setdefault("default_start_time", time(9, 0))
    return EventTemplate.objects.create(church=church, name=name, **extra)


def make_ministry(church, name="Worship", roles=()):
    ministry = Ministry.objects.create(church=church, name=name)
    return ministry, [MinistryRole.objects.create(ministry=ministry, name=role) for role in roles]
