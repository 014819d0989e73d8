from django.http import HttpResponseBadRequest, HttpResponseForbidden
from rest_framework.authentication import BasicAuthentication
from rest_framework.exceptions import AuthenticationFailed

from core.models import Church, ChurchMembership

SESSION_KEY = "active_church_id"


def _church_for(user, church_id):
    if user.is_system_admin:
        return Church.objects.filter(id=church_id).first()
    membership = (
        ChurchMembership.objects.filter(user=user, church_id=church_id, active=True).select_related("church").first()
    )
    return membership.church if membership else None


class ActiveChurchMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.active_church = None
        if request.user.is_authenticated:
            church_id = request.session.get(SESSION_KEY)
            if church_id:
                request.active_church = _church_for(request.user, church_id)
            if request.active_church is None:
                membership = (
                    ChurchMembership.objects.filter(user=request.user, active=True).select_related("church").first()
                )
                if membership:
                    request.active_church = membership.church
                    request.session[SESSION_KEY] = membership.church_id
            if request.active_church is None and request.user.is_system_admin:
                request.active_church = Church.objects.first()
                if request.active_church:
                    request.session[SESSION_KEY] = request.active_church.id
        return self.get_response(request)


class ApiChurchHeaderMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response
        self.basic_auth = BasicAuthentication()

    def __call__(self, request):
        if request.path.startswith("/api/"):
            if not request.user.is_authenticated and request.META.get("HTTP_AUTHORIZATION"):
                try:
                    auth_result = self.basic_auth.authenticate(request)
                except AuthenticationFailed:
                    return HttpResponseForbidden(b"Invalid church.")
                if auth_result:
                    request.user, request.auth = auth_result

            church_id = request.headers.get("X-Church-ID") or request.GET.get("church_id")
            if church_id:
                if not request.user.is_authenticated:
                    return HttpResponseForbidden(b"Invalid church.")
                try:
                    church_id = int(church_id)
                except (TypeError, ValueError):
                    return HttpResponseForbidden(b"Invalid church.")
                church = _church_for(request.user, church_id)
                if church is None:
                    return HttpResponseForbidden(b"Invalid church.")
                request.active_church = church
                # a principal cached for the session church no longer applies
                if hasattr(request, "_church_principal"):
                    del request._church_principal
            if request.active_church is None:
                return HttpResponseBadRequest(b"Provide X-Church-ID or church_id.")

        return self.get_response(request)
