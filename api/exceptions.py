import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.services import errors

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (errors.ValidationError, status.HTTP_400_BAD_REQUEST),
    (errors.AuthorizationError, status.HTTP_403_FORBIDDEN),
    (errors.NotFound, status.HTTP_404_NOT_FOUND),
    (errors.DuplicateError, status.HTTP_409_CONFLICT),
    (errors.OrderMismatch, status.HTTP_409_CONFLICT),
    (errors.PartialInstantiationFailure, status.HTTP_409_CONFLICT),
)


def status_for(exc):
    for error_class, code in STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(exc):
    body = {"error": exc.user_message}
    field = getattr(exc, "field", None)
    if field:
        body["field"] = field
    return body


def service_exception_handler(exc, context):
    if isinstance(exc, errors.ServiceError):
        code = status_for(exc)
        if exc.detail:
            logger.info("%s on %s: %s", type(exc).__name__, context["request"].path, exc.detail)
        return Response(error_body(exc), status=code)
    return exception_handler(exc, context)
