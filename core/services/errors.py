"""Errors raised by the template engine services.

Every error carries a ``user_message`` that is safe to show to end users and an
optional ``detail`` with diagnostics meant for logs only.
"""


class ServiceError(Exception):
    default_message = "Something went wrong."

    def __init__(self, user_message=None, detail=None):
        self.user_message = user_message or self.default_message
        self.detail = detail
        super().__init__(self.user_message)


class ValidationError(ServiceError, ValueError):
    default_message = "Invalid data."

    def __init__(self, user_message=None, detail=None, field=None):
        self.field = field
        super().__init__(user_message, detail)


class AuthorizationError(ServiceError):
    default_message = "You do not have permission to perform this action."


class DuplicateError(ServiceError):
    default_message = "Already added."


class OrderMismatch(ServiceError):
    default_message = "The list changed since it was loaded. Refresh and try again."


class NotFound(ServiceError):
    default_message = "Not found."


class TemplateNotFound(NotFound):
    default_message = "Template not found."


class PartialInstantiationFailure(ServiceError):
    default_message = "Some events could not be created."

    def __init__(self, result):
        self.result = result
        error = result.error
        super().__init__(
            f"{result.summary()}. {error.user_message}" if error else result.summary(),
            detail=getattr(error, "detail", None),
        )
