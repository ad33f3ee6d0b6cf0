"""
Typed failures shared by every service. The API layer maps each kind to
a transport status; services raise the specific subclasses.
"""


class ServiceError(Exception):
    """
    Base class for all failures reported by the service layer.
    """

    status_code: int = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidArgument(ServiceError):
    status_code = 400


class NotFound(ServiceError):
    status_code = 404


class Forbidden(ServiceError):
    status_code = 403


class Conflict(ServiceError):
    status_code = 409


class Internal(ServiceError):
    """
    A store-level failure not attributable to the caller. For multi-step
    operations, `step` names the step that failed so that it can be
    re-run.
    """

    status_code = 500

    def __init__(self, detail: str, step: str | None = None):
        super().__init__(detail)
        self.step = step
