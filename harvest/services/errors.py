"""
Service-layer exceptions.

Each class carries the HTTP status the routers translate it to, so services
never import FastAPI.
"""


class RegistryError(Exception):
    status_code = 500


class BadRequestError(RegistryError):
    status_code = 400


class AreaExceededError(BadRequestError):
    def __init__(
        self,
        message: str,
        requested: float,
        total: float,
        allocated: float = 0.0,
        remaining: float | None = None,
    ):
        super().__init__(message)
        self.requested = requested
        self.total = total
        self.allocated = allocated
        self.remaining = remaining


class NotFoundError(RegistryError):
    status_code = 404


class UnauthorizedError(RegistryError):
    status_code = 401


class InternalError(RegistryError):
    status_code = 500


class QrCodeExhaustedError(InternalError):
    pass
