from __future__ import annotations


class ServiceError(Exception):
    def __init__(
        self,
        code: str,
        message: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> None:
        self.code = code
        self.message = message or code
        self.errors = errors
        super().__init__(self.message)


class NotFoundError(ServiceError):
    pass


class ConflictError(ServiceError):
    pass


class CapacityExceededError(ConflictError):
    pass


class ValidationError(ServiceError):
    pass


class DuplicateEmailError(ValidationError):
    pass


class InvalidTimezoneError(ValidationError):
    pass
