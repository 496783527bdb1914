class LeaseEngineError(Exception):
    """Base class for every error raised by the lease engine."""

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def as_row_error(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class ValidationError(LeaseEngineError):
    pass


class ConflictError(LeaseEngineError):
    pass


class NotFoundError(LeaseEngineError):
    pass


class DispatchError(LeaseEngineError):
    pass


class MissingCredentialsError(DispatchError):
    pass


class TransactionError(LeaseEngineError):
    pass


class LeaseStateError(LeaseEngineError):
    """A lease was asked to do something its current status forbids."""
