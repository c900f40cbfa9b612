from __future__ import annotations


class SigningError(Exception):
    kind = "signing_error"
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(SigningError):
    kind = "validation_error"
    status_code = 400


class NotFoundError(SigningError):
    kind = "not_found"
    status_code = 404


class TerminalStateError(SigningError):
    kind = "terminal_state"
    status_code = 409


class ExpiredError(SigningError):
    kind = "expired"
    status_code = 410


class AlreadySignedError(SigningError):
    kind = "already_signed"
    status_code = 409


class IncompleteFieldsError(SigningError):
    kind = "incomplete_fields"
    status_code = 422

    def __init__(self, missing_fields, message: str = "Missing required signature fields (blank values count as missing)") -> None:
        super().__init__(message)
        self.missing_fields = sorted(missing_fields)


class ConflictError(SigningError):
    """Raised when a session record changed underneath a writer."""

    kind = "conflict"
    status_code = 409


STATUS_CODES = {
    cls.kind: cls.status_code
    for cls in (
        ValidationError,
        NotFoundError,
        TerminalStateError,
        ExpiredError,
        AlreadySignedError,
        IncompleteFieldsError,
        ConflictError,
    )
}
