from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERNAL: 500,
}

GENERIC_INTERNAL_MESSAGE = "Internal server error"


class AppError(Exception):
    """
    The one domain failure type. Routes never build HTTP errors themselves;
    the handler in app.main renders AppError into a JSON body once.
    """

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def __repr__(self):
        return f"AppError({self.kind.value!r}, {self.message!r})"

    @classmethod
    def validation(cls, message: str) -> "AppError":
        return cls(ErrorKind.VALIDATION, message)

    @classmethod
    def conflict(cls, message: str) -> "AppError":
        return cls(ErrorKind.CONFLICT, message)

    @classmethod
    def unauthorized(cls, message: str = "Could not validate credentials") -> "AppError":
        return cls(ErrorKind.UNAUTHORIZED, message)

    @classmethod
    def not_found(cls, message: str) -> "AppError":
        return cls(ErrorKind.NOT_FOUND, message)

    @classmethod
    def internal(cls, message: str = GENERIC_INTERNAL_MESSAGE) -> "AppError":
        return cls(ErrorKind.INTERNAL, message)
