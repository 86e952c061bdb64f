# util/errors.py
from fastapi import HTTPException, status

from util.enums import ErrorMessage


class AppError(HTTPException):
    # Flow: raise AppError to short-circuit with a typed status & message.
    def __init__(
        self, message: str, http_status: int = status.HTTP_400_BAD_REQUEST
    ) -> None:
        super().__init__(status_code=http_status, detail=message)

    @classmethod
    def of(cls, error: ErrorMessage) -> "AppError":
        return cls(error.value.message, error.value.http_status)


class ClassifierError(Exception):
    """Base for failures of the model boundary. Always fatal for the attempt."""

    kind = "classifier"


class TransportError(ClassifierError):
    # network failure, timeout or non-2xx answer
    kind = "transport"


class QuotaError(ClassifierError):
    # upstream throttled us (HTTP 429); never retried in-process
    kind = "quota"


class ParseError(ClassifierError):
    # model answered but not with the JSON we asked for
    kind = "parse"


class CaseNotFoundError(LookupError):
    pass


class CaseTransitionError(Exception):
    # requested case status change is not allowed from the current state
    pass
