# util/enums.py
from enum import Enum
from typing import NamedTuple
from fastapi import status


class Color(str, Enum):
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    BOLD = "\033[1m"

    def __str__(self):
        return self.value


class Environment(str, Enum):
    DEV = "dev"
    PROD = "prod"


class SearchMode(str, Enum):
    LEXICAL = "lexical"
    VECTOR = "vector"


class ErrorInfo(NamedTuple):
    message: str
    http_status: int


class ErrorMessage(Enum):
    CASE_NOT_FOUND = ErrorInfo("Unknown case", status.HTTP_404_NOT_FOUND)
    CASE_BUSY = ErrorInfo(
        "A classification is already running for this case", status.HTTP_409_CONFLICT
    )
    CASE_NOT_VALIDATABLE = ErrorInfo(
        "Case has no actionable result to validate", status.HTTP_409_CONFLICT
    )
    INTERNAL_ERROR = ErrorInfo("Internal Error", status.HTTP_502_BAD_GATEWAY)
