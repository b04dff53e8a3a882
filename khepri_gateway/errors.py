"""Error taxonomy and the tool result union."""

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_EVENT_TYPE = "INVALID_EVENT_TYPE"
    INVALID_DATE = "INVALID_DATE"
    INVALID_PRIORITY = "INVALID_PRIORITY"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    NO_CREDENTIALS = "NO_CREDENTIALS"
    RATE_LIMITED = "RATE_LIMITED"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Per-tool catch-alls for unexpected exceptions
    GET_ACTIVITIES_ERROR = "GET_ACTIVITIES_ERROR"
    GET_WELLNESS_ERROR = "GET_WELLNESS_ERROR"
    GET_EVENTS_ERROR = "GET_EVENTS_ERROR"
    CREATE_EVENT_ERROR = "CREATE_EVENT_ERROR"
    UPDATE_EVENT_ERROR = "UPDATE_EVENT_ERROR"
    SEARCH_ERROR = "SEARCH_ERROR"
    GENERATE_PLAN_ERROR = "GENERATE_PLAN_ERROR"


# --- Tool results ---

class ToolSuccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: Literal[True] = True
    data: Any = None


class ToolFailure(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    success: Literal[False] = False
    error: str
    code: ErrorCode

    @classmethod
    def from_exception(cls, exc: Exception, fallback: ErrorCode) -> "ToolFailure":
        """Convert an exception caught at a tool boundary into a failure result.

        Typed upstream errors keep their own code; anything else is wrapped
        with the tool's catch-all code and the exception message (never the
        traceback).
        """
        if isinstance(exc, IntervalsApiError):
            return cls(error=exc.message, code=exc.code)
        return cls(error=str(exc) or fallback.value, code=fallback)


ToolResult = Union[ToolSuccess, ToolFailure]


def failure(error: str, code: ErrorCode = ErrorCode.INVALID_INPUT) -> ToolFailure:
    return ToolFailure(error=error, code=code)


# --- Exceptions ---

class IntervalsApiError(Exception):
    """Failure talking to the Intervals.icu API.

    ``status_code`` is 0 for transport failures. Callers branch on ``code``.
    """

    def __init__(self, message: str, status_code: int, code: ErrorCode):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def __repr__(self) -> str:
        return f"IntervalsApiError(code={self.code.value}, status_code={self.status_code})"


class GatewayError(Exception):
    """Outer-envelope failure returned as a non-200 response."""

    def __init__(self, status_code: int, message: str, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {"error": self.message}
        if self.code:
            payload["code"] = self.code
        return payload
