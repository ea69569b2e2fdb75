"""Typed error types for push dispatch."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from typing_extensions import TypeAliasType

from recurring_reminders.core.types.result import Result


class PushErrorCode(str, Enum):
    """Why a notification was not accepted by the provider."""

    PROVIDER_REJECTED = 'PROVIDER_REJECTED'  # non-2xx response
    TRANSPORT_FAILED = 'TRANSPORT_FAILED'  # connect/read error or timeout
    CLIENT_CLOSED = 'CLIENT_CLOSED'


@dataclass(slots=True, frozen=True)
class PushError:
    """Error payload carried inside Err(...) for push dispatch.

    Fields:
        code: failure category
        message: human-readable description
        retryable: 5xx / 429 / transport errors; 4xx rejections are not
        status_code: provider HTTP status, None if no response arrived
        body: decoded provider response body (JSON or text) for logging
        exception: the original cause (if any)
    """

    code: PushErrorCode
    message: str
    retryable: bool
    status_code: int | None = None
    body: Any = None
    exception: BaseException | None = None


T = TypeVar('T')

PushResult = TypeAliasType('PushResult', Result[T, PushError], type_params=(T,))
