"""Result of a single vendor call.

Operations inspect the outcome instead of catching exceptions, so the one
verb fallback Desk365 needs stays visible at the call site.
"""
from dataclasses import dataclass
from typing import Any, Union

from helpdesk_mcp_server.exceptions import SupportError, SupportMethodNotAllowedError


@dataclass(frozen=True)
class Success:
    payload: Any

    def unwrap(self) -> Any:
        return self.payload


@dataclass(frozen=True)
class RecoverableRejection:
    """The vendor refused the HTTP verb (405); another verb may be accepted."""

    error: SupportMethodNotAllowedError

    def unwrap(self) -> Any:
        raise self.error


@dataclass(frozen=True)
class FatalError:
    error: SupportError

    def unwrap(self) -> Any:
        raise self.error


CallOutcome = Union[Success, RecoverableRejection, FatalError]


def classify(error: SupportError) -> CallOutcome:
    if isinstance(error, SupportMethodNotAllowedError):
        return RecoverableRejection(error)
    return FatalError(error)
