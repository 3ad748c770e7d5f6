"""
Custom exception classes for the cpapi client.

Three disjoint failure kinds are raised by the request pipeline:

- ConfigurationError: a precondition failed before any network I/O
- ApiConnectionError: the transport could not obtain a response
- ApiError: a response was obtained with status >= 400
"""

import json
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from cpapi.client.types import ErrorDetail


class CpapiException(Exception):
    """Base exception class for all cpapi exceptions."""

    pass


class ConfigurationError(CpapiException):
    """Raised when the client configuration prevents the API call.

    Always detected locally, before the transport is touched:
    - missing host
    - no usable credentials for an OAuth2 grant
    - invalid HTTP method or malformed command-line parameters
    """

    pass


class ApiConnectionError(CpapiException):
    """Raised when no HTTP response could be obtained (DNS, refused, timeout, TLS).

    The original transport exception is chained as ``__cause__``.
    """

    pass


class ApiError(CpapiException):
    """
    Raised when an API call fails with a 400 or higher status code.

    ``details`` holds a snapshot of the request and response so callers can
    inspect exactly what was sent and received.

    Example:
        >>> try:
        ...     client.get("/guest/3001")
        ... except ApiError as e:
        ...     print(e.code, e.details.response["body"])
    """

    def __init__(self, message: str, code: int, details: Optional["ErrorDetail"] = None):
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details is None:
            return self.message
        return f"{self.message}, details: {json.dumps(self.details.to_dict(), default=str)}"
