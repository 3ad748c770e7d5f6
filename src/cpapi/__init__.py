"""cpapi.

REST API client for OAuth2-protected HTTP APIs that live under ``/api``.

Public API for applications and the ``cpapi`` command-line tool.
"""

from cpapi.client.api_client import ApiClient
from cpapi.client.types import ClientConfig, ErrorDetail, TokenState
from cpapi.core.exceptions import ApiConnectionError, ApiError, ConfigurationError, CpapiException

__version__ = "0.1.0"

__all__ = [
    "ApiClient",
    "ClientConfig",
    "ErrorDetail",
    "TokenState",
    "CpapiException",
    "ConfigurationError",
    "ApiConnectionError",
    "ApiError",
]
