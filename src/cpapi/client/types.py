from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Literal, Mapping, Optional, Union
from urllib.parse import urlencode


HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PATCH", "PUT", "DELETE")


@dataclass
class ClientConfig:
    """Connection settings and OAuth2 credentials, owned by the caller.

    Authorization requires ONE of:
      - access_token (token_type defaults to Bearer)
      - client_id, client_secret (grant_type=client_credentials)
      - client_id, username, password (grant_type=password, public client)
      - client_id, client_secret, username, password (grant_type=password)
    """

    host: str = ""
    timeout_seconds: float = 60.0
    insecure: bool = False
    verbose: bool = False
    debug: bool = False

    access_token: str = ""
    token_type: str = "Bearer"
    client_id: str = ""
    client_secret: str = ""
    username: str = ""
    password: str = ""


@dataclass
class TokenState:
    access_token: str = ""
    token_type: str = ""
    expires_at: Optional[datetime] = None  # recorded only; never checked before reuse

    @property
    def present(self) -> bool:
        return bool(self.token_type) and bool(self.access_token)

    def header_value(self) -> str:
        return f"{self.token_type} {self.access_token}"


@dataclass(frozen=True)
class PasswordGrant:
    client_id: str
    username: str
    password: str
    client_secret: str = ""  # empty for a public client

    grant_type: Literal["password"] = "password"

    def to_body(self) -> Dict[str, str]:
        body = {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "username": self.username,
            "password": self.password,
        }
        if self.client_secret:
            body["client_secret"] = self.client_secret
        return body


@dataclass(frozen=True)
class ClientCredentialsGrant:
    client_id: str
    client_secret: str

    grant_type: Literal["client_credentials"] = "client_credentials"

    def to_body(self) -> Dict[str, str]:
        return {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }


Grant = Union[PasswordGrant, ClientCredentialsGrant]


@dataclass(frozen=True)
class RequestDescriptor:
    method: str
    uri: str
    query_params: Optional[Mapping[str, Any]] = None
    body: Any = None
    authorize: bool = True

    @property
    def target(self) -> str:
        if not self.query_params:
            return self.uri
        return f"{self.uri}?{urlencode(self.query_params, doseq=True)}"


@dataclass(frozen=True)
class ErrorDetail:
    """Diagnostic snapshot of a failed call: what was sent and what came back."""

    api_host: str
    api_path: str
    request: Dict[str, Any] = field(default_factory=dict)
    response: Dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> Optional[int]:
        return self.response.get("status")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "api_host": self.api_host,
            "api_path": self.api_path,
            "request": dict(self.request),
            "response": dict(self.response),
        }
