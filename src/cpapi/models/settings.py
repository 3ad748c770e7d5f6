from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from pydantic import PositiveFloat
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Options for the command-line client.

    Each field falls back to an environment variable of the same name
    (``host``, ``access_token``, ``client_id``, ...). Values passed to the
    constructor take precedence over the environment.
    """

    model_config = SettingsConfigDict(case_sensitive=True, extra="ignore")

    host: str = ""
    insecure: bool = False
    verbose: bool = False
    debug: bool = False
    timeout: PositiveFloat = 60.0

    access_token: str = ""
    token_type: str = "Bearer"
    client_id: str = ""
    client_secret: str = ""
    username: str = ""
    password: str = ""


def load_settings(overrides: Optional[Mapping[str, Any]] = None) -> ClientSettings:
    """Build settings from the environment, overlaid with explicitly given values.

    ``None`` values are dropped so an option left off the command line does
    not mask its environment variable.
    """
    given: Dict[str, Any] = {k: v for k, v in (overrides or {}).items() if v is not None}
    return ClientSettings(**given)
