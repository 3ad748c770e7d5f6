from __future__ import annotations

from typing import Optional, TextIO

import httpx

from cpapi.client.api_client import ApiClient
from cpapi.client.types import ClientConfig
from cpapi.models.settings import ClientSettings


def build_client_config(settings: ClientSettings) -> ClientConfig:
    # This wiring module is the only layer allowed to read Pydantic settings.
    return ClientConfig(
        host=settings.host,
        timeout_seconds=float(settings.timeout),
        insecure=settings.insecure,
        verbose=settings.verbose,
        debug=settings.debug,
        access_token=settings.access_token,
        token_type=settings.token_type,
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        username=settings.username,
        password=settings.password,
    )


def build_api_client(
    settings: ClientSettings,
    *,
    client: Optional[httpx.Client] = None,
    trace_stream: Optional[TextIO] = None,
) -> ApiClient:
    return ApiClient(build_client_config(settings), client=client, trace_stream=trace_stream)
