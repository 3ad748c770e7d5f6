from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import ValidationError

from cpapi.client.types import ClientConfig, ClientCredentialsGrant, Grant, PasswordGrant, TokenState
from cpapi.core.exceptions import ApiError, ConfigurationError
from cpapi.core.logger import get_logger
from cpapi.models.token import TokenResponse

logger = get_logger(__name__)

TOKEN_PATH = "/oauth"

TokenRequester = Callable[[Dict[str, str]], Any]


def select_grant(config: ClientConfig) -> Grant:
    if config.client_id and config.username and config.password:
        return PasswordGrant(
            client_id=config.client_id,
            username=config.username,
            password=config.password,
            client_secret=config.client_secret,
        )

    if config.client_id and config.client_secret:
        return ClientCredentialsGrant(client_id=config.client_id, client_secret=config.client_secret)

    raise ConfigurationError(
        "Cannot authenticate: need (client_id, client_secret) or (client_id, username, password)"
    )


def token_from_response(body: Any, now: Optional[datetime] = None) -> TokenState:
    try:
        token = TokenResponse.model_validate(body)
    except ValidationError as exc:
        raise ApiError(f"POST {TOKEN_PATH} returned an unusable token response: {exc.errors()}", 0) from exc

    now = now or datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=token.expires_in) if token.expires_in is not None else None
    return TokenState(access_token=token.access_token, token_type=token.token_type, expires_at=expires_at)


def authorization_header_value(
    config: ClientConfig,
    token: TokenState,
    request_token: TokenRequester,
) -> Tuple[str, TokenState]:
    """Return the ``Authorization`` header value and the (possibly new) token state.

    A present token is reused as-is; its expiry is not consulted. A token
    pre-supplied in the config counts as present. Otherwise the grant chosen by
    select_grant() is posted through ``request_token``, whose errors propagate
    unchanged.
    """
    if token.present:
        return token.header_value(), token

    if config.access_token and config.token_type:
        token = TokenState(access_token=config.access_token, token_type=config.token_type)
        return token.header_value(), token

    grant = select_grant(config)
    logger.info(f"Requesting access token (grant_type={grant.grant_type}, client_id={grant.client_id})")
    token = token_from_response(request_token(grant.to_body()))
    logger.info(f"Obtained {token.token_type} token, expires_at={token.expires_at}")
    return token.header_value(), token
