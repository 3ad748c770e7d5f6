from __future__ import annotations

import sys
import threading
from typing import Any, Dict, Mapping, Optional, TextIO
from urllib.parse import urlsplit

import httpx

from cpapi.client.auth import TOKEN_PATH, authorization_header_value
from cpapi.client.trace import format_request, format_response, raw_response_headers
from cpapi.client.types import ClientConfig, ErrorDetail, RequestDescriptor, TokenState
from cpapi.client.url import resolve_url
from cpapi.core.exceptions import ApiConnectionError, ApiError
from cpapi.core.logger import (
    current_request_id,
    enable_transport_tracing,
    get_logger,
    new_request_id,
    push_request_id,
    reset_request_id,
)

logger = get_logger(__name__)


def is_json_response(response: httpx.Response) -> bool:
    media_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def decode_body(response: httpx.Response) -> Any:
    """JSON when the content type says so, raw text otherwise; an empty body is None."""
    if not response.content:
        return None
    if is_json_response(response):
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


class ApiClient:
    """
    API client for calling REST/RPC methods with automatic OAuth2 authorization.

    ``config.host`` MUST be set, plus one of the credential combinations listed
    on ClientConfig. Call get(), post(), patch(), put() or delete() for the
    corresponding verb; the first call obtains a token from ``/oauth`` when
    none was supplied and every later call reuses it.

    To make a call without the Authorization header, use invoke() with
    ``authorize=False``.

    Args:
        config: Connection settings and credentials
        client: Optional httpx.Client to send every request with. TLS
            verification is then the injected client's own setting and
            ``config.insecure`` is not applied; ``timeout_seconds`` still is,
            per request. Without it, each call opens a client with
            ``verify=not config.insecure``.
        trace_stream: Where verbose traffic is written (stderr by default)

    Example:
        >>> client = ApiClient(ClientConfig(host="clearpass.example.com",
        ...                                 client_id="Client1", client_secret="s3cret"))
        >>> client.post("/guest", {"username": "demo", "password": "123456"})
        {'id': 3001, ...}
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        client: Optional[httpx.Client] = None,
        trace_stream: Optional[TextIO] = None,
    ):
        self.config = config
        self.token = TokenState()

        self._client = client
        self._trace_stream = trace_stream
        self._token_lock = threading.Lock()

    def get(self, url: str, query_params: Optional[Mapping[str, Any]] = None) -> Any:
        return self.invoke("GET", url, query_params)

    def post(self, url: str, body: Any = None, query_params: Optional[Mapping[str, Any]] = None) -> Any:
        return self.invoke("POST", url, query_params, body)

    def patch(self, url: str, body: Any = None, query_params: Optional[Mapping[str, Any]] = None) -> Any:
        return self.invoke("PATCH", url, query_params, body)

    def put(self, url: str, body: Any = None, query_params: Optional[Mapping[str, Any]] = None) -> Any:
        return self.invoke("PUT", url, query_params, body)

    def delete(self, url: str, query_params: Optional[Mapping[str, Any]] = None) -> Any:
        return self.invoke("DELETE", url, query_params)

    def invoke(
        self,
        method: str,
        uri: str,
        query_params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        authorize: bool = True,
    ) -> Any:
        """Perform one API call and return the decoded response body.

        Raises:
            ConfigurationError: missing host or credentials (no request is sent)
            ApiConnectionError: no response could be obtained
            ApiError: the response status was 400 or higher
        """
        request = RequestDescriptor(
            method=method.upper(),
            uri=uri,
            query_params=query_params,
            body=body,
            authorize=authorize,
        )

        # The nested /oauth call keeps the request id of the call that triggered it.
        ctx_token = push_request_id(new_request_id()) if current_request_id() == "-" else None
        try:
            return self._dispatch(request)
        finally:
            reset_request_id(ctx_token)

    def authorization_header(self) -> str:
        with self._token_lock:
            header, self.token = authorization_header_value(self.config, self.token, self._request_token)
        return header

    def _request_token(self, grant_body: Dict[str, str]) -> Any:
        return self.invoke("POST", TOKEN_PATH, body=grant_body, authorize=False)

    def _dispatch(self, request: RequestDescriptor) -> Any:
        url = resolve_url(self.config.host, request.target)

        headers: Dict[str, str] = {}
        if request.authorize:
            headers["Authorization"] = self.authorization_header()

        if self.config.debug:
            enable_transport_tracing()

        logger.debug(f"{request.method} {url}")
        response = self._send(request, url, headers)
        logger.debug(f"{request.method} {url} -> {response.status_code}")

        if response.status_code < 400:
            return decode_body(response)

        raise self._api_error(request, url, response)

    def _send(self, request: RequestDescriptor, url: str, headers: Dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return self._exchange(self._client, request, url, headers)

        with httpx.Client(verify=not self.config.insecure, timeout=self.config.timeout_seconds) as client:
            return self._exchange(client, request, url, headers)

    def _exchange(
        self,
        client: httpx.Client,
        request: RequestDescriptor,
        url: str,
        headers: Dict[str, str],
    ) -> httpx.Response:
        kwargs: Dict[str, Any] = {"headers": headers, "timeout": self.config.timeout_seconds}
        if request.body is not None:
            kwargs["json"] = request.body

        http_request = client.build_request(request.method, url, **kwargs)
        if self.config.verbose:
            self._trace(format_request(http_request))

        try:
            response = client.send(http_request)
        except httpx.TransportError as exc:
            message = f"{request.method} {url}: {str(exc) or type(exc).__name__}"
            logger.warning(f"Connection failed: {message}")
            raise ApiConnectionError(message) from exc

        if self.config.verbose:
            self._trace(format_response(response))
        return response

    def _api_error(self, request: RequestDescriptor, url: str, response: httpx.Response) -> ApiError:
        parsed = urlsplit(url)
        parsed_body = decode_body(response) if is_json_response(response) else None
        details = ErrorDetail(
            api_host=parsed.netloc,
            api_path=parsed.path,
            request={
                "method": request.method,
                "url": url,
                "query_params": dict(request.query_params) if request.query_params else request.query_params,
                "body": request.body,
            },
            response={
                "status": response.status_code,
                "raw_headers": raw_response_headers(response),
                "raw_body": response.text,
                "headers": dict(response.headers),
                "body": parsed_body if isinstance(parsed_body, (dict, list)) else None,
            },
        )
        message = f"{request.method} {parsed.path} failed with status {response.status_code}"
        logger.warning(message)
        return ApiError(message, response.status_code, details)

    def _trace(self, text: str) -> None:
        stream = self._trace_stream or sys.stderr
        stream.write(text)
        stream.flush()
