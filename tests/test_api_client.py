import io
import json
from concurrent.futures import ThreadPoolExecutor
from typing import List
from unittest.mock import MagicMock

import httpx
import pytest

from cpapi.client.api_client import ApiClient
from cpapi.client.types import ClientConfig
from cpapi.core.exceptions import ApiConnectionError, ApiError, ConfigurationError


def _client(handler, **config) -> ApiClient:
    config.setdefault("host", "cp.example.test")
    return ApiClient(ClientConfig(**config), client=httpx.Client(transport=httpx.MockTransport(handler)))


def _oauth_aware_handler(seen: List[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/api/oauth":
            return httpx.Response(200, json={"access_token": "tok", "token_type": "Bearer", "expires_in": 28800})
        return httpx.Response(200, json={"ok": True})

    return handler


def test_invoke_returns_decoded_json_body():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"a": 1})

    api = _client(handler, access_token="t")

    assert api.get("guest", {"x": "1"}) == {"a": 1}
    assert str(seen[0].url) == "https://cp.example.test/api/guest?x=1"
    assert seen[0].method == "GET"
    assert seen[0].headers["Authorization"] == "Bearer t"


def test_invoke_returns_raw_text_for_non_json_response():
    api = _client(lambda request: httpx.Response(200, text="plain"), access_token="t")

    assert api.get("/status") == "plain"


def test_invoke_returns_none_for_empty_body():
    api = _client(lambda request: httpx.Response(204), access_token="t")

    assert api.delete("/guest/3001") is None


def test_invoke_raises_api_error_with_details():
    api = _client(lambda request: httpx.Response(404, json={"detail": "not found"}), access_token="t")

    with pytest.raises(ApiError) as exc_info:
        api.get("/guest/3001", {"expand": "1"})

    err = exc_info.value
    assert err.code == 404
    assert err.message == "GET /api/guest/3001 failed with status 404"
    assert err.details.status == 404
    assert err.details.api_host == "cp.example.test"
    assert err.details.api_path == "/api/guest/3001"
    assert err.details.request["query_params"] == {"expand": "1"}
    assert err.details.response["body"] == {"detail": "not found"}
    assert err.details.response["raw_headers"].startswith("HTTP/1.1 404 Not Found")
    assert "not found" in str(err)


def test_invoke_error_body_is_none_when_not_json():
    api = _client(lambda request: httpx.Response(500, text="<html>oops</html>"), access_token="t")

    with pytest.raises(ApiError) as exc_info:
        api.post("/guest", {"username": "demo"})

    assert exc_info.value.details.response["body"] is None
    assert exc_info.value.details.response["raw_body"] == "<html>oops</html>"
    assert exc_info.value.details.request["body"] == {"username": "demo"}


def test_missing_host_fails_before_transport():
    handler = MagicMock()
    api = _client(handler, host="", access_token="t")

    with pytest.raises(ConfigurationError):
        api.get("/guest")

    handler.assert_not_called()


def test_missing_credentials_fail_before_transport():
    handler = MagicMock()
    api = _client(handler, client_id="C")

    with pytest.raises(ConfigurationError, match="Cannot authenticate"):
        api.get("/guest")

    handler.assert_not_called()


def test_token_is_acquired_once_and_reused():
    seen: List[httpx.Request] = []
    api = _client(_oauth_aware_handler(seen), client_id="C", client_secret="S")

    api.get("/guest")
    api.get("/guest/3001")

    oauth_requests = [r for r in seen if r.url.path == "/api/oauth"]
    assert len(oauth_requests) == 1
    assert json.loads(oauth_requests[0].content) == {
        "grant_type": "client_credentials",
        "client_id": "C",
        "client_secret": "S",
    }
    assert "Authorization" not in oauth_requests[0].headers
    assert [r.headers["Authorization"] for r in seen if r.url.path != "/api/oauth"] == ["Bearer tok", "Bearer tok"]
    assert api.token.access_token == "tok"
    assert api.token.expires_at is not None


def test_password_grant_for_public_client_omits_secret():
    seen: List[httpx.Request] = []
    api = _client(_oauth_aware_handler(seen), client_id="C", username="u", password="p")

    api.get("/guest")

    assert json.loads(seen[0].content) == {"grant_type": "password", "client_id": "C", "username": "u", "password": "p"}


def test_supplied_access_token_skips_oauth():
    seen: List[httpx.Request] = []
    api = _client(_oauth_aware_handler(seen), access_token="pre", client_id="C", client_secret="S")

    api.get("/guest")

    assert [r.url.path for r in seen] == ["/api/guest"]
    assert seen[0].headers["Authorization"] == "Bearer pre"


def test_grant_failure_surfaces_as_api_error_from_oauth():
    api = _client(lambda request: httpx.Response(400, json={"error": "invalid_client"}), client_id="C", client_secret="bad")

    with pytest.raises(ApiError) as exc_info:
        api.get("/guest")

    assert exc_info.value.details.api_path == "/api/oauth"
    assert exc_info.value.code == 400
    assert not api.token.present


def test_concurrent_calls_share_one_token_grant():
    seen: List[httpx.Request] = []
    api = _client(_oauth_aware_handler(seen), client_id="C", client_secret="S")

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda _: api.get("/guest"), range(8)))

    assert results == [{"ok": True}] * 8
    assert len([r for r in seen if r.url.path == "/api/oauth"]) == 1


def test_unauthorized_invoke_sends_no_authorization_header():
    seen: List[httpx.Request] = []
    api = _client(_oauth_aware_handler(seen))

    api.invoke("POST", "/oauth", body={"grant_type": "client_credentials"}, authorize=False)

    assert "Authorization" not in seen[0].headers


def test_body_is_sent_as_json_only_when_given():
    seen: List[httpx.Request] = []
    api = _client(_oauth_aware_handler(seen), access_token="t")

    api.post("/guest", {"username": "demo", "password": "123456"})
    api.post("/guest/3001/reset")

    assert seen[0].headers["Content-Type"] == "application/json"
    assert json.loads(seen[0].content) == {"username": "demo", "password": "123456"}
    assert seen[1].content == b""
    assert "Content-Type" not in seen[1].headers


def test_transport_failure_raises_connection_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    api = _client(handler, access_token="t")

    with pytest.raises(ApiConnectionError, match="connection refused") as exc_info:
        api.get("/guest")

    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


def test_timeout_raises_connection_error_not_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    api = _client(handler, access_token="t")

    with pytest.raises(ApiConnectionError):
        api.get("/guest")


def test_verbose_traces_request_and_response():
    stream = io.StringIO()
    api = ApiClient(
        ClientConfig(host="cp.example.test", access_token="t", verbose=True),
        client=httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(201, json={"id": 3001}))),
        trace_stream=stream,
    )

    assert api.post("/guest", {"username": "demo"}) == {"id": 3001}

    trace = stream.getvalue()
    assert "POST /api/guest HTTP/1.1" in trace
    assert '"username"' in trace
    assert "HTTP/1.1 201 Created" in trace
    assert '"id"' in trace


def test_timeout_reaches_each_request():
    seen: List[httpx.Request] = []
    api = _client(_oauth_aware_handler(seen), access_token="t", timeout_seconds=5.0)

    api.get("/guest")

    assert seen[0].extensions["timeout"] == {"connect": 5.0, "read": 5.0, "write": 5.0, "pool": 5.0}


def test_own_transport_client_applies_insecure_and_timeout(monkeypatch):
    real_client = httpx.Client
    created = []

    def client_factory(**kwargs):
        created.append(kwargs)
        return real_client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))

    monkeypatch.setattr(httpx, "Client", client_factory)
    api = ApiClient(ClientConfig(host="cp.example.test", access_token="t", insecure=True, timeout_seconds=7.5))

    api.get("/guest")
    api.config.insecure = False
    api.get("/guest")

    assert created == [{"verify": False, "timeout": 7.5}, {"verify": True, "timeout": 7.5}]


def test_debug_enables_transport_tracing(monkeypatch):
    tracing = MagicMock()
    monkeypatch.setattr("cpapi.client.api_client.enable_transport_tracing", tracing)

    _client(lambda request: httpx.Response(200, json={}), access_token="t", debug=True).get("/guest")
    _client(lambda request: httpx.Response(200, json={}), access_token="t").get("/guest")

    tracing.assert_called_once_with()
