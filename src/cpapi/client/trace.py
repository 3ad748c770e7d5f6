from __future__ import annotations

import httpx


def _decode(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def raw_request_headers(request: httpx.Request) -> str:
    target = request.url.raw_path.decode("ascii")
    lines = [f"{request.method} {target} HTTP/1.1"]
    lines.extend(f"{name}: {value}" for name, value in request.headers.items())
    return "\n".join(lines)


def raw_response_headers(response: httpx.Response) -> str:
    lines = [f"{response.http_version} {response.status_code} {response.reason_phrase}".rstrip()]
    lines.extend(f"{name}: {value}" for name, value in response.headers.items())
    return "\n".join(lines)


def format_request(request: httpx.Request) -> str:
    return f"{raw_request_headers(request)}\n\n{_decode(request.content)}\n\n"


def format_response(response: httpx.Response) -> str:
    return f"{raw_response_headers(response)}\n\n{response.text}\n\n"
