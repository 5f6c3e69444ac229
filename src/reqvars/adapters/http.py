"""HTTP transport adapter.

Takes a fully-resolved RequestDefinition, performs the exchange with httpx
and hands back a ResponseData whose body uses the typed envelope::

    {"type": "json", "data": {...}, "size": 123, "contentType": "application/json"}
    {"type": "text", "data": "...",  "size": 5,   "contentType": "text/plain"}
    {"type": "binary", "size": 2048, "contentType": "image/png"}
"""

from __future__ import annotations

import json
import logging
import re
import time
from base64 import b64encode
from typing import Any, Protocol, runtime_checkable

import httpx

from reqvars.errors import ErrorContext, TransportError
from reqvars.models import (
    ApiType,
    AuthType,
    BodyType,
    KeyValuePair,
    RequestDefinition,
    ResponseData,
)

logger = logging.getLogger(__name__)

BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

_OPERATION_NAME = re.compile(r"^\s*(?:query|mutation|subscription)\s+(\w+)", re.MULTILINE)


@runtime_checkable
class Transport(Protocol):
    """Anything that can turn a resolved request into a response."""

    def send(self, request: RequestDefinition) -> ResponseData:
        ...


def _enabled(pairs: tuple[KeyValuePair, ...]) -> list[tuple[str, str]]:
    return [(pair.key, pair.value) for pair in pairs if pair.enabled and pair.key]


def extract_operation_name(query: str) -> str | None:
    match = _OPERATION_NAME.search(query)
    return match.group(1) if match else None


def graphql_payload(request: RequestDefinition) -> dict[str, Any]:
    """``{"query", "variables", "operationName"}`` for a GraphQL request."""
    variables: Any = {}
    if request.graphql_variables.strip():
        try:
            variables = json.loads(request.graphql_variables)
        except json.JSONDecodeError as e:
            logger.warning(f"GraphQL variables are not valid JSON, sending {{}}: {e}")
    payload: dict[str, Any] = {"query": request.body, "variables": variables}
    operation = extract_operation_name(request.body)
    if operation:
        payload["operationName"] = operation
    return payload


def decode_body(response: httpx.Response) -> dict[str, Any]:
    """Wrap the response body in the typed envelope."""
    content_type = response.headers.get("content-type", "")
    raw = response.content
    if "json" in content_type:
        try:
            return {
                "type": "json",
                "data": response.json(),
                "size": len(raw),
                "contentType": content_type,
            }
        except ValueError:
            pass
    if not content_type or content_type.startswith("text/") or "json" in content_type or "xml" in content_type:
        return {"type": "text", "data": response.text, "size": len(raw), "contentType": content_type}
    return {"type": "binary", "size": len(raw), "contentType": content_type}


class HttpxTransport:
    """Sends resolved requests with an ``httpx.Client``.

    Example:
        >>> with HttpxTransport(timeout=10.0) as transport:
        ...     response = transport.send(RequestDefinition(url="https://example.com/health"))
        >>> response.status
        200
    """

    def __init__(
        self,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
        verify: bool = True,
    ) -> None:
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, verify=verify)

    def build_request(self, request: RequestDefinition) -> httpx.Request:
        """Translate a resolved RequestDefinition into an httpx.Request."""
        method = request.method.upper()
        params = _enabled(request.params)
        headers = httpx.Headers(_enabled(request.headers))
        auth = request.auth

        if auth.type is AuthType.BASIC and auth.basic is not None:
            credentials = f"{auth.basic.username}:{auth.basic.password}".encode()
            headers["Authorization"] = f"Basic {b64encode(credentials).decode('ascii')}"
        elif auth.type is AuthType.BEARER and auth.bearer is not None and auth.bearer.token:
            headers["Authorization"] = f"Bearer {auth.bearer.token}"
        elif auth.type is AuthType.API_KEY and auth.api_key is not None and auth.api_key.key:
            if auth.api_key.location == "query":
                params.append((auth.api_key.key, auth.api_key.value))
            else:
                headers[auth.api_key.key] = auth.api_key.value

        kwargs: dict[str, Any] = {}
        is_graphql = request.api_type is ApiType.GRAPHQL or request.body_type is BodyType.GRAPHQL
        if method in BODY_METHODS:
            if is_graphql and request.body:
                kwargs["content"] = json.dumps(graphql_payload(request))
                headers.setdefault("Content-Type", "application/json")
            elif request.body_type is BodyType.FORM_DATA:
                fields = _enabled(request.body_pairs)
                if fields:
                    kwargs["files"] = [(key, (None, value)) for key, value in fields]
            elif request.body_type is BodyType.URLENCODED:
                fields = _enabled(request.body_pairs)
                if fields:
                    data: dict[str, list[str]] = {}
                    for key, value in fields:
                        data.setdefault(key, []).append(value)
                    kwargs["data"] = data
                elif request.body:
                    kwargs["content"] = request.body
                    headers.setdefault("Content-Type", "application/x-www-form-urlencoded")
            elif request.body:
                kwargs["content"] = request.body
                content_type = "application/json" if request.body_type is BodyType.JSON else "text/plain"
                headers.setdefault("Content-Type", content_type)

        # Merged into the URL so a query string already in it is kept.
        url = httpx.URL(request.url)
        if params:
            url = url.copy_merge_params(params)
        return self._client.build_request(method, url, headers=headers, **kwargs)

    def send(self, request: RequestDefinition) -> ResponseData:
        """Perform the exchange.

        Raises:
            TransportError: If no response could be obtained (bad URL,
                connection failure, timeout).
        """
        try:
            http_request = self.build_request(request)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol, ValueError) as e:
            raise TransportError(
                f"Cannot build request for {request.url!r}: {e}",
                context=ErrorContext(request={"method": request.method, "url": request.url}),
                cause=e,
            ) from e

        start = time.perf_counter()
        try:
            resp = self._client.send(http_request)
        except httpx.HTTPError as e:
            raise TransportError(
                f"{type(e).__name__}: {e}",
                context=ErrorContext(request={"method": request.method, "url": str(http_request.url)}),
                cause=e,
            ) from e
        duration_ms = (time.perf_counter() - start) * 1000

        logger.debug(f"{request.method} {http_request.url} -> {resp.status_code} ({duration_ms:.1f}ms)")
        return ResponseData(
            status=resp.status_code,
            headers=dict(resp.headers),
            data=decode_body(resp),
            duration=duration_ms,
            status_text=resp.reason_phrase,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpxTransport:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
