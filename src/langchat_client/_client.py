from __future__ import annotations

import json
import logging
from typing import Any, Callable

import httpx

from langchat_client._config import HttpConfig, http_debug_enabled
from langchat_client._errors import LangchatTransportError

EVENT_STREAM = "text/event-stream"

EventHooksDict = dict[str, list[Callable[..., Any]]]

logger = logging.getLogger(__name__)


def _parse_error_response(
    status_code: int,
    body_text: str,
    content_type: str,
) -> LangchatTransportError:
    """
    Build a LangchatTransportError from an error response.

    JSON bodies are read as the backend's {"error": ..., "message": ...} envelope.
    Anything else keeps the raw body text as message.
    """
    message = "HTTP error"

    if "application/json" not in content_type.lower():
        if body_text and body_text.strip():
            message = body_text.strip()
        return LangchatTransportError(status_code=status_code, message=message, body=body_text)

    try:
        data = json.loads(body_text) if body_text else {}
    except (json.JSONDecodeError, ValueError):
        if body_text and body_text.strip():
            message = body_text.strip()
        return LangchatTransportError(status_code=status_code, message=message, body=body_text)

    if not isinstance(data, dict):
        return LangchatTransportError(
            status_code=status_code,
            message=str(data) if data else message,
            body=body_text,
        )

    # "error" lleva el texto corto; "message" es un detalle opcional.
    err = data.get("error")
    detail = data.get("message")
    if isinstance(err, str) and err.strip():
        message = err.strip()
        if isinstance(detail, str) and detail.strip():
            message = f"{message}: {detail.strip()}"
    elif isinstance(detail, str) and detail.strip():
        message = detail.strip()

    return LangchatTransportError(status_code=status_code, message=message, body=body_text)


def _log_request(request: httpx.Request) -> None:
    logger.warning("HTTPX REQUEST %s %s", request.method, request.url)
    logger.warning("HTTPX REQUEST headers=%s", dict(request.headers))
    if request.content:
        try:
            logger.warning("HTTPX REQUEST body=%s", request.content.decode("utf-8"))
        except UnicodeDecodeError:
            logger.warning("HTTPX REQUEST body=(binary) len=%s", len(request.content))


def _log_response_head(response: httpx.Response) -> bool:
    """Log status and headers. Returns False when the body must stay unread."""
    req = response.request
    logger.warning("HTTPX RESPONSE %s %s -> %s", req.method, req.url, response.status_code)
    logger.warning("HTTPX RESPONSE headers=%s", dict(response.headers))
    if EVENT_STREAM in response.headers.get("content-type", ""):
        logger.warning("HTTPX RESPONSE body=(event-stream; not auto-logged)")
        return False
    return True


def _log_response_sync(response: httpx.Response) -> None:
    if not _log_response_head(response):
        return
    try:
        response.read()
    except httpx.HTTPError as e:
        logger.warning("HTTPX RESPONSE body=(unreadable) err=%r", e)
        return
    logger.warning("HTTPX RESPONSE body=%s", response.text)


async def _log_request_async(request: httpx.Request) -> None:
    _log_request(request)


async def _log_response_async(response: httpx.Response) -> None:
    if not _log_response_head(response):
        return
    try:
        await response.aread()
    except httpx.HTTPError as e:
        logger.warning("HTTPX RESPONSE body=(unreadable) err=%r", e)
        return
    logger.warning("HTTPX RESPONSE body=%s", response.text)


class LangchatHttpClient:
    """
    Lightweight HTTPX wrapper with:
    - JSON requests
    - Raw byte streaming via httpx.Client.stream / AsyncClient.stream
    - Request/response logging when LANGCHAT_HTTP_DEBUG is set
    """

    def __init__(self, *, config: HttpConfig) -> None:
        self._config = config
        self._debug_http = http_debug_enabled()

        hooks_sync: EventHooksDict = {}
        hooks_async: EventHooksDict = {}
        if self._debug_http:
            hooks_sync = {"request": [_log_request], "response": [_log_response_sync]}
            hooks_async = {"request": [_log_request_async], "response": [_log_response_async]}

        self._client = httpx.Client(timeout=httpx.Timeout(config.timeout_s), event_hooks=hooks_sync)
        self._aclient = httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_s), event_hooks=hooks_async)

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def close(self) -> None:
        self._client.close()

    async def aclose(self) -> None:
        await self._aclient.aclose()

    @staticmethod
    def _headers(*, accept: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if accept:
            headers["Accept"] = accept
        return headers

    @staticmethod
    def raise_for_status(resp: httpx.Response) -> None:
        """Check the status and raise a LangchatTransportError for non-2xx responses."""
        if 200 <= resp.status_code < 300:
            return

        body_text: str | None = None
        try:
            body_text = resp.text
        except Exception:
            body_text = None

        content_type = resp.headers.get("content-type", "") if hasattr(resp, "headers") else ""

        raise _parse_error_response(
            status_code=resp.status_code,
            body_text=body_text or "",
            content_type=content_type,
        )

    def get(self, path: str) -> httpx.Response:
        url = f"{self._config.base_url}{path}"
        resp = self._client.get(url, headers=self._headers())
        self.raise_for_status(resp)
        return resp

    async def aget(self, path: str) -> httpx.Response:
        url = f"{self._config.base_url}{path}"
        resp = await self._aclient.get(url, headers=self._headers())
        self.raise_for_status(resp)
        return resp

    def post_json(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        url = f"{self._config.base_url}{path}"
        resp = self._client.post(url, headers=self._headers(), json=payload)
        self.raise_for_status(resp)
        return resp

    async def apost_json(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        url = f"{self._config.base_url}{path}"
        resp = await self._aclient.post(url, headers=self._headers(), json=payload)
        self.raise_for_status(resp)
        return resp

    def stream_post_json(self, path: str, payload: dict[str, Any]) -> Any:
        """
        Return an httpx stream context manager.

        Usage:
            with client.stream_post_json(...) as r:
                for chunk in r.iter_bytes():
                    ...
        """
        url = f"{self._config.base_url}{path}"
        return self._client.stream("POST", url, headers=self._headers(accept=EVENT_STREAM), json=payload)

    def astream_post_json(self, path: str, payload: dict[str, Any]) -> Any:
        """
        Return an async httpx stream context manager.

        Usage:
            async with client.astream_post_json(...) as r:
                async for chunk in r.aiter_bytes():
                    ...
        """
        url = f"{self._config.base_url}{path}"
        return self._aclient.stream("POST", url, headers=self._headers(accept=EVENT_STREAM), json=payload)
