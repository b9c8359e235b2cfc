"""Thin async wrapper over the paper-trading backend's REST API."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from .config import ClientConfig
from .errors import RequestError
from .models import TradeRequest

log = logging.getLogger(__name__)

INVALID_RESPONSE = "Invalid response from server"


class BackendClient:
    """Blocking `requests` calls pushed off the event loop with `to_thread`.

    Every failure surfaces as `RequestError` carrying the backend's `message`
    when the body has one, else the raw body text, else `fallback`.
    """

    def __init__(self, config: ClientConfig, session: requests.Session | None = None) -> None:
        self._config = config
        self._http = session or requests.Session()
        self._http.headers.setdefault("Accept", "application/json")

    async def initial_data(self) -> dict:
        return await self._call("GET", "/api/initial-data", fallback="Failed to load initial data")

    async def crypto_prices(self) -> list[dict]:
        body = await self._call("GET", "/api/crypto-data", fallback="Failed to load prices")
        prices = body.get("prices")
        return prices if isinstance(prices, list) else []

    async def subscribe(self, symbol: str) -> dict:
        return await self._call(
            "POST", "/api/subscribe", json={"symbol": symbol}, fallback="Failed to subscribe"
        )

    async def trade(self, request: TradeRequest) -> dict:
        return await self._call(
            "POST", "/api/trade", json=request.to_payload(), fallback="Trade failed"
        )

    async def reset(self) -> dict:
        return await self._call("POST", "/api/reset", fallback="Failed to reset account")

    async def asset_pairs(self) -> list[str]:
        """Websocket pair names listed by the public exchange endpoint."""
        body = await asyncio.to_thread(
            self._request, "GET", self._config.pairs_url, None, "Error fetching currency pairs"
        )
        errors = body.get("error") or []
        if errors:
            raise RequestError(str(errors[0]))
        result = body.get("result") or {}
        if not isinstance(result, dict):
            raise RequestError(INVALID_RESPONSE)
        return [
            info["wsname"]
            for info in result.values()
            if isinstance(info, dict) and info.get("wsname")
        ]

    async def _call(
        self, method: str, path: str, *, json: dict | None = None, fallback: str
    ) -> dict:
        url = f"{self._config.backend_url}{path}"
        return await asyncio.to_thread(self._request, method, url, json, fallback)

    def _request(self, method: str, url: str, json: dict | None, fallback: str) -> dict:
        log.debug("%s %s %s", method, url, json or "")
        try:
            response = self._http.request(
                method, url, json=json, timeout=self._config.http_timeout_sec
            )
        except requests.RequestException as exc:
            log.error("%s %s failed: %s", method, url, exc)
            raise RequestError(fallback) from exc
        if not response.ok:
            message = _error_message(response) or fallback
            log.error("%s %s -> HTTP %s: %s", method, url, response.status_code, message)
            raise RequestError(message, status=response.status_code)
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as exc:
            log.error("%s %s returned an unparsable body", method, url)
            raise RequestError(INVALID_RESPONSE, status=response.status_code) from exc
        if not isinstance(body, dict):
            raise RequestError(INVALID_RESPONSE, status=response.status_code)
        return body


def _error_message(response: Any) -> str | None:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        return str(body["message"]) if body.get("message") else None
    text = (response.text or "").strip()
    return text or None
