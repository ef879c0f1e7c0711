"""Bitrix24 REST calls through a portal's inbound webhook URL.

A webhook URL looks like ``https://portal.bitrix24.ru/rest/1/<secret>/``;
methods are appended to it (``.../imopenlines.crm.chat.getLastId``) and
parameters are sent as form fields.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 8000


class BitrixError(Exception):
    """A Bitrix REST call failed or the portal returned an ``error``."""

    def __init__(
        self,
        method: str,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(f"{method}: {message}")
        self.method = method
        self.message = message
        self.code = code
        self.status_code = status_code


class BitrixTimeoutError(BitrixError):
    pass


class BitrixTransportError(BitrixError):
    pass


def encode_params(params: Mapping[str, Any]) -> dict[str, str]:
    """Flatten scalar params into form fields the way Bitrix expects them."""
    fields = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            fields[key] = "Y" if value else "N"
        else:
            fields[key] = str(value)
    return fields


def error_message(data: Any, response: httpx.Response) -> str:
    if isinstance(data, dict):
        if data.get("error_description"):
            return str(data["error_description"])
        if data.get("error"):
            return str(data["error"])
    if response.reason_phrase:
        return response.reason_phrase
    return "Unknown Bitrix error"


class BitrixClient:
    def __init__(
        self,
        webhook_url: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self.webhook_url = webhook_url.rstrip("/")
        self.timeout = timeout_ms / 1000

    def method_url(self, method: str) -> str:
        return f"{self.webhook_url}/{method.lstrip('/')}"

    def call(self, method: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """POST one method call and return its ``result``.

        Raises BitrixTimeoutError when the timeout elapses, BitrixTransportError
        on connection problems and BitrixError for any error response.
        """
        url = self.method_url(method)
        fields = encode_params(params or {})
        logger.debug(f"Calling Bitrix {method}", extra={"meta": {"params": fields}})

        # Per-phase httpx timeouts do not bound a slowly trickling body, so the
        # whole exchange runs under one deadline.
        try:
            r = asyncio.run(asyncio.wait_for(self._post(url, fields), self.timeout))
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise BitrixTimeoutError(
                method, f"timed out after {int(self.timeout * 1000)} ms"
            ) from exc
        except httpx.TransportError as exc:
            raise BitrixTransportError(method, str(exc) or type(exc).__name__) from exc

        try:
            data = r.json()
        except ValueError:
            data = {}

        has_error = isinstance(data, dict) and bool(data.get("error"))
        if not r.is_success or has_error:
            code = str(data["error"]) if has_error else None
            raise BitrixError(
                method, error_message(data, r), code=code, status_code=r.status_code
            )

        return data.get("result") if isinstance(data, dict) else None

    async def _post(self, url: str, fields: dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(
                url, data=fields, headers={"Accept": "application/json"}
            )
