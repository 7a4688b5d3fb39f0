"""HTTP transport for the region service and the geocoding provider."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pylivemap._constants import USER_AGENT
from pylivemap._redact import redact_for_log
from pylivemap.exceptions import LiveMapAuthenticationError, LiveMapTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(
        self,
        endpoint: str,
        *,
        params: Mapping[str, Any] | None = None,
        bearer: str | None = None,
    ) -> Any: ...

    async def delete(self, endpoint: str, *, bearer: str | None = None) -> None: ...


class HttpTransport:
    """JSON-over-HTTP transport bound to one base URL."""

    def __init__(
        self,
        base_url: str,
        http_session: aiohttp.ClientSession,
        *,
        timeout: float = 10.0,
        user_agent: str = USER_AGENT,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._user_agent = user_agent

    def _headers(self, bearer: str | None) -> dict[str, str]:
        headers = {"accept": "application/json", "user-agent": self._user_agent}
        if bearer:
            headers["authorization"] = f"Bearer {bearer}"
        return headers

    def _url(self, endpoint: str) -> str:
        return f"{self._base_url}{endpoint}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Mapping[str, Any] | None,
        bearer: str | None,
    ) -> str:
        url = self._url(endpoint)
        headers = self._headers(bearer)
        _logger.debug("%s %s params=%s headers=%s", method, url, params, redact_for_log(headers))

        try:
            async with self._http.request(
                method,
                url,
                params=dict(params) if params else None,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if resp.status in (401, 403):
                    raise LiveMapAuthenticationError(
                        f"HTTP {resp.status} from {endpoint}: credential missing or refused",
                        endpoint=endpoint,
                    )
                if not 200 <= resp.status < 300:
                    raise LiveMapTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
                return text
        except (LiveMapTransportError, LiveMapAuthenticationError):
            raise
        except (aiohttp.ClientError, TimeoutError, UnicodeDecodeError) as exc:
            raise LiveMapTransportError(
                f"Request to {endpoint or url} failed: {exc!r}",
                endpoint=endpoint,
            ) from exc

    async def get_json(
        self,
        endpoint: str,
        *,
        params: Mapping[str, Any] | None = None,
        bearer: str | None = None,
    ) -> Any:
        text = await self._request("GET", endpoint, params=params, bearer=bearer)
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise LiveMapTransportError(
                f"Invalid JSON from {endpoint or self._base_url}: {text[:200]}",
                endpoint=endpoint,
            ) from exc

    async def delete(self, endpoint: str, *, bearer: str | None = None) -> None:
        await self._request("DELETE", endpoint, params=None, bearer=bearer)
