"""HTTP client used by the api_call and webhook runtimes and the script ``fetch`` capability."""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp

from skillbox.plugins.errors import PluginRuntimeError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


@dataclass
class FetchResponse:
    """Fully read HTTP response handed to plugin scripts."""

    status: int
    url: str
    body: str
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body

    def json(self) -> Any:
        return json.loads(self.body)


class PluginHttpClient:
    """Thin aiohttp wrapper with per-request timeouts.

    Every request opens its own session, so the client holds no connection
    state and can be shared by concurrent executions.
    """

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT):
        self.default_timeout = default_timeout

    def _timeout(self, timeout: Optional[float]) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=timeout or self.default_timeout)

    @staticmethod
    def _decode(body: str) -> Any:
        """Parse a response body: None when empty, JSON when possible, raw text otherwise."""
        if not body or not body.strip():
            return None
        try:
            return json.loads(body)
        except ValueError:
            return body

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        json_body: Any = None,
        data: Any = None,
        timeout: Optional[float] = None,
    ) -> FetchResponse:
        """Send a request and read the whole body. Does not raise on HTTP error status."""
        try:
            async with aiohttp.ClientSession(timeout=self._timeout(timeout)) as session:
                async with session.request(
                    method.upper(), url, headers=headers, params=params, json=json_body, data=data
                ) as response:
                    body = await response.text()
                    return FetchResponse(
                        status=response.status,
                        url=str(response.url),
                        body=body,
                        headers=dict(response.headers),
                    )
        except asyncio.TimeoutError as e:
            raise PluginRuntimeError(f"Request to {url} timed out after {timeout or self.default_timeout}s") from e
        except aiohttp.ClientError as e:
            raise PluginRuntimeError(f"Request to {url} failed: {e}") from e

    async def _send(self, method: str, url: str, **kwargs) -> Any:
        response = await self.request(method, url, **kwargs)
        if not response.ok:
            logger.error(f"HTTP {response.status} from {url}: {response.body[:500]}")
            raise PluginRuntimeError(f"Request failed with status code {response.status}")
        return self._decode(response.body)

    async def post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """POST a JSON payload and return the decoded response body."""
        return await self._send("POST", url, headers=headers, json_body=payload, timeout=timeout)

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """GET with query parameters and return the decoded response body."""
        return await self._send("GET", url, headers=headers, params=params, timeout=timeout)
