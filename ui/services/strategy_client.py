"""Strategy client — authenticated REST access to the strategies backend."""

import logging
import os
from typing import Any, Dict, Final, List, Optional

import aiohttp

STUDIO_API_URL: Final[str] = os.environ.get("STUDIO_API_URL", "http://localhost:8000")
STUDIO_API_TOKEN: Final[Optional[str]] = os.environ.get("STUDIO_API_TOKEN") or None
STUDIO_HTTP_TIMEOUT: Final[float] = float(os.environ.get("STUDIO_HTTP_TIMEOUT", "10"))

logger = logging.getLogger(__name__)


class StrategyServiceError(Exception):
    """Raised when the backend rejects or fails a strategy request."""


class StrategyNotFoundError(StrategyServiceError):
    """Raised on 404 for a strategy id."""


def join_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


async def _error_detail(resp: aiohttp.ClientResponse) -> Optional[str]:
    try:
        body = await resp.json(content_type=None)
    except (aiohttp.ContentTypeError, ValueError):
        return None
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return None


class StrategyClient:
    """CRUD for strategies. One aiohttp session per request."""

    def __init__(self, base_url: str = STUDIO_API_URL,
                 token: Optional[str] = STUDIO_API_TOKEN,
                 timeout: float = STUDIO_HTTP_TIMEOUT):
        self.base_url = base_url
        self.token = token
        self.timeout = timeout

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, failure: str,
                       payload: Optional[dict] = None,
                       params: Optional[dict] = None) -> Any:
        url = join_url(self.base_url, path)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(method, url, json=payload, params=params,
                                       headers=self.headers()) as resp:
                if resp.status == 404:
                    raise StrategyNotFoundError("Strategy not found")
                if resp.status >= 400:
                    detail = await _error_detail(resp)
                    logger.warning("%s %s failed: HTTP %s %s", method, url, resp.status, detail or "")
                    raise StrategyServiceError(detail or failure)
                if resp.status == 204:
                    return None
                return await resp.json(content_type=None)

    async def create_strategy(self, payload: dict) -> Dict[str, Any]:
        return await self._request("POST", "strategies", "Failed to create strategy",
                                   payload=payload)

    async def get_strategy(self, strategy_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"strategies/{strategy_id}",
                                   "Failed to fetch strategy")

    async def list_strategies(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"status": status} if status else None
        return await self._request("GET", "strategies", "Failed to list strategies",
                                   params=params)

    async def update_strategy(self, strategy_id: str, payload: dict) -> Dict[str, Any]:
        return await self._request("PUT", f"strategies/{strategy_id}",
                                   "Failed to update strategy", payload=payload)

    async def delete_strategy(self, strategy_id: str) -> None:
        await self._request("DELETE", f"strategies/{strategy_id}",
                            "Failed to delete strategy")
