"""HTTP client adapter shared by market-data clients and notification gateways."""
import asyncio
from typing import Optional, Dict, Any, Tuple
import aiohttp
from aiohttp import ClientTimeout, ClientError, ClientResponseError

from ...core.logging.structured_logger import get_logger


class HTTPAdapter:
    """Async HTTP client with retry on connection errors and 5xx responses."""

    def __init__(self, base_url: str = "", timeout: float = 30,
                 max_retries: int = 3, headers: Optional[Dict[str, str]] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = ClientTimeout(total=timeout)
        self.max_retries = max(1, max_retries)
        self.headers = headers or {}
        self.session: Optional[aiohttp.ClientSession] = None
        self.logger = get_logger(__name__)

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session is created."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers=self.headers
            )
        return self.session

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}{endpoint}"

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None,
                  headers: Optional[Dict[str, str]] = None) -> Any:
        """GET returning the decoded body; raises on non-2xx."""
        status, body = await self._request('GET', endpoint, params=params, headers=headers)
        return body

    async def post(self, endpoint: str, json: Optional[Any] = None,
                   data: Optional[Any] = None,
                   headers: Optional[Dict[str, str]] = None) -> Tuple[int, Any]:
        """POST returning ``(status, body)``; raises on non-2xx."""
        return await self._request('POST', endpoint, json=json, data=data, headers=headers)

    async def _request(self, method: str, endpoint: str,
                       params: Optional[Dict[str, Any]] = None,
                       data: Optional[Any] = None,
                       json: Optional[Any] = None,
                       headers: Optional[Dict[str, str]] = None) -> Tuple[int, Any]:
        """Execute HTTP request with exponential backoff retry."""
        session = await self._ensure_session()
        url = self._url(endpoint)

        merged_headers = {**self.headers}
        if headers:
            merged_headers.update(headers)

        for attempt in range(self.max_retries):
            try:
                async with session.request(
                    method=method,
                    url=url,
                    params=params,
                    data=data,
                    json=json,
                    headers=merged_headers
                ) as response:
                    response.raise_for_status()

                    content_type = response.headers.get('Content-Type', '')
                    if 'application/json' in content_type:
                        return response.status, await response.json()
                    return response.status, await response.text()

            except ClientError as e:
                # Client errors other than 5xx are not worth repeating
                if isinstance(e, ClientResponseError) and e.status < 500:
                    raise

                retry_delay = 2 ** attempt
                if attempt < self.max_retries - 1:
                    self.logger.warning("HTTP request failed, retrying", {
                        "method": method,
                        "url": url,
                        "attempt": attempt + 1,
                        "max_retries": self.max_retries,
                        "retry_delay": retry_delay,
                    }, error=e)
                    await asyncio.sleep(retry_delay)
                else:
                    self.logger.error(f"HTTP request failed after {self.max_retries} attempts", {
                        "method": method,
                        "url": url
                    }, error=e)
                    raise

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()
            self.logger.debug("HTTP session closed")
