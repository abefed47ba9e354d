import logging
from typing import Any

import httpx

from hanzi_session.domain.constants import HEALTH_TIMEOUT, REQUEST_TIMEOUT
from hanzi_session.domain.errors import ServiceCallError, ServiceTimeoutError


class HttpServiceClient:
    """Shared plumbing for the JSON-over-HTTP collaborator adapters."""

    name = "service"

    def __init__(
        self,
        base_url: str,
        timeout: float = REQUEST_TIMEOUT,
        health_timeout: float = HEALTH_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.logger = logging.getLogger(self.__class__.__module__)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.health_timeout = health_timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def health(self) -> bool:
        """Probe ``GET /health``. Never raises."""
        try:
            resp = await self._get_client().get(
                self._url("/health"),
                timeout=self.health_timeout,
                headers={"Accept": "application/json"},
            )
            healthy = self._is_healthy(resp)
            if not healthy:
                self.logger.warning(
                    f"{self.name} health check failed with status {resp.status_code}"
                )
            return healthy
        except httpx.TimeoutException:
            self.logger.warning(f"{self.name} health check timed out")
            return False
        except Exception as e:
            self.logger.warning(f"{self.name} health check failed: {e}")
            return False

    def _is_healthy(self, resp: httpx.Response) -> bool:
        if not resp.is_success:
            return False
        try:
            data = resp.json()
        except ValueError:
            return False
        return isinstance(data, dict) and data.get("status") == "healthy"

    async def _request(
        self, method: str, path: str, timeout: float | None = None, **kwargs: Any
    ) -> httpx.Response:
        try:
            resp = await self._get_client().request(
                method, self._url(path), timeout=timeout or self.timeout, **kwargs
            )
            resp.raise_for_status()
            return resp
        except httpx.TimeoutException as e:
            self.logger.error(f"{self.name} {method} {path} timed out")
            raise ServiceTimeoutError(self.name, f"{method} {path} timed out") from e
        except httpx.HTTPStatusError as e:
            self.logger.error(f"{self.name} {method} {path} failed: {e.response.status_code}")
            raise ServiceCallError(
                self.name, f"HTTP error! status: {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            self.logger.error(f"{self.name} {method} {path} failed: {e}")
            raise ServiceCallError(self.name, str(e)) from e

    async def _json(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        resp = await self._request(method, path, **kwargs)
        try:
            data = resp.json()
        except ValueError as e:
            raise ServiceCallError(self.name, f"{path} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise ServiceCallError(self.name, f"{path} returned an unexpected payload")
        return data

    async def close(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None
