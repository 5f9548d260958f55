"""HTTP transport — delivers one JSON batch to the collector."""

import json
import logging
from typing import Optional, Protocol

import httpx

from blackbox_agent.errors import DeliveryError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def send(self, url: str, body: dict) -> None:
        """Deliver *body* to *url*; raise DeliveryError on failure."""

    async def aclose(self) -> None:
        ...


class HttpTransport:
    """POSTs batches with httpx. Any 2xx is success, nothing is retried.

    ``token`` and ``timeout`` are plain attributes so a reconfigured
    logger can update them without replacing the connection pool.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token = token
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def headers(self) -> dict:
        headers = {"content-type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def send(self, url: str, body: dict) -> None:
        content = json.dumps(body, default=str).encode("utf-8")
        try:
            response = await self._get_client().post(
                url, content=content, headers=self.headers(), timeout=self.timeout
            )
        except httpx.HTTPError as exc:
            raise DeliveryError(f"Collector unreachable: {exc}") from exc

        if not response.is_success:
            raise DeliveryError(
                f"Collector rejected batch with status {response.status_code}",
                status=response.status_code,
            )
        logger.debug("Collector accepted batch (%d)", response.status_code)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
