"""
External synchronization service used by the scheduled jobs.

The jobs only depend on the ``SyncService`` protocol. ``HttpSyncService`` is
the production adapter: it asks the ERP sync gateway to perform an operation
and returns the counters the gateway reports.
"""

from typing import Any, Dict, Optional, Protocol

import httpx

from ..config import ErpSettings, settings
from ..logger import logger


class SyncServiceError(Exception):
    """Raised when the sync gateway cannot complete an operation."""


class SyncService(Protocol):
    async def import_new_only(self) -> Dict[str, Any]:
        """Import coupons that do not exist locally. Returns created, total_remote."""
        ...

    async def import_products_catalog(self) -> Dict[str, Any]:
        """Import the product catalog. Returns created, updated, errors, total."""
        ...

    async def update_products_stock(self) -> Dict[str, Any]:
        """Update stock and prices. Returns updated, skipped, errors, total."""
        ...


class HttpSyncService:
    """SyncService backed by the ERP sync gateway's HTTP API."""

    IMPORT_NEW_ONLY_PATH = "/coupons/import-new"
    IMPORT_CATALOG_PATH = "/products/import-catalog"
    UPDATE_STOCK_PATH = "/products/update-stock"

    def __init__(
        self,
        erp: Optional[ErpSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.erp = erp or settings.erp
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        auth = None
        if self.erp.username:
            auth = httpx.BasicAuth(self.erp.username, self.erp.password)
        return httpx.AsyncClient(
            base_url=self.erp.base_url,
            timeout=self.erp.timeout,
            auth=auth,
            transport=self._transport,
        )

    async def _post(self, path: str) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.post(path)
        except httpx.TimeoutException as e:
            raise SyncServiceError(f"timeout calling {path}") from e
        except httpx.HTTPError as e:
            raise SyncServiceError(f"request to {path} failed: {e}") from e

        if response.status_code != 200:
            logger.error(
                f"Unexpected sync gateway response {response.status_code} for {path}"
            )
            raise SyncServiceError(
                f"sync gateway returned HTTP {response.status_code} for {path}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SyncServiceError(f"invalid JSON from {path}") from e

        if not isinstance(data, dict):
            raise SyncServiceError(f"unexpected payload from {path}")
        return data

    async def import_new_only(self) -> Dict[str, Any]:
        return await self._post(self.IMPORT_NEW_ONLY_PATH)

    async def import_products_catalog(self) -> Dict[str, Any]:
        return await self._post(self.IMPORT_CATALOG_PATH)

    async def update_products_stock(self) -> Dict[str, Any]:
        return await self._post(self.UPDATE_STOCK_PATH)
