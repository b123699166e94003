"""
远程资产存储客户端：通过 REST 接口查询和更新资产。
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from asset_viewer.models import Asset, AssetQuery, StoreResponse

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Transport level failure talking to the asset store."""


class AssetStoreClient:
    """
    Asset REST API client.

    ``POST {base}/asset/query`` returns a list of assets,
    ``PUT {base}/asset/{id}`` returns 204 when the update was accepted.
    """

    def __init__(self, base_url: str, timeout: float = 30.0, token: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token = token
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout,
                                 headers=self._headers(), transport=self._transport)

    async def query_assets(self, query: AssetQuery) -> StoreResponse:
        body = query.model_dump(by_alias=True, exclude_none=True)
        try:
            async with self._client() as client:
                response = await client.post("/asset/query", json=body)
        except httpx.HTTPError as e:
            raise StoreError(f"Asset query failed: {e}") from e

        if response.status_code != 200:
            logger.warning(f"资产查询返回状态 {response.status_code}")
            return StoreResponse(status=response.status_code)

        try:
            data = [Asset.model_validate(item) for item in response.json()]
        except (ValueError, TypeError, ValidationError) as e:
            raise StoreError(f"Malformed asset query response: {e}") from e
        return StoreResponse(status=response.status_code, data=data)

    async def update_asset(self, asset_id: str, asset: Asset) -> int:
        body = asset.model_dump(mode="json", by_alias=True)
        try:
            async with self._client() as client:
                response = await client.put(f"/asset/{asset_id}", json=body)
        except httpx.HTTPError as e:
            raise StoreError(f"Asset update failed: {e}") from e
        logger.info(f"[{asset_id}] 资产更新返回状态 {response.status_code}")
        return response.status_code
