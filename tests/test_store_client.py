import asyncio
import json

import httpx
import pytest

from asset_viewer.events import EventBus
from asset_viewer.group_panel import get_asset_children
from asset_viewer.models import AssetQuery, AssetSelect, ViewerState
from asset_viewer.panels import get_asset_names
from asset_viewer.store_client import AssetStoreClient, StoreError
from asset_viewer.viewer import AssetViewer

from conftest import make_asset


def _client(handler, token=None):
    return AssetStoreClient("http://store/api/master/", token=token, transport=httpx.MockTransport(handler))


def test_query_posts_camel_case_body():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json=[{"id": "a2", "name": "Floor", "parentId": "a1"}])

    query = AssetQuery(ids=["a2"], select=AssetSelect(exclude_path=True))
    response = asyncio.run(_client(handler, token="secret").query_assets(query))

    assert seen["path"] == "/api/master/asset/query"
    assert seen["body"]["ids"] == ["a2"]
    assert seen["body"]["select"]["excludePath"] is True
    assert "parents" not in seen["body"]
    assert seen["auth"] == "Bearer secret"
    assert response.status == 200
    assert response.data[0].parent_id == "a1"


def test_query_error_status_has_no_data():
    response = asyncio.run(_client(lambda request: httpx.Response(403)).query_assets(AssetQuery()))

    assert response.status == 403
    assert response.data is None


def test_update_returns_status():
    seen = {}

    def handler(request: httpx.Request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(204)

    status = asyncio.run(_client(handler).update_asset("a1", make_asset("a1", name="Renamed", created_on=1)))

    assert status == 204
    assert seen["method"] == "PUT"
    assert seen["path"] == "/api/master/asset/a1"
    assert seen["body"]["name"] == "Renamed"
    assert seen["body"]["createdOn"] == 1


def test_transport_failure_raises_store_error():
    def handler(request: httpx.Request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)

    with pytest.raises(StoreError):
        asyncio.run(client.query_assets(AssetQuery()))
    with pytest.raises(StoreError):
        asyncio.run(client.update_asset("a1", make_asset("a1")))


def _html_client():
    return _client(lambda request: httpx.Response(200, text="<html>proxy error</html>"))


def test_malformed_query_body_raises_store_error():
    with pytest.raises(StoreError):
        asyncio.run(_html_client().query_assets(AssetQuery()))

    invalid_items = _client(lambda request: httpx.Response(200, json=[{"name": "no id"}]))
    with pytest.raises(StoreError):
        asyncio.run(invalid_items.query_assets(AssetQuery()))


def test_malformed_body_degrades_at_fetch_boundaries():
    client = _html_client()

    assert asyncio.run(get_asset_children(client, "g1", "urn:openremote:asset:thing")) == []
    assert asyncio.run(get_asset_names(client, ["a1", "a2"])) == ["a1", "a2"]

    viewer = AssetViewer(client, EventBus())
    asyncio.run(viewer.set_asset_id("a1"))
    assert viewer.state == ViewerState.NOT_FOUND
