"""pytest fixtures shared by the asset viewer tests."""

from typing import Dict, List, Optional

import pytest

from asset_viewer.config_loader import AssetDescriptor, AttributeDescriptor
from asset_viewer.descriptors import DescriptorRegistry
from asset_viewer.i18n import Translator
from asset_viewer.layout import RenderPass
from asset_viewer.models import (
    GROUP_ASSET_TYPE,
    META_STORE_DATA_POINTS,
    STATUS_NO_CONTENT,
    THING_ASSET_TYPE,
    Asset,
    AssetQuery,
    Attribute,
    StoreResponse,
)
from asset_viewer.store_client import StoreError


def make_attribute(name: str, value=None, history: bool = False, **meta) -> Attribute:
    if history:
        meta[META_STORE_DATA_POINTS] = True
    return Attribute(name=name, value=value, meta=meta)


def make_asset(asset_id: str = "a1", asset_type: str = THING_ASSET_TYPE, name: str = "Asset",
               attributes: Optional[List[Attribute]] = None, **kwargs) -> Asset:
    return Asset(
        id=asset_id,
        name=name,
        type=asset_type,
        attributes={attr.name: attr for attr in attributes or []},
        **kwargs,
    )


class FakeStore:
    """In-memory store with the same async interface as the real stores."""

    def __init__(self, assets: Optional[List[Asset]] = None, update_status: int = STATUS_NO_CONTENT):
        self.assets: Dict[str, Asset] = {a.id: a for a in assets or []}
        self.update_status = update_status
        self.fail_queries = False
        self.fail_updates = False
        self.queries: List[AssetQuery] = []
        self.updates: List[Asset] = []

    async def query_assets(self, query: AssetQuery) -> StoreResponse:
        self.queries.append(query)
        if self.fail_queries:
            raise StoreError("connection refused")
        assets = list(self.assets.values())
        if query.ids is not None:
            assets = [a for a in assets if a.id in query.ids]
        if query.parents is not None:
            assets = [a for a in assets if a.parent_id in query.parents]
        return StoreResponse(status=200, data=[a.model_copy(deep=True) for a in assets])

    async def update_asset(self, asset_id: str, asset: Asset) -> int:
        if self.fail_updates:
            raise StoreError("connection refused")
        self.updates.append(asset.model_copy(deep=True))
        if self.update_status == STATUS_NO_CONTENT:
            self.assets[asset_id] = asset.model_copy(deep=True)
        return self.update_status


class FakeHost:
    """Minimal panel host: what the view controller exposes to panel strategies."""

    def __init__(self, store=None, current_id: Optional[str] = "a1", registry: Optional[DescriptorRegistry] = None):
        self.translate = Translator()
        self.registry = registry or DescriptorRegistry()
        self.store = store or FakeStore()
        self.render_pass = RenderPass()
        self.group_selections = {}
        self.group_panels = {}
        self.current_id = current_id
        self.layout_requests = 0

    def is_current(self, asset_id: str) -> bool:
        return asset_id == self.current_id

    def request_layout(self):
        self.layout_requests += 1


@pytest.fixture
def thing_registry():
    return DescriptorRegistry([
        AssetDescriptor(
            type=THING_ASSET_TYPE,
            attribute_descriptors=[
                AttributeDescriptor(attribute_name="temp", label="Temperature"),
                AttributeDescriptor(attribute_name="status"),
            ],
        ),
    ])


@pytest.fixture
def group_asset():
    return make_asset(
        "g1",
        asset_type=GROUP_ASSET_TYPE,
        name="Group",
        attributes=[make_attribute("childAssetType", THING_ASSET_TYPE)],
    )
