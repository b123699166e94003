"""
本地资产存储：基于 TinyDB 的持久化层。
实现与远程 REST 客户端相同的查询 / 更新接口，并在数据变更时向事件总线发布事件。
"""

import logging
import os
import time
from pathlib import Path
from typing import Any, List, Optional

from tinydb import Query, TinyDB

from asset_viewer.events import ASSET_EVENT, ATTRIBUTE_EVENT, EventBus
from asset_viewer.models import (
    STATUS_NO_CONTENT,
    Asset,
    AssetEvent,
    AssetQuery,
    Attribute,
    AttributeEvent,
    StoreResponse,
)

logger = logging.getLogger(__name__)

_DATA_DIR = Path(os.getenv("ASSET_VIEWER_ROOT", ".")) / "data"


class LocalAssetStore:
    """TinyDB 资产表操作封装。"""

    def __init__(self, db_path: str | Path | None = None, event_bus: Optional[EventBus] = None):
        if db_path is None:
            db_path = _DATA_DIR / "assets.json"
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db = TinyDB(str(db_path), indent=2, ensure_ascii=False)
        self.assets_table = self.db.table("assets")
        self._bus = event_bus
        logger.info(f"TinyDB 资产库已打开: {db_path}")

    # ── 写入 ──────────────────────────────────────────

    def upsert(self, asset: Asset):
        """更新或插入资产（按 id 去重）。"""
        record = asset.model_dump(by_alias=True, exclude={"path"})
        AssetDoc = Query()
        self.assets_table.upsert(record, AssetDoc.id == asset.id)
        logger.debug(f"[{asset.id}] 资产已保存")

    def delete(self, asset_id: str) -> bool:
        AssetDoc = Query()
        removed = self.assets_table.remove(AssetDoc.id == asset_id)
        return len(removed) > 0

    def set_attribute_value(self, asset_id: str, attribute_name: str, value: Any,
                            timestamp: Optional[int] = None) -> bool:
        """写入属性值并发布属性事件。属性不存在时自动创建。"""
        asset = self.get(asset_id)
        if asset is None:
            return False
        timestamp = timestamp if timestamp is not None else int(time.time() * 1000)
        attribute = asset.attributes.get(attribute_name) or Attribute(name=attribute_name)
        attribute.value = value
        attribute.timestamp = timestamp
        asset.attributes[attribute_name] = attribute
        self.upsert(asset)
        self._publish(ATTRIBUTE_EVENT, AttributeEvent(
            asset_id=asset_id, attribute_name=attribute_name, value=value, timestamp=timestamp))
        return True

    def delete_attribute(self, asset_id: str, attribute_name: str) -> bool:
        asset = self.get(asset_id)
        if asset is None or attribute_name not in asset.attributes:
            return False
        del asset.attributes[attribute_name]
        self.upsert(asset)
        self._publish(ATTRIBUTE_EVENT, AttributeEvent(
            asset_id=asset_id, attribute_name=attribute_name, deleted=True))
        return True

    # ── 查询 ──────────────────────────────────────────

    def get(self, asset_id: str) -> Optional[Asset]:
        AssetDoc = Query()
        results = self.assets_table.search(AssetDoc.id == asset_id)
        if not results:
            return None
        asset = Asset.model_validate(results[0])
        asset.path = self._path_of(asset)
        return asset

    def all(self) -> List[Asset]:
        assets = [Asset.model_validate(doc) for doc in self.assets_table.all()]
        for asset in assets:
            asset.path = self._path_of(asset)
        return assets

    def _path_of(self, asset: Asset) -> List[str]:
        """自身 id 在前，其后依次为父级、祖父级……"""
        path = [asset.id]
        parent_id = asset.parent_id
        AssetDoc = Query()
        while parent_id and parent_id not in path:
            path.append(parent_id)
            parents = self.assets_table.search(AssetDoc.id == parent_id)
            parent_id = parents[0].get("parentId") if parents else None
        return path

    # ── 资产接口（与远程客户端一致） ──────────────────

    async def query_assets(self, query: AssetQuery) -> StoreResponse:
        assets = self.all()
        if query.ids is not None:
            assets = [a for a in assets if a.id in query.ids]
        if query.parents is not None:
            assets = [a for a in assets if a.parent_id in query.parents]
        if query.types is not None:
            assets = [a for a in assets if a.type in query.types]

        select = query.select
        for asset in assets:
            if select.exclude_path:
                asset.path = None
            if select.exclude_parent_info:
                asset.parent_id = None
            if select.exclude_attributes:
                asset.attributes = {}
        return StoreResponse(status=200, data=assets)

    async def update_asset(self, asset_id: str, asset: Asset) -> int:
        """保存整个资产（后写覆盖），成功返回 204。"""
        if asset.id != asset_id:
            logger.warning(f"[{asset_id}] 资产 id 不匹配: {asset.id}")
            return 400
        if self.get(asset_id) is None:
            return 404
        self.upsert(asset)
        self._publish(ASSET_EVENT, AssetEvent(asset_id=asset_id, asset=self.get(asset_id)))
        return STATUS_NO_CONTENT

    def _publish(self, topic: str, event: Any):
        if self._bus is not None:
            self._bus.publish(topic, event)

    # ── 管理 ──────────────────────────────────────────

    def close(self):
        """关闭数据库。"""
        self.db.close()
