"""
FastAPI 路由：暴露资产存储与视图会话的 REST API 供展现层调用。
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel

from asset_viewer.asset_store import LocalAssetStore
from asset_viewer.descriptors import DescriptorRegistry
from asset_viewer.models import STATUS_NO_CONTENT, Asset, AssetQuery
from asset_viewer.viewer import AssetViewer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# 这些全局引用会在 main.py 中注入
_store = None
_event_bus = None
_config = None
_registry = None
_translator = None
_viewers: Dict[str, AssetViewer] = {}


def init_api(store, event_bus, config, registry, translator):
    """注入全局依赖（由 main.py 调用）。"""
    global _store, _event_bus, _config, _registry, _translator
    _store = store
    _event_bus = event_bus
    _config = config
    _registry = registry
    _translator = translator
    _viewers.clear()


class ViewerCreate(BaseModel):
    asset_id: Optional[str] = None
    readonly: bool = False


class EditRequest(BaseModel):
    edit: bool


class UIEvent(BaseModel):
    node_id: str
    event: str
    value: Any = None


class AttributeUpdate(BaseModel):
    value: Any = None
    deleted: bool = False


# ── 资产 ──────────────────────────────────────────────

@router.get("/assets")
async def list_assets() -> List[Asset]:
    """获取所有资产。"""
    response = await _store.query_assets(AssetQuery())
    if response.status != 200:
        raise HTTPException(response.status, "资产查询失败")
    return response.data or []


@router.post("/assets/query")
async def query_assets(query: AssetQuery) -> List[Asset]:
    response = await _store.query_assets(query)
    if response.status != 200:
        raise HTTPException(response.status, "资产查询失败")
    return response.data or []


@router.get("/assets/{asset_id}")
async def get_asset(asset_id: str) -> Asset:
    response = await _store.query_assets(AssetQuery(ids=[asset_id]))
    if response.status != 200 or not response.data:
        raise HTTPException(404, f"资产 '{asset_id}' 不存在")
    return response.data[0]


@router.put("/assets/{asset_id}", status_code=STATUS_NO_CONTENT)
async def update_asset(asset_id: str, asset: Asset) -> Response:
    """保存资产（后写覆盖）。"""
    if asset.id != asset_id:
        raise HTTPException(400, "ID mismatch")
    status = await _store.update_asset(asset_id, asset)
    if status != STATUS_NO_CONTENT:
        raise HTTPException(status, f"资产 '{asset_id}' 保存失败")
    return Response(status_code=STATUS_NO_CONTENT)


@router.post("/assets/{asset_id}/attributes/{attribute_name}")
async def write_attribute(asset_id: str, attribute_name: str, update: AttributeUpdate) -> dict:
    """写入或删除属性，并向订阅的视图发布属性事件。"""
    if not isinstance(_store, LocalAssetStore):
        raise HTTPException(501, "远程存储不支持属性写入")

    if update.deleted:
        ok = _store.delete_attribute(asset_id, attribute_name)
    else:
        ok = _store.set_attribute_value(asset_id, attribute_name, update.value)
    if not ok:
        raise HTTPException(404, f"资产 '{asset_id}' 或属性 '{attribute_name}' 不存在")
    return {"asset_id": asset_id, "attribute": attribute_name, "deleted": update.deleted}


# ── 视图会话 ──────────────────────────────────────────

def _get_viewer(viewer_id: str) -> AssetViewer:
    viewer = _viewers.get(viewer_id)
    if viewer is None:
        raise HTTPException(404, f"视图 '{viewer_id}' 不存在")
    return viewer


def _viewer_summary(viewer: AssetViewer) -> dict:
    return {
        "viewer_id": viewer.viewer_id,
        "asset_id": viewer.asset_id,
        "state": viewer.state.value,
        "modified": viewer.is_modified(),
    }


@router.post("/viewers")
async def create_viewer(request: ViewerCreate) -> dict:
    """为资产创建视图会话并加载资产。"""
    viewer = AssetViewer(
        store=_store,
        event_bus=_event_bus,
        registry=_registry,
        translator=_translator,
        config=_config.viewer if _config else None,
        readonly=request.readonly,
    )
    _viewers[viewer.viewer_id] = viewer
    await viewer.set_asset_id(request.asset_id)
    logger.info(f"[{request.asset_id}] 视图会话已创建: {viewer.viewer_id}")
    return _viewer_summary(viewer)


@router.get("/viewers/{viewer_id}")
async def render_viewer(viewer_id: str) -> dict:
    """渲染内容树（等待异步内容与布局完成）。"""
    viewer = _get_viewer(viewer_id)
    tree = await viewer.update()
    return {**_viewer_summary(viewer), "tree": tree.model_dump(mode="json")}


@router.post("/viewers/{viewer_id}/edit")
async def set_edit_mode(viewer_id: str, request: EditRequest) -> dict:
    viewer = _get_viewer(viewer_id)
    await viewer.set_edit_mode(request.edit)
    return _viewer_summary(viewer)


@router.post("/viewers/{viewer_id}/events")
async def dispatch_event(viewer_id: str, event: UIEvent) -> dict:
    """分发前端 UI 事件（输入变化、按钮点击、弹窗操作）。"""
    viewer = _get_viewer(viewer_id)
    handled = await viewer.dispatch(event.node_id, event.event, event.value)
    if not handled:
        raise HTTPException(400, f"节点 '{event.node_id}' 没有 '{event.event}' 事件处理")
    tree = viewer.tree
    return {**_viewer_summary(viewer), "tree": tree.model_dump(mode="json") if tree else None}


@router.post("/viewers/{viewer_id}/layout")
async def update_layout(viewer_id: str, heights: Dict[str, float]) -> dict:
    """接收面板内容高度并返回每个面板的 row span。"""
    viewer = _get_viewer(viewer_id)
    spans = viewer.update_measurements(heights)
    return {"viewer_id": viewer_id, "spans": spans}


@router.post("/viewers/{viewer_id}/save")
async def save_viewer(viewer_id: str) -> dict:
    viewer = _get_viewer(viewer_id)
    result = await viewer.save()
    if result is None:
        raise HTTPException(400, "当前没有可保存的编辑")
    return {
        **_viewer_summary(viewer),
        "status_code": result.status_code,
        "asset": result.asset.model_dump(mode="json", by_alias=True),
    }


@router.delete("/viewers/{viewer_id}")
async def close_viewer(viewer_id: str) -> dict:
    viewer = _viewers.pop(viewer_id, None)
    if viewer is None:
        raise HTTPException(404, f"视图 '{viewer_id}' 不存在")
    viewer.close()
    return {"message": f"Viewer {viewer_id} closed"}


# ── 配置 ──────────────────────────────────────────────

@router.get("/config")
async def get_config() -> dict[str, Any]:
    """获取当前配置摘要（自定义渲染函数不导出）。"""
    if _config is None:
        return {}
    return {
        "viewer": _config.viewer.model_dump(mode="json", by_alias=True, exclude_none=True),
        "descriptors": [d.model_dump(mode="json", by_alias=True) for d in _config.descriptors],
        "store": {"remote": bool(_config.store.url)},
    }


@router.post("/system/reload")
async def reload_config() -> dict:
    """
    重新加载配置文件，更新所有打开的视图。
    """
    global _config, _registry

    from asset_viewer.config_loader import load_config
    new_config = load_config()

    _config = new_config
    _registry = DescriptorRegistry(new_config.descriptors, new_config.value_descriptors)
    if _translator is not None:
        _translator.update(new_config.translations)

    for viewer in _viewers.values():
        viewer.registry = _registry
        viewer.set_config(new_config.viewer)

    return {
        "message": "Configuration reloaded",
        "affected_viewers": list(_viewers.keys()),
    }
