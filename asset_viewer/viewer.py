"""
资产视图控制器：持有当前资产、订阅变更事件、管理编辑状态，
并在状态变化时重新解析配置、重建内容树、触发布局。
"""

import inspect
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from asset_viewer.config_loader import DEFAULT_CONTAINER_STYLES, AssetViewerConfig, InputType, ViewerConfig, resolve_viewer_config
from asset_viewer.content import Node, h
from asset_viewer.descriptors import DescriptorRegistry
from asset_viewer.events import ASSET_EVENT, ATTRIBUTE_EVENT, LAYOUT_REQUESTED, SAVE_RESULT, EventBus
from asset_viewer.i18n import Translator, millis_to_datetime
from asset_viewer.layout import NodeLayoutContainer, RenderPass, relayout
from asset_viewer.models import (
    META_READ_ONLY,
    STATUS_NO_CONTENT,
    THING_ASSET_TYPE,
    Asset,
    AssetEvent,
    AssetQuery,
    Attribute,
    AttributeEvent,
    SaveResult,
    ViewerState,
)
from asset_viewer.panels import get_panel, get_panel_content
from asset_viewer.store_client import StoreError

logger = logging.getLogger(__name__)

# 传输失败时 save result 中的状态码（没有收到响应）
STATUS_NO_RESPONSE = 0


class AssetViewer:
    """
    Inspector view for one asset.

    State: empty -> loading -> loaded (viewing | editing), or not_found when the id cannot be resolved.
    """

    def __init__(
        self,
        store: Any,
        event_bus: EventBus,
        registry: Optional[DescriptorRegistry] = None,
        translator: Optional[Callable[..., str]] = None,
        config: Optional[ViewerConfig] = None,
        readonly: bool = False,
        can_write: bool = True,
        viewer_id: Optional[str] = None,
    ):
        self.viewer_id = viewer_id or uuid.uuid4().hex
        self.store = store
        self.bus = event_bus
        self.registry = registry or DescriptorRegistry()
        self.translate = translator or Translator()
        self.config = config
        self.readonly = readonly
        self.can_write = can_write

        self.asset_id: Optional[str] = None
        self.asset: Optional[Asset] = None
        self.edit_mode = False
        self.loading = False

        self._asset_modified = False
        self._working: Optional[Asset] = None
        self._viewer_config: Optional[AssetViewerConfig] = None
        self._attributes: Optional[List[Attribute]] = None

        self.tree: Optional[Node] = None
        self.render_pass = RenderPass()
        self.group_panels: Dict[str, Any] = {}
        # (面板名, 子资产类型) -> 已确认的列；同一资产的多次渲染间保留
        self.group_selections: Dict[Tuple[str, str], List[str]] = {}
        self.measurements: Dict[str, float] = {}

        self._unsubscribers = [
            event_bus.subscribe(ASSET_EVENT, self.on_event),
            event_bus.subscribe(ATTRIBUTE_EVENT, self.on_event),
            event_bus.subscribe(LAYOUT_REQUESTED, self._on_layout_requested),
        ]

    # ── 状态 ──────────────────────────────────────────

    @property
    def state(self) -> ViewerState:
        if self.loading:
            return ViewerState.LOADING
        if self.asset is None and not self.asset_id:
            return ViewerState.EMPTY
        if self.asset is None:
            return ViewerState.NOT_FOUND
        return ViewerState.EDITING if self.edit_mode else ViewerState.VIEWING

    @property
    def viewer_config(self) -> Optional[AssetViewerConfig]:
        return self._viewer_config

    @property
    def working_asset(self) -> Optional[Asset]:
        return self._working

    def is_readonly(self) -> bool:
        return self.readonly or not self.can_write

    def is_modified(self) -> bool:
        return self.edit_mode and self._asset_modified

    def is_current(self, asset_id: str) -> bool:
        return asset_id == self.asset_id

    def _set_asset(self, asset: Optional[Asset]):
        """替换资产并丢弃所有派生状态。"""
        self.asset = asset
        self._viewer_config = None
        self._attributes = None
        self._working = None
        self.group_panels = {}

        if asset is not None:
            self._viewer_config = resolve_viewer_config(asset.type, self.config)
            self._attributes = asset.attribute_list()
            self._asset_modified = False
            if self.edit_mode:
                self._working = asset.model_copy(deep=True)

    def set_config(self, config: Optional[ViewerConfig]):
        self.config = config
        if self.asset is not None:
            self._set_asset(self.asset)

    # ── 加载 ──────────────────────────────────────────

    async def set_asset_id(self, asset_id: Optional[str]):
        if asset_id != self.asset_id:
            self.group_selections = {}
        self.asset_id = asset_id
        self._set_asset(None)
        if asset_id:
            self.loading = True
            await self.load()
        else:
            self.loading = False

    async def load(self):
        """从存储读取当前资产，结果以资产事件的形式送达。"""
        asset_id = self.asset_id
        if not asset_id:
            return
        asset = None
        try:
            response = await self.store.query_assets(AssetQuery(ids=[asset_id]))
            if response.status == 200 and response.data:
                asset = response.data[0]
            else:
                logger.warning(f"[{asset_id}] 资产不存在 (status={response.status})")
        except StoreError as e:
            logger.error(f"[{asset_id}] 资产加载失败: {e}")
        self.on_event(AssetEvent(asset_id=asset_id, asset=asset))

    async def reload(self):
        self._set_asset(None)
        self._asset_modified = False
        if self.asset_id:
            self.loading = True
            await self.load()

    # ── 事件 ──────────────────────────────────────────

    def on_event(self, event: Any):
        if isinstance(event, AssetEvent):
            if event.asset_id != self.asset_id:
                return
            self._set_asset(event.asset)
            self.loading = False
            return

        if isinstance(event, AttributeEvent):
            if event.asset_id != self.asset_id or self.asset is None:
                return
            name = event.attribute_name
            if name not in self.asset.attributes:
                return

            if event.deleted:
                attributes = dict(self.asset.attributes)
                del attributes[name]
                self._set_asset(self.asset.model_copy(update={"attributes": attributes}))
                logger.info(f"[{self.asset_id}] 属性已删除: {name}")
                return

            attribute = self.asset.attributes[name]
            attribute.value = event.value
            attribute.timestamp = event.timestamp
            if self.tree is not None:
                node = self.tree.find(f"attribute-{name}")
                if node is not None:
                    node.props["attribute"] = attribute.model_dump(mode="json")

    # ── 编辑 ──────────────────────────────────────────

    async def set_edit_mode(self, edit_mode: bool):
        if edit_mode and self.is_readonly():
            logger.info(f"[{self.asset_id}] 只读视图，不能进入编辑模式")
            edit_mode = False
        if edit_mode == self.edit_mode:
            return

        self.edit_mode = edit_mode
        if edit_mode:
            self._working = self.asset.model_copy(deep=True) if self.asset is not None else None
            self._asset_modified = False
        else:
            # 退出编辑后从存储重新加载，保证与后端一致
            await self.reload()

    def set_name(self, name: str):
        if not self.edit_mode or self._working is None:
            return
        self._working.name = name
        self._on_asset_modified()

    def set_attribute_value(self, attribute_name: str, value: Any):
        if not self.edit_mode or self._working is None:
            return
        attribute = self._working.attributes.get(attribute_name)
        if attribute is None:
            return
        attribute.value = value
        self._on_asset_modified()

    def _on_asset_modified(self):
        self._asset_modified = True
        if self.tree is not None:
            button = self.tree.find("save-btn")
            if button is not None:
                button.props["disabled"] = not self.is_modified()

    async def save(self) -> Optional[SaveResult]:
        """提交工作副本；204 视为成功并重新加载。无论结果如何都发出 save result 信号。"""
        if self.asset is None or self._working is None:
            return None

        asset = self._working
        try:
            status = await self.store.update_asset(asset.id, asset)
        except StoreError as e:
            logger.error(f"[{asset.id}] 保存失败: {e}")
            status = STATUS_NO_RESPONSE

        result = SaveResult(asset=asset, status_code=status)
        self.bus.publish(SAVE_RESULT, result)

        if status == STATUS_NO_CONTENT:
            logger.info(f"[{asset.id}] 资产已保存")
            self.edit_mode = False
            await self.reload()
        else:
            logger.warning(f"[{asset.id}] 保存返回状态 {status}，保持编辑模式")
        return result

    # ── 渲染 ──────────────────────────────────────────

    def _message(self, key: str) -> Node:
        return h("div", h("or-translate", value=key, text=self.translate(key)), classes=["msg"])

    def render(self) -> Node:
        """构建新的内容树，并开启新的渲染轮次。"""
        if self.is_readonly():
            self.edit_mode = False

        self.render_pass = RenderPass(name=self.asset_id or "")
        self.group_panels = {}

        if self.loading:
            tree = self._message("loading")
        elif self.asset is None and not self.asset_id:
            tree = self._message("noAssetSelected")
        elif self.asset is None:
            tree = self._message("notFound")
        elif self._attributes is None or self._viewer_config is None:
            tree = h("fragment")
        else:
            tree = self._render_asset(self.asset, self._attributes, self._viewer_config)

        self.tree = tree
        return tree

    def _render_asset(self, asset: Asset, attributes: List[Attribute], viewer_config: AssetViewerConfig) -> Node:
        if self.edit_mode and self._working is not None:
            content = [self._render_edit_panel(self._working)]
        else:
            content = []
            for name, panel_config in viewer_config.panels.items():
                if panel_config.hide:
                    continue
                panel_content = get_panel_content(name, asset, attributes, self, viewer_config, panel_config)
                content.append(get_panel(name, panel_config, panel_content, self.translate))

        return h(
            "div",
            self._render_header(asset),
            h("div", *content, id="container", styles={**DEFAULT_CONTAINER_STYLES, **viewer_config.viewer_styles}),
            id="wrapper",
        )

    def _render_header(self, asset: Asset) -> Node:
        t = self.translate
        descriptor = self.registry.get_asset_descriptor(asset.type)
        icon = h(
            "or-icon",
            icon=descriptor.icon if descriptor and descriptor.icon else "cube-outline",
            title=descriptor.type if descriptor else "unset",
            styles={"--or-icon-fill": f"#{descriptor.color}" if descriptor and descriptor.color else "unset"},
        )

        if self.edit_mode and self._working is not None:
            name = h("or-input", id="name-input", type=InputType.TEXT.value, min=1, max=1023, required=True,
                     outlined=True, label=t("name"), value=self._working.name)
            name.on("change", self.set_name)
            save_button = h("or-input", id="save-btn", type=InputType.BUTTON.value, raised=True,
                            label=t("save"), disabled=not self.is_modified())
            save_button.on("click", lambda value=None: self.save())
        else:
            name = h("span", text=asset.name)
            save_button = None

        created = None
        if asset.created_on is not None:
            created = h("div", id="created-time", classes=["mobileHidden"],
                        text=t("createdOnWithDate", date=millis_to_datetime(asset.created_on)))

        return h(
            "div",
            h("a", h("or-icon", icon="chevron-left"), classes=["back-navigation"]),
            h("div", icon, name, id="title"),
            created,
            save_button,
            id="asset-header",
        )

    def _render_edit_panel(self, working: Asset) -> Node:
        inputs = []
        for attribute in working.attribute_list():
            node = h(
                "or-attribute-input",
                id=f"edit-attribute-{attribute.name}",
                assetType=working.type or THING_ASSET_TYPE,
                attribute=attribute.model_dump(mode="json"),
                label=self.registry.label_for(working.type, attribute, self.translate),
                readonly=bool(attribute.get_meta(META_READ_ONLY)),
            )
            node.on("change", lambda value, name=attribute.name: self.set_attribute_value(name, value))
            inputs.append(node)
        return h("or-edit-asset-panel", *inputs, id="edit-asset-panel")

    async def update(self) -> Node:
        """渲染一轮：构建内容树，等待延迟回调与异步内容完成后再布局。"""
        tree = self.render()
        await self.render_pass.settle()
        self.relayout()
        return tree

    # ── 布局 ──────────────────────────────────────────

    def request_layout(self):
        self.bus.publish(LAYOUT_REQUESTED, {"viewer_id": self.viewer_id})

    def _on_layout_requested(self, payload: Any):
        target = payload.get("viewer_id") if isinstance(payload, dict) else None
        if target is not None and target != self.viewer_id:
            return
        # 渲染轮次结束前的请求由轮次完成时的布局统一处理
        if not self.render_pass.completed:
            return
        self.relayout()

    def relayout(self) -> Dict[str, int]:
        container = self.tree.find("container") if self.tree is not None else None
        if container is None:
            return {}
        layout_container = NodeLayoutContainer(container, self.measurements)
        spans = relayout(layout_container)
        panels = layout_container.panels()
        return {panels[index].node.id: span for index, span in spans.items()}

    def update_measurements(self, heights: Dict[str, float]) -> Dict[str, int]:
        """渲染器上报面板内容高度（初次渲染、窗口缩放、内容变化）。"""
        self.measurements.update(heights)
        return self.relayout()

    # ── UI 事件 ───────────────────────────────────────

    async def dispatch(self, node_id: str, event: str, value: Any = None) -> bool:
        node = self.tree.find(node_id) if self.tree is not None else None
        if node is None or event not in node.handlers:
            return False
        result = node.handlers[event](value)
        if inspect.isawaitable(result):
            await result
        return True

    def close(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
