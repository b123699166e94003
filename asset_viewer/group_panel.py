"""
分组面板：展示分组资产下子资产的属性表格，并支持通过弹窗选择显示的列。

已提交的选择（selected）只能由确认操作改写；弹窗只修改待定副本（pending）。
"""

import logging
from typing import Any, List, Optional

from asset_viewer.config_loader import GroupPanelConfig, InputType
from asset_viewer.content import Node, h
from asset_viewer.models import GROUP_ASSET_TYPE, Asset, AssetQuery, AssetSelect
from asset_viewer.store_client import StoreError

logger = logging.getLogger(__name__)

CHILD_ASSET_TYPE_ATTRIBUTE = "childAssetType"
NAME_COLUMN = "name"


async def get_asset_children(store: Any, asset_id: str, child_asset_type: str) -> List[Asset]:
    """查询子资产并按类型过滤；失败时返回空列表。"""
    query = AssetQuery(
        select=AssetSelect(exclude_path=True, exclude_parent_info=True),
        parents=[asset_id],
    )
    try:
        response = await store.query_assets(query)
    except StoreError as e:
        logger.warning(f"[{asset_id}] 子资产查询失败: {e}")
        return []

    if response.status != 200 or response.data is None:
        logger.warning(f"[{asset_id}] 子资产查询返回状态 {response.status}")
        return []

    return [asset for asset in response.data if asset.type == child_asset_type]


class GroupPanel:
    """
    One group panel instance for one render pass.

    ``child_assets`` is None while the child query is pending.
    """

    def __init__(self, panel_name: str, asset: Asset, child_asset_type: str,
                 available: List[str], selected: List[str], host: Any):
        self.panel_name = panel_name
        self.asset = asset
        self.child_asset_type = child_asset_type
        self.available = list(available)
        self.selected = list(selected)
        self.pending: Optional[List[str]] = None
        self.child_assets: Optional[List[Asset]] = None
        self._host = host

        translate = host.translate
        self.edit_button = h(
            "or-icon",
            id=f"{panel_name}-add-remove-columns",
            classes=["asset-group-add-remove-button"],
            icon="pencil",
        ).on("click", lambda value=None: self.open_picker())
        self.table = h(
            "or-table",
            id=f"{panel_name}-attribute-table",
            hidden=True,
            options={"stickyFirstColumn": True},
            columns=[],
            headers=[],
            rows=[],
        )
        self.message = h(
            "or-translate",
            id=f"{panel_name}-attribute-table-msg",
            value="loading",
            text=translate("loading"),
        )
        self.dialog = h(
            "or-mwc-dialog",
            id=f"{panel_name}-attribute-modal",
            dialogTitle=translate("addRemoveAttributes"),
            open=False,
            dialogActions=[
                {"actionName": "ok", "default": True, "label": translate("ok")},
                {"actionName": "cancel", "label": translate("cancel")},
            ],
        )
        self.dialog.on("ok", lambda value=None: self.confirm())
        self.dialog.on("cancel", lambda value=None: self.cancel())

        self.content = h("fragment", self.edit_button, self.table, h("span", self.message), self.dialog)

    @classmethod
    def create(cls, panel_name: str, asset: Asset, config: GroupPanelConfig, host: Any) -> Optional["GroupPanel"]:
        """不满足分组面板条件时返回 None（无内容）。"""
        if asset.type != GROUP_ASSET_TYPE:
            return None

        child_type_attribute = asset.get_attribute(CHILD_ASSET_TYPE_ATTRIBUTE)
        if child_type_attribute is None or not isinstance(child_type_attribute.value, str):
            return None
        child_asset_type = child_type_attribute.value

        available: List[str] = []
        selected: List[str] = []
        child_config = config.child_asset_types.get(child_asset_type)
        if child_config is not None:
            available = list(child_config.available_attributes or [])
            selected = list(child_config.selected_attributes or [])

        if not available:
            descriptor = host.registry.get_asset_descriptor(child_asset_type)
            if descriptor is not None:
                available = [d.attribute_name for d in descriptor.attribute_descriptors]
        if not selected:
            selected = list(available)

        # 本资产之前确认过的列优先于配置
        committed = host.group_selections.get((panel_name, child_asset_type))
        if committed is not None:
            selected = list(committed)

        return cls(panel_name, asset, child_asset_type, available, selected, host)

    # ── 子资产加载 ────────────────────────────────────

    def start(self):
        self._host.render_pass.schedule(self.load_children())

    def _is_stale(self) -> bool:
        return (not self._host.is_current(self.asset.id)
                or self._host.group_panels.get(self.panel_name) is not self)

    async def load_children(self):
        children = await get_asset_children(self._host.store, self.asset.id, self.child_asset_type)
        if self._is_stale():
            logger.debug(f"[{self.asset.id}] 子资产结果已过期，丢弃")
            return
        self.child_assets = children
        self.update_table()

    # ── 表格 ──────────────────────────────────────────

    @property
    def columns(self) -> List[str]:
        return [NAME_COLUMN] + sorted(self.selected)

    def update_table(self):
        if self.child_assets is None:
            return

        translate = self._host.translate

        if not self.selected or not self.child_assets:
            self.message.props["value"] = "noChildAssets"
            self.message.text = translate("noChildAssets")
            self.message.hidden = False
            self.table.hidden = True
            self.edit_button.set_class("active", False)
            self._host.request_layout()
            return

        self.edit_button.set_class("active", True)
        self.message.hidden = True
        self.table.hidden = False

        headers = sorted(self.selected)
        registry = self._host.registry
        self.table.props["columns"] = [NAME_COLUMN] + headers
        self.table.props["headers"] = [translate("groupAssetName")] + [
            registry.label_for_name(name, self.child_asset_type, translate) for name in headers
        ]
        rows = []
        for child in self.child_assets:
            row = [child.name]
            for name in headers:
                attribute = child.attributes.get(name)
                row.append(attribute.value if attribute is not None and attribute.value is not None else "")
            rows.append(row)
        self.table.props["rows"] = rows
        self._host.request_layout()

    # ── 列选择弹窗 ────────────────────────────────────

    def open_picker(self):
        self.pending = list(self.selected)
        translate = self._host.translate
        self.dialog.children = [
            h("div", *[self._checkbox(name, translate) for name in sorted(self.available)],
              styles={"display": "grid"})
        ]
        self.dialog.props["open"] = True

    def _checkbox(self, attribute_name: str, translate) -> Node:
        node = h(
            "or-input",
            id=f"{self.panel_name}-attribute-modal-{attribute_name}",
            type=InputType.CHECKBOX.value,
            label=translate(attribute_name),
            value=attribute_name in (self.pending or []),
            styles={"grid-column": "1 / -1"},
        )
        return node.on("change", lambda value, name=attribute_name: self.toggle_pending(name, bool(value)))

    def toggle_pending(self, attribute_name: str, checked: bool):
        if self.pending is None:
            return
        if checked and attribute_name not in self.pending:
            self.pending.append(attribute_name)
        elif not checked and attribute_name in self.pending:
            self.pending.remove(attribute_name)

    def confirm(self):
        if self.pending is None:
            return
        self.selected = list(self.pending)
        self._host.group_selections[(self.panel_name, self.child_asset_type)] = list(self.selected)
        self._close_dialog()
        self.update_table()

    def cancel(self):
        self._close_dialog()

    def _close_dialog(self):
        self.pending = None
        self.dialog.props["open"] = False
        self.dialog.children = []
