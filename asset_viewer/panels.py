"""
面板内容策略：按面板类型生成内容树。

自定义 panelViewProvider 优先；否则按 info / history / group / survey / survey-results 分派。
无内容时返回 None，调用方省略整个面板容器。
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from asset_viewer.config_loader import (
    AssetViewerConfig,
    GroupPanelConfig,
    HistoryPanelConfig,
    InfoPanelConfig,
    InfoPanelItemConfig,
    InputType,
    PanelConfig,
    PanelType,
)
from asset_viewer.content import Node, h
from asset_viewer.descriptors import DescriptorRegistry
from asset_viewer.group_panel import GroupPanel
from asset_viewer.item_selector import select_items
from asset_viewer.layout import RenderPass
from asset_viewer.models import Asset, AssetQuery, AssetSelect, Attribute
from asset_viewer.store_client import StoreError

logger = logging.getLogger(__name__)

MOBILE_HIDDEN_CLASS = "mobileHidden"
PATH_SEPARATOR = " > "


class PanelHost(Protocol):
    """渲染面板时可用的宿主能力（由视图控制器提供）。"""
    translate: Callable[..., str]
    registry: DescriptorRegistry
    store: Any
    render_pass: RenderPass
    group_panels: Dict[str, Any]
    group_selections: Dict[Any, List[str]]

    def is_current(self, asset_id: str) -> bool: ...

    def request_layout(self) -> None: ...


# ── 异步查询 ──────────────────────────────────────────

async def get_asset_names(store: Any, ids: List[str]) -> List[str]:
    """按 id 查询资产名称；查询失败或数量不符时原样返回 id。"""
    query = AssetQuery(
        select=AssetSelect(exclude_path=True, exclude_parent_info=True, exclude_attributes=True),
        ids=ids,
    )
    try:
        response = await store.query_assets(query)
    except StoreError as e:
        logger.warning(f"资产名称查询失败: {e}")
        return ids

    if response.status != 200 or response.data is None or len(response.data) != len(ids):
        logger.warning(f"资产名称查询返回异常 (status={response.status})，显示原始 id")
        return ids

    names = {asset.id: asset.name for asset in response.data}
    return [names.get(asset_id, asset_id) for asset_id in ids]


# ── 面板容器 ──────────────────────────────────────────

def get_panel(name: str, panel_config: PanelConfig, content: Optional[Node],
              translate: Callable[..., str]) -> Optional[Node]:
    if content is None:
        return None

    classes = ["panel"]
    if panel_config.hide_on_mobile:
        classes.append(MOBILE_HIDDEN_CLASS)

    return h(
        "div",
        h(
            "div",
            h("div", classes=["panel-title"], text=translate(panel_config.title or name)),
            h("div", content, classes=["panel-content"]),
            classes=["panel-content-wrapper"],
        ),
        id=f"{name}-panel",
        classes=classes,
        styles=panel_config.panel_styles,
    )


def get_field(name: str, item_config: Optional[InfoPanelItemConfig], content: Optional[Node]) -> Optional[Node]:
    if content is None:
        return None

    classes = ["field"]
    if item_config is not None and item_config.hide_on_mobile:
        classes.append(MOBILE_HIDDEN_CLASS)

    return h("div", content, id=f"field-{name}", classes=classes,
             styles=item_config.styles if item_config else None)


# ── 条目模板 ──────────────────────────────────────────

async def _resolve_path(host: PanelHost, asset_id: str, ancestors: List[str], node: Node):
    names = await get_asset_names(host.store, ancestors)
    if not host.is_current(asset_id):
        logger.debug(f"[{asset_id}] 路径查询结果已过期，丢弃")
        return
    node.props["value"] = PATH_SEPARATOR.join(reversed(names))
    host.request_layout()


def get_property_template(asset: Asset, prop: str, host: PanelHost, viewer_config: Optional[AssetViewerConfig],
                          panel_config: Optional[PanelConfig], item_config: InfoPanelItemConfig) -> Optional[Node]:
    value = asset.get_property(prop)

    if viewer_config is not None and viewer_config.property_view_provider and panel_config is not None:
        result = viewer_config.property_view_provider(asset, prop, value, host, viewer_config, panel_config)
        if result:
            return result

    input_type = InputType.TEXT
    ancestors: List[str] = []

    if prop == "parentId":
        # 显示祖先路径而不是父级 id
        path = asset.path
        if not path or not isinstance(path, list):
            return None
        ancestors = list(path[1:])
        value = host.translate("loading") if ancestors else ""
    elif prop == "createdOn":
        input_type = InputType.DATETIME
    elif prop == "accessPublicRead":
        input_type = InputType.CHECKBOX

    if item_config.input_type_override is not None:
        input_type = item_config.input_type_override

    node = h(
        "or-input",
        id=f"property-{prop}",
        type=input_type.value,
        dense=True,
        value=value,
        readonly=item_config.readonly if item_config.readonly is not None else True,
        label=item_config.label,
    )

    if ancestors:
        host.render_pass.schedule(_resolve_path(host, asset.id, ancestors, node))

    return node


def get_attribute_template(asset: Asset, attribute: Attribute, host: PanelHost, viewer_config: AssetViewerConfig,
                           panel_config: PanelConfig, item_config: Optional[InfoPanelItemConfig]) -> Optional[Node]:
    if viewer_config.attribute_view_provider:
        result = viewer_config.attribute_view_provider(asset, attribute, host, viewer_config, panel_config)
        if result:
            return result

    item_config = item_config or InfoPanelItemConfig()
    return h(
        "or-attribute-input",
        id=f"attribute-{attribute.name}",
        dense=True,
        assetType=asset.type,
        attribute=attribute.model_dump(mode="json"),
        disabled=item_config.disabled,
        label=item_config.label,
        readonly=item_config.readonly,
        disableButton=item_config.disable_button,
        inputType=item_config.input_type_override.value if item_config.input_type_override else None,
        hasHelperText=not item_config.disable_helper_text,
    )


# ── 各类型面板 ────────────────────────────────────────

def _info_content(asset: Asset, attributes: List[Attribute], host: PanelHost,
                  viewer_config: AssetViewerConfig, panel_config: InfoPanelConfig) -> Optional[Node]:
    items = select_items(asset, attributes, panel_config, host.registry, host.translate)
    if items is None:
        return None

    fields = []
    for item in items:
        if item.kind == "property":
            content = get_property_template(asset, item.name, host, viewer_config, panel_config, item.config)
        else:
            content = get_attribute_template(asset, item.attribute, host, viewer_config, panel_config, item.config)
        fields.append(get_field(item.name, item.config, content))

    return h("fragment", *fields)


def get_history_attributes(attributes: List[Attribute], panel_config: HistoryPanelConfig) -> List[Attribute]:
    included = panel_config.include
    excluded = panel_config.exclude or []
    return [
        attr for attr in attributes
        if (included is None or attr.name in included)
        and attr.name not in excluded
        and attr.stores_data_points
    ]


def _history_content(panel_name: str, asset: Asset, attributes: List[Attribute], host: PanelHost,
                     viewer_config: AssetViewerConfig, panel_config: HistoryPanelConfig) -> Optional[Node]:
    history_attrs = get_history_attributes(attributes, panel_config)
    if not history_attrs:
        return None

    options = [[attr.name, host.registry.label_for(asset.type, attr, host.translate)] for attr in history_attrs]
    first = history_attrs[0].name

    picker = h(
        "or-input",
        id=f"{panel_name}-attribute-picker",
        type=InputType.SELECT.value,
        value=first,
        label=host.translate("attribute"),
        options=options,
        checkAssetWrite=False,
    )
    history = h(
        "or-attribute-history",
        id=f"{panel_name}-attribute-history",
        config=viewer_config.history_config,
        chartConfig=viewer_config.chart_config,
        assetType=asset.type,
        attribute=None,
    )

    def attribute_changed(attribute_name: Optional[str]):
        # 只重新绑定历史图表，不重建整个面板
        attribute = asset.get_attribute(attribute_name) if attribute_name else None
        picker.props["value"] = attribute_name
        history.props["attribute"] = attribute.model_dump(mode="json") if attribute else None
        host.request_layout()

    picker.on("change", attribute_changed)
    host.render_pass.add_callback(lambda: attribute_changed(first))

    return h("fragment", h("div", picker, id=f"{panel_name}-history-controls"), history)


def get_panel_content(panel_name: str, asset: Asset, attributes: List[Attribute], host: PanelHost,
                      viewer_config: AssetViewerConfig, panel_config: PanelConfig) -> Optional[Node]:
    # 自定义渲染优先
    if viewer_config.panel_view_provider:
        template = viewer_config.panel_view_provider(asset, attributes, panel_name, host, viewer_config, panel_config)
        if template:
            return template

    panel_type = panel_config.type

    if panel_type == PanelType.INFO.value and isinstance(panel_config, InfoPanelConfig):
        return _info_content(asset, attributes, host, viewer_config, panel_config)

    if panel_type == PanelType.SURVEY.value:
        return h("or-survey", id="survey", surveyId=asset.id)

    if panel_type == PanelType.SURVEY_RESULTS.value:
        return h("or-survey-results", id="survey-results", survey=asset.model_dump(mode="json", by_alias=True))

    if panel_type == PanelType.HISTORY.value and isinstance(panel_config, HistoryPanelConfig):
        return _history_content(panel_name, asset, attributes, host, viewer_config, panel_config)

    if panel_type == PanelType.GROUP.value and isinstance(panel_config, GroupPanelConfig):
        group = GroupPanel.create(panel_name, asset, panel_config, host)
        if group is None:
            return None
        host.group_panels[panel_name] = group
        group.start()
        return group.content

    return None
