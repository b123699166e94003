"""
信息面板条目选择与排序。
"""

from typing import Callable, List, Literal, Optional

from pydantic import BaseModel

from asset_viewer.config_loader import DEFAULT_ASSET_PROPERTIES, InfoPanelConfig, InfoPanelItemConfig
from asset_viewer.descriptors import DescriptorRegistry
from asset_viewer.models import Asset, Attribute


class ItemDescriptor(BaseModel):
    """A ranked reference to a property or attribute; label and priority are always set."""
    kind: Literal["property", "attribute"]
    name: str
    attribute: Optional[Attribute] = None
    config: InfoPanelItemConfig

    @property
    def label(self) -> str:
        return self.config.label or ""

    @property
    def priority(self) -> int:
        return self.config.priority or 0


def get_included_properties(config: Optional[InfoPanelConfig] = None) -> List[str]:
    section = config.properties if config is not None else None
    included = section.include if section and section.include is not None else DEFAULT_ASSET_PROPERTIES
    excluded = section.exclude if section and section.exclude is not None else []
    return [prop for prop in included if prop not in excluded]


def get_included_attributes(attributes: List[Attribute], config: Optional[InfoPanelConfig] = None) -> List[Attribute]:
    section = config.attributes if config is not None else None
    included = section.include if section else None
    excluded = section.exclude if section and section.exclude is not None else []
    return [
        attr for attr in attributes
        if (included is None or attr.name in included) and attr.name not in excluded
    ]


def _resolve_item_config(configured: Optional[InfoPanelItemConfig], default_label: Callable[[], str]) -> InfoPanelItemConfig:
    # 拷贝后再填默认值，配置对象在多次渲染间共享
    item_config = configured.model_copy(deep=True) if configured is not None else InfoPanelItemConfig()
    if item_config.label is None:
        item_config.label = default_label()
    item_config.priority = item_config.priority or 0
    return item_config


def sort_key(item: ItemDescriptor):
    """priority 降序，label 不区分大小写升序；再按类型与名称保证全序。"""
    return (-item.priority, item.label.upper(), 0 if item.kind == "property" else 1, item.name)


def select_items(
    asset: Asset,
    attributes: List[Attribute],
    panel_config: InfoPanelConfig,
    registry: DescriptorRegistry,
    translate: Callable[..., str],
) -> Optional[List[ItemDescriptor]]:
    """
    计算信息面板要显示的条目并排序。
    没有任何条目时返回 None，调用方应整体省略该面板。
    """
    properties = get_included_properties(panel_config)
    included_attributes = get_included_attributes(attributes, panel_config)

    if not properties and not included_attributes:
        return None

    items: List[ItemDescriptor] = []

    for prop in properties:
        configured = panel_config.properties.item_config.get(prop)
        items.append(ItemDescriptor(
            kind="property",
            name=prop,
            config=_resolve_item_config(configured, lambda prop=prop: translate(prop)),
        ))

    for attribute in included_attributes:
        configured = panel_config.attributes.item_config.get(attribute.name)
        items.append(ItemDescriptor(
            kind="attribute",
            name=attribute.name,
            attribute=attribute,
            config=_resolve_item_config(
                configured,
                lambda attribute=attribute: registry.label_for(asset.type, attribute, translate),
            ),
        ))

    items.sort(key=sort_key)
    return items
