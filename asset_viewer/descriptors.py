"""
资产类型描述符注册表：图标、颜色、属性描述符，以及属性显示标签的生成。
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from asset_viewer.config_loader import AssetDescriptor, AttributeDescriptor, ValueDescriptor
from asset_viewer.models import GROUP_ASSET_TYPE, META_LABEL, THING_ASSET_TYPE, Attribute

logger = logging.getLogger(__name__)

_BUILTIN_DESCRIPTORS = [
    AssetDescriptor(
        type=THING_ASSET_TYPE,
        name="Thing",
        icon="cube-outline",
        color="39B54A",
    ),
    AssetDescriptor(
        type=GROUP_ASSET_TYPE,
        name="Group",
        icon="folder",
        color="B3B3B3",
        attribute_descriptors=[AttributeDescriptor(attribute_name="childAssetType", label="Child asset type")],
    ),
]


class DescriptorRegistry:
    """按类型查找资产描述符与属性描述符。"""

    def __init__(self, descriptors: Optional[List[AssetDescriptor]] = None,
                 value_descriptors: Optional[List[ValueDescriptor]] = None):
        self._assets: Dict[str, AssetDescriptor] = {d.type: d for d in _BUILTIN_DESCRIPTORS}
        for d in descriptors or []:
            self._assets[d.type] = d
        self._values: Dict[str, ValueDescriptor] = {v.name: v for v in value_descriptors or []}

    def get_asset_descriptor(self, asset_type: Optional[str]) -> Optional[AssetDescriptor]:
        if asset_type is None:
            return None
        return self._assets.get(asset_type)

    def get_attribute_descriptor(self, attribute_name: str, asset_type: Optional[str]) -> Optional[AttributeDescriptor]:
        descriptor = self.get_asset_descriptor(asset_type)
        if descriptor is None:
            return None
        for attr in descriptor.attribute_descriptors:
            if attr.attribute_name == attribute_name:
                return attr
        return None

    def get_value_descriptor(self, value_type: Optional[str]) -> Optional[ValueDescriptor]:
        if value_type is None:
            return None
        return self._values.get(value_type)

    def get_attribute_and_value_descriptors(
        self, asset_type: Optional[str], attribute: Attribute
    ) -> Tuple[Optional[AttributeDescriptor], Optional[ValueDescriptor]]:
        attr_descriptor = self.get_attribute_descriptor(attribute.name, asset_type)
        value_type = attribute.type or (attr_descriptor.value_type if attr_descriptor else None)
        return attr_descriptor, self.get_value_descriptor(value_type)

    def get_attribute_label(
        self,
        attribute: Optional[Attribute],
        descriptor: Optional[AttributeDescriptor],
        value_descriptor: Optional[ValueDescriptor],
        translate: Callable[..., str],
        show_units: bool = True,
    ) -> str:
        """
        标签优先级：meta label > 描述符 label > 翻译后的属性名。
        show_units 时追加单位，如 "Temperature (°C)"。
        """
        label = None
        if attribute is not None:
            label = attribute.get_meta(META_LABEL)
        if not label and descriptor is not None:
            label = descriptor.label
        if not label:
            name = attribute.name if attribute is not None else (descriptor.attribute_name if descriptor else "")
            label = translate(name)

        if show_units:
            units = (descriptor.units if descriptor else None) or (value_descriptor.units if value_descriptor else None)
            if units:
                label = f"{label} ({units})"
        return label

    def label_for_name(self, attribute_name: str, asset_type: Optional[str], translate: Callable[..., str]) -> str:
        """只有属性名（没有属性实例）时的标签，如分组表格的列头。"""
        descriptor = self.get_attribute_descriptor(attribute_name, asset_type)
        if descriptor is not None and descriptor.label:
            return descriptor.label
        return translate(attribute_name)

    def label_for(self, asset_type: Optional[str], attribute: Attribute, translate: Callable[..., str],
                  show_units: bool = True) -> str:
        descriptors = self.get_attribute_and_value_descriptors(asset_type, attribute)
        return self.get_attribute_label(attribute, descriptors[0], descriptors[1], translate, show_units)
