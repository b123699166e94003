"""
配置加载器：将 YAML 配置文件解析为 Pydantic 模型，并按资产类型解析出有效的视图配置。
"""

import copy
import importlib
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, field_validator

logger = logging.getLogger(__name__)


# ── 枚举 ──────────────────────────────────────────────

class PanelType(str, Enum):
    INFO = "info"
    HISTORY = "history"
    GROUP = "group"
    SURVEY = "survey"
    SURVEY_RESULTS = "survey-results"


class InputType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    TEXTAREA = "textarea"
    DATETIME = "datetime"
    CHECKBOX = "checkbox"
    SELECT = "select"
    JSON = "json"
    BUTTON = "button"


# ── 面板配置 ──────────────────────────────────────────

class InfoPanelItemConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    label: Optional[str] = None
    hide_on_mobile: bool = Field(default=False, alias="hideOnMobile")
    readonly: Optional[bool] = None
    disabled: Optional[bool] = None
    disable_button: Optional[bool] = Field(default=None, alias="disableButton")
    disable_helper_text: Optional[bool] = Field(default=None, alias="disableHelperText")
    input_type_override: Optional[InputType] = Field(default=None, alias="inputTypeOverride")
    priority: Optional[int] = None
    styles: Dict[str, str] = Field(default_factory=dict)


class ItemSection(BaseModel):
    """include / exclude 列表以及逐项覆盖配置。"""
    model_config = ConfigDict(populate_by_name=True)

    include: Optional[List[str]] = None  # None 表示"全部"
    exclude: Optional[List[str]] = None
    item_config: Dict[str, InfoPanelItemConfig] = Field(default_factory=dict, alias="itemConfig")


class PanelConfig(BaseModel):
    """
    所有面板类型的公共字段。
    未知 type 的面板也以此类型保留，渲染时视为无内容。
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: Optional[str] = None
    title: Optional[str] = None
    hide: bool = False
    hide_on_mobile: bool = Field(default=False, alias="hideOnMobile")
    panel_styles: Dict[str, str] = Field(default_factory=dict, alias="panelStyles")


class InfoPanelConfig(PanelConfig):
    type: Literal["info"] = "info"
    properties: ItemSection = Field(default_factory=ItemSection)
    attributes: ItemSection = Field(default_factory=ItemSection)


class HistoryPanelConfig(PanelConfig):
    type: Literal["history"] = "history"
    include: Optional[List[str]] = None
    exclude: Optional[List[str]] = None


class GroupChildConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    available_attributes: Optional[List[str]] = Field(default=None, alias="availableAttributes")
    selected_attributes: Optional[List[str]] = Field(default=None, alias="selectedAttributes")


class GroupPanelConfig(PanelConfig):
    type: Literal["group"] = "group"
    child_asset_types: Dict[str, GroupChildConfig] = Field(default_factory=dict, alias="childAssetTypes")


class SurveyPanelConfig(PanelConfig):
    type: Literal["survey"] = "survey"


class SurveyResultsPanelConfig(PanelConfig):
    type: Literal["survey-results"] = "survey-results"


_PANEL_CLASSES: Dict[str, type] = {
    PanelType.INFO.value: InfoPanelConfig,
    PanelType.HISTORY.value: HistoryPanelConfig,
    PanelType.GROUP.value: GroupPanelConfig,
    PanelType.SURVEY.value: SurveyPanelConfig,
    PanelType.SURVEY_RESULTS.value: SurveyResultsPanelConfig,
}


def parse_panel_config(raw: Any) -> PanelConfig:
    """根据 type 字段选择具体的面板配置类型。"""
    if isinstance(raw, PanelConfig):
        return raw
    panel_type = raw.get("type") if isinstance(raw, dict) else None
    if isinstance(panel_type, Enum):
        panel_type = panel_type.value
    cls = _PANEL_CLASSES.get(panel_type, PanelConfig)
    return cls.model_validate(raw)


def _import_provider(value: Any) -> Any:
    """Resolve ``"package.module:function"`` strings to callables."""
    if value is None or callable(value):
        return value
    if not isinstance(value, str) or ":" not in value:
        raise ValueError(f"Provider must be a callable or 'module:function', got {value!r}")
    module_name, func_name = value.split(":", 1)
    module = importlib.import_module(module_name)
    func = getattr(module, func_name, None)
    if func is None or not callable(func):
        raise ValueError(f"Provider {value!r} is not callable")
    return func


# ── 视图配置 ──────────────────────────────────────────

class AssetViewerConfig(BaseModel):
    """一种资产类型的视图配置（面板、容器样式、自定义渲染函数）。"""
    model_config = ConfigDict(populate_by_name=True)

    panels: Dict[str, SerializeAsAny[PanelConfig]] = Field(default_factory=dict)
    viewer_styles: Dict[str, str] = Field(default_factory=dict, alias="viewerStyles")

    # (asset, item, host, viewer_config, panel_config) -> Optional[Node]
    property_view_provider: Optional[Callable[..., Any]] = Field(default=None, alias="propertyViewProvider", exclude=True)
    attribute_view_provider: Optional[Callable[..., Any]] = Field(default=None, alias="attributeViewProvider", exclude=True)
    panel_view_provider: Optional[Callable[..., Any]] = Field(default=None, alias="panelViewProvider", exclude=True)

    history_config: Optional[Dict[str, Any]] = Field(default=None, alias="historyConfig")
    chart_config: Optional[Dict[str, Any]] = Field(default=None, alias="chartConfig")

    @field_validator("panels", mode="before")
    @classmethod
    def _parse_panels(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {name: parse_panel_config(panel) for name, panel in value.items()}
        return value

    @field_validator("property_view_provider", "attribute_view_provider", "panel_view_provider", mode="before")
    @classmethod
    def _parse_provider(cls, value: Any) -> Any:
        return _import_provider(value)


class ViewerConfig(BaseModel):
    """用户提供的覆盖配置：全局默认块 + 按资产类型的覆盖块。"""
    model_config = ConfigDict(populate_by_name=True)

    default: Optional[AssetViewerConfig] = None
    asset_types: Dict[str, AssetViewerConfig] = Field(default_factory=dict, alias="assetTypes")
    history_config: Optional[Dict[str, Any]] = Field(default=None, alias="historyConfig")


DEFAULT_ASSET_PROPERTIES = [
    "name",
    "createdOn",
    "type",
    "parentId",
    "accessPublicRead",
]

# 网格容器的默认行高和行间距，可被 viewerStyles 覆盖
DEFAULT_CONTAINER_STYLES = {
    "grid-auto-rows": "5px",
    "grid-row-gap": "10px",
}

DEFAULT_VIEWER_CONFIG = AssetViewerConfig.model_validate({
    "viewerStyles": {},
    "panels": {
        "group": {
            "type": "group",
            "title": "underlyingAssets",
        },
        "info": {
            "type": "info",
            "hideOnMobile": True,
            "properties": {"include": []},
            "attributes": {"include": ["userNotes", "manufacturer", "model"]},
        },
        "location": {
            "type": "info",
            "properties": {"include": []},
            "attributes": {
                "include": ["location"],
                "itemConfig": {
                    "location": {"label": "", "readonly": True},
                },
            },
        },
        "attributes": {
            "type": "info",
            "properties": {"include": []},
            "attributes": {"exclude": ["location", "userNotes", "manufacturer", "model", "status"]},
        },
        "history": {
            "type": "history",
        },
    },
})


# ── 有效配置解析 ──────────────────────────────────────

def merge_panel_config(base: PanelConfig, override: PanelConfig) -> PanelConfig:
    """
    逐字段合并两个面板配置，覆盖块中显式设置的字段优先。
    panelStyles 单独做并集合并。始终返回新对象，不修改入参。
    """
    merged = base.model_dump(by_alias=True)
    merged.update(override.model_dump(by_alias=True, exclude_unset=True))
    merged.update(override.model_extra or {})
    merged["panelStyles"] = {**base.panel_styles, **override.panel_styles}
    return parse_panel_config(merged)


def resolve_viewer_config(
    asset_type: Optional[str],
    config: Optional[ViewerConfig],
    default_config: AssetViewerConfig = DEFAULT_VIEWER_CONFIG,
) -> AssetViewerConfig:
    """
    将默认配置与按类型的覆盖配置合并为一次渲染使用的有效配置。
    默认配置对象被所有渲染共享，这里只做拷贝，绝不原地修改。
    """
    resolved = default_config.model_copy(update={
        "viewer_styles": dict(default_config.viewer_styles),
        "panels": dict(default_config.panels),
    })

    if config is None:
        return resolved

    if asset_type is not None and asset_type in config.asset_types:
        asset_config = config.asset_types[asset_type]
    else:
        asset_config = config.default

    if asset_config is None:
        return resolved

    resolved.viewer_styles.update(asset_config.viewer_styles)

    for name, panel in asset_config.panels.items():
        base = resolved.panels.get(name)
        if base is not None:
            resolved.panels[name] = merge_panel_config(base, panel)
        else:
            resolved.panels[name] = panel.model_copy(deep=True)

    default_block = config.default
    resolved.property_view_provider = asset_config.property_view_provider or (
        default_block.property_view_provider if default_block else None)
    resolved.attribute_view_provider = asset_config.attribute_view_provider or (
        default_block.attribute_view_provider if default_block else None)
    resolved.panel_view_provider = asset_config.panel_view_provider or (
        default_block.panel_view_provider if default_block else None)
    resolved.history_config = asset_config.history_config or config.history_config

    return resolved


# ── 资产描述符配置 ────────────────────────────────────

class AttributeDescriptor(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    attribute_name: str = Field(alias="attributeName")
    label: Optional[str] = None
    value_type: Optional[str] = Field(default=None, alias="valueType")
    units: Optional[str] = None
    store_data_points: bool = Field(default=False, alias="storeDataPoints")


class AssetDescriptor(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str
    name: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    attribute_descriptors: List[AttributeDescriptor] = Field(default_factory=list, alias="attributeDescriptors")


class ValueDescriptor(BaseModel):
    name: str
    units: Optional[str] = None


# ── 存储配置 ──────────────────────────────────────────

class StoreConfig(BaseModel):
    url: Optional[str] = None  # 远程 REST 地址，为空时使用本地 TinyDB
    timeout: float = 30.0
    data_dir: Optional[str] = None
    token: Optional[str] = None


# ── 顶层配置 ──────────────────────────────────────────

class AppConfig(BaseModel):
    viewer: ViewerConfig = Field(default_factory=ViewerConfig)
    descriptors: List[AssetDescriptor] = Field(default_factory=list)
    value_descriptors: List[ValueDescriptor] = Field(default_factory=list)
    translations: Dict[str, str] = Field(default_factory=dict)
    store: StoreConfig = Field(default_factory=StoreConfig)

    def get_descriptor(self, asset_type: str) -> Optional[AssetDescriptor]:
        for d in self.descriptors:
            if d.type == asset_type:
                return d
        return None


# ── Loading ──────────────────────────────────────────

_CONFIG_SEARCH_PATHS = [
    "config/config.yaml",
    "config.yaml",
]


def find_config_root() -> Path:
    """Find the root config file or directory."""
    base = Path(os.getenv("ASSET_VIEWER_ROOT", "."))
    config_dir = base / "config"
    if config_dir.is_dir():
        return config_dir

    for p in _CONFIG_SEARCH_PATHS:
        path = base / p
        if path.exists():
            return path

    return base


def deep_merge_dict(base: dict, update: dict) -> dict:
    """Deep merge two dictionaries. Lists under 'descriptors' are appended, others replaced."""
    for k, v in update.items():
        if isinstance(v, dict) and k in base and isinstance(base[k], dict):
            base[k] = deep_merge_dict(base[k], v)
        elif isinstance(v, list) and k in base and isinstance(base[k], list):
            if k in ("descriptors", "value_descriptors"):
                base[k].extend(v)
            else:
                base[k] = v
        else:
            base[k] = v
    return base


def load_all_yamls(root: Path) -> dict:
    """Load and merge all YAML files."""
    combined: dict = {}

    files = []
    if root.is_file():
        files.append(root)
    elif root.is_dir():
        files.extend(root.glob("**/*.yaml"))
        files.extend(root.glob("**/*.yml"))
        files.sort()

    for f in files:
        try:
            with open(f, "r", encoding="utf-8") as fp:
                content = yaml.safe_load(fp)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"读取配置文件失败 {f}: {e}")
            continue
        if not content or not isinstance(content, dict):
            continue
        deep_merge_dict(combined, copy.deepcopy(content))

    return combined


def load_config(path: Optional[str | Path] = None) -> AppConfig:
    """
    Load, merge and validate configuration from YAML files.
    """
    if path is None:
        path = find_config_root()
    path = Path(path)

    raw = load_all_yamls(path)
    config = AppConfig.model_validate(raw)
    logger.info(
        f"配置已加载: {len(config.viewer.asset_types)} 个类型覆盖, "
        f"{len(config.descriptors)} 个资产描述符, {len(config.translations)} 条翻译"
    )
    return config
