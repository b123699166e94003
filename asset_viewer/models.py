"""
Data models for assets, attributes and the events that mutate them.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


GROUP_ASSET_TYPE = "urn:openremote:asset:group"
THING_ASSET_TYPE = "urn:openremote:asset:thing"

# Meta item keys understood by the viewer
META_STORE_DATA_POINTS = "storeDataPoints"
META_LABEL = "label"
META_READ_ONLY = "readOnly"

# Status returned by the store when an update was accepted without a body
STATUS_NO_CONTENT = 204


class Attribute(BaseModel):
    """A named, typed data point of an asset."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: Optional[str] = Field(default=None, description="Value type, e.g. number / text / boolean")
    value: Any = None
    timestamp: Optional[int] = Field(default=None, description="Epoch millis of the last value change")
    meta: Dict[str, Any] = Field(default_factory=dict, description="Meta key -> value")

    def get_meta(self, key: str, default: Any = None) -> Any:
        return self.meta.get(key, default)

    @property
    def stores_data_points(self) -> bool:
        return bool(self.meta.get(META_STORE_DATA_POINTS))


class Asset(BaseModel):
    """The inspected domain object."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    name: str = ""
    type: str = THING_ASSET_TYPE
    created_on: Optional[int] = Field(default=None, alias="createdOn", description="Epoch millis")
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    path: Optional[List[str]] = Field(default=None, description="Own id first, then ancestors nearest first")
    access_public_read: bool = Field(default=False, alias="accessPublicRead")
    realm: Optional[str] = None
    attributes: Dict[str, Attribute] = Field(default_factory=dict)

    def get_property(self, name: str) -> Any:
        """按属性名（支持 camelCase 别名）读取资产属性。"""
        for field_name, info in type(self).model_fields.items():
            if name == field_name or name == info.alias:
                return getattr(self, field_name)
        return (self.model_extra or {}).get(name)

    def get_attribute(self, name: str) -> Optional[Attribute]:
        return self.attributes.get(name)

    def attribute_list(self) -> List[Attribute]:
        """Attributes in declared order."""
        return list(self.attributes.values())


# ── 查询 ──────────────────────────────────────────────

class AssetSelect(BaseModel):
    """Bandwidth controls for asset queries."""
    model_config = ConfigDict(populate_by_name=True)

    exclude_path: bool = Field(default=False, alias="excludePath")
    exclude_parent_info: bool = Field(default=False, alias="excludeParentInfo")
    exclude_attributes: bool = Field(default=False, alias="excludeAttributes")


class AssetQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    select: AssetSelect = Field(default_factory=AssetSelect)
    ids: Optional[List[str]] = None
    parents: Optional[List[str]] = Field(default=None, description="Parent asset ids")
    types: Optional[List[str]] = None


class StoreResponse(BaseModel):
    """Result of a store query: HTTP-like status plus the returned assets."""
    status: int
    data: Optional[List[Asset]] = None


# ── 事件 ──────────────────────────────────────────────

class AssetEvent(BaseModel):
    """Whole-asset replacement. ``asset`` is None when the id could not be resolved."""
    asset_id: str
    asset: Optional[Asset] = None


class AttributeEvent(BaseModel):
    """Attribute value change or deletion."""
    asset_id: str
    attribute_name: str
    value: Any = None
    timestamp: Optional[int] = None
    deleted: bool = False


class SaveResult(BaseModel):
    asset: Asset
    status_code: int


class ViewerState(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    NOT_FOUND = "not_found"
    VIEWING = "viewing"
    EDITING = "editing"
