"""
翻译查找：key -> 文本，未找到时返回 key 本身。
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")

DEFAULT_TRANSLATIONS: Dict[str, str] = {
    "loading": "Loading",
    "notFound": "Not found",
    "noAssetSelected": "No asset selected",
    "noChildAssets": "No child assets",
    "groupAssetName": "Name",
    "addRemoveAttributes": "Add/remove attributes",
    "underlyingAssets": "Underlying assets",
    "attribute": "Attribute",
    "createdOnWithDate": "Created on {{date}}",
    "name": "Name",
    "createdOn": "Created on",
    "type": "Type",
    "parentId": "Parent",
    "accessPublicRead": "Public read access",
    "save": "Save",
    "ok": "OK",
    "cancel": "Cancel",
}


class Translator:
    def __init__(self, translations: Optional[Dict[str, str]] = None):
        self._translations = {**DEFAULT_TRANSLATIONS, **(translations or {})}

    def t(self, key: str, **options: Any) -> str:
        text = self._translations.get(key)
        if text is None:
            return key

        def _sub(match: re.Match) -> str:
            name = match.group(1)
            if name not in options:
                return match.group(0)
            value = options[name]
            if isinstance(value, datetime):
                return value.strftime("%Y-%m-%d %H:%M:%S")
            return str(value)

        return _PLACEHOLDER.sub(_sub, text)

    __call__ = t

    def update(self, translations: Dict[str, str]):
        self._translations.update(translations)


def millis_to_datetime(millis: Optional[int]) -> Optional[datetime]:
    if millis is None:
        return None
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
