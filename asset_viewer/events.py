"""
进程内事件总线：资产 / 属性变更事件，以及视图对外发出的布局重算与保存结果信号。
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

ASSET_EVENT = "asset"
ATTRIBUTE_EVENT = "attribute"
LAYOUT_REQUESTED = "asset-viewer-compute-grid"
SAVE_RESULT = "asset-viewer-save-result"

Handler = Callable[[Any], None]


class EventBus:
    """Topic -> handlers. Handlers run synchronously in publish order."""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """注册处理函数，返回取消订阅的函数。"""
        self._handlers[topic].append(handler)

        def _unsubscribe():
            if handler in self._handlers[topic]:
                self._handlers[topic].remove(handler)

        return _unsubscribe

    def publish(self, topic: str, payload: Any = None):
        for handler in list(self._handlers[topic]):
            try:
                handler(payload)
            except Exception as e:
                logger.error(f"事件处理失败 [{topic}]: {e}", exc_info=True)

    def handler_count(self, topic: str) -> int:
        return len(self._handlers[topic])
