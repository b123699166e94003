"""
瀑布流网格布局：在内容稳定后根据面板实际高度计算每个面板占用的行数。
以及渲染轮次（RenderPass）：收集延迟回调与异步内容任务，全部完成后触发布局。
"""

import asyncio
import logging
import math
import re
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from asset_viewer.content import Node

logger = logging.getLogger(__name__)

ROW_HEIGHT_STYLE = "grid-auto-rows"
ROW_GAP_STYLE = "grid-row-gap"
ROW_END_STYLE = "grid-row-end"
PANEL_CLASS = "panel"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_px(value: Optional[str]) -> Optional[int]:
    """Integer prefix of a CSS length, like ``parseInt("10px")``."""
    if value is None:
        return None
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def compute_row_span(content_height: float, row_height: int, row_gap: int) -> int:
    return math.ceil((content_height + row_gap) / (row_height + row_gap))


class PanelHandle(Protocol):
    def content_height(self) -> Optional[float]: ...

    def set_row_span(self, span: int) -> None: ...


class LayoutContainer(Protocol):
    def row_height(self) -> Optional[int]: ...

    def row_gap(self) -> Optional[int]: ...

    def panels(self) -> List[PanelHandle]: ...


class _NodePanel:
    def __init__(self, node: Node, height: Optional[float]):
        self.node = node
        self._height = height

    def content_height(self) -> Optional[float]:
        return self._height

    def set_row_span(self, span: int) -> None:
        self.node.styles[ROW_END_STYLE] = f"span {span}"


class NodeLayoutContainer:
    """
    Layout container backed by a content tree.
    Heights are the renderer-measured heights of each panel's content wrapper, keyed by panel id.
    """

    def __init__(self, container: Node, measurements: Dict[str, float]):
        self.container = container
        self.measurements = measurements

    def row_height(self) -> Optional[int]:
        return parse_px(self.container.styles.get(ROW_HEIGHT_STYLE))

    def row_gap(self) -> Optional[int]:
        return parse_px(self.container.styles.get(ROW_GAP_STYLE))

    def panels(self) -> List[PanelHandle]:
        return [
            _NodePanel(node, self.measurements.get(node.id))
            for node in self.container.children
            if PANEL_CLASS in node.classes
        ]


def relayout(container: Optional[LayoutContainer]) -> Dict[int, int]:
    """
    为容器中的每个面板设置 row span。可重入、幂等。
    返回 {面板序号: span}，未测量的面板跳过。
    """
    spans: Dict[int, int] = {}
    if container is None:
        return spans

    row_height = container.row_height() or 0
    row_gap = container.row_gap() or 0
    if row_height + row_gap <= 0:
        logger.warning(f"网格行高无效 (row_height={row_height}, row_gap={row_gap})，跳过布局")
        return spans

    for index, panel in enumerate(container.panels()):
        height = panel.content_height()
        if height is None:
            continue
        span = compute_row_span(height, row_height, row_gap)
        panel.set_row_span(span)
        spans[index] = span
    return spans


class RenderPass:
    """
    一次渲染的延迟回调登记表。
    回调在渲染挂载完成后统一执行一次；异步内容任务全部结束后才发出完成信号。
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._callbacks: List[Callable[[], None]] = []
        self._tasks: List[asyncio.Task] = []
        self._drained = False
        self.completed = False

    @property
    def drained(self) -> bool:
        return self._drained

    def add_callback(self, callback: Callable[[], None]):
        if self._drained:
            # 已经排空的轮次直接执行
            callback()
            return
        self._callbacks.append(callback)

    def schedule(self, coro: Awaitable) -> asyncio.Task:
        """在当前事件循环上启动异步内容任务（不支持取消）。"""
        task = asyncio.ensure_future(coro)
        self._tasks.append(task)
        return task

    def drain(self):
        """执行并丢弃所有延迟回调，仅执行一次。"""
        if self._drained:
            return
        callbacks, self._callbacks = self._callbacks, []
        self._drained = True
        for cb in callbacks:
            cb()

    async def settle(self):
        """等待回调执行完毕以及所有内容任务结束。"""
        self.drain()
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)
        for task in self._tasks:
            if not task.cancelled() and task.exception() is not None:
                logger.error(f"渲染任务失败 [{self.name}]: {task.exception()}")
        self.completed = True
