"""
声明式内容树：视图层产出的节点，由外部渲染器负责绘制。
事件处理函数保留在服务端，通过 node id 分发。
"""

from typing import Any, Callable, Dict, Iterator, List, Optional

from pydantic import BaseModel, Field


class Node(BaseModel):
    """One element of the content tree."""
    tag: str
    id: Optional[str] = None
    props: Dict[str, Any] = Field(default_factory=dict)
    styles: Dict[str, str] = Field(default_factory=dict)
    classes: List[str] = Field(default_factory=list)
    children: List["Node"] = Field(default_factory=list)
    text: Optional[str] = None
    hidden: bool = False

    # event name -> handler(value)
    handlers: Dict[str, Callable[..., Any]] = Field(default_factory=dict, exclude=True)

    def walk(self) -> Iterator["Node"]:
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, node_id: str) -> Optional["Node"]:
        for node in self.walk():
            if node.id == node_id:
                return node
        return None

    def find_by_class(self, cls: str) -> List["Node"]:
        return [node for node in self.walk() if cls in node.classes]

    def on(self, event: str, handler: Callable[..., Any]) -> "Node":
        self.handlers[event] = handler
        return self

    def set_class(self, cls: str, enabled: bool):
        if enabled and cls not in self.classes:
            self.classes.append(cls)
        elif not enabled and cls in self.classes:
            self.classes.remove(cls)


def h(tag: str, *children: Optional[Node], id: Optional[str] = None, text: Optional[str] = None,
      styles: Optional[Dict[str, str]] = None, classes: Optional[List[str]] = None,
      hidden: bool = False, **props: Any) -> Node:
    """Shorthand node constructor; ``None`` children are skipped."""
    return Node(
        tag=tag,
        id=id,
        props=props,
        styles=dict(styles or {}),
        classes=list(classes or []),
        children=[c for c in children if c is not None],
        text=text,
        hidden=hidden,
    )
