"""
可视区域模型 - 实时渲染树与采集克隆

VisualRegion 由外部渲染层持有并原地更新；核心只读取它来生成
CaptureClone（深拷贝、分离），所有修复都在克隆上进行。
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum

from pydantic import BaseModel, Field


class NodeKind(str, Enum):
    """节点类型"""
    BOX = "box"          # 普通容器（可带背景）
    TEXT = "text"        # 文本
    IMAGE = "image"      # 图片（src 为 URL 或 data URI）
    CANVAS = "canvas"    # 动态绘制表面（如图表）


class BBox(BaseModel):
    """边界框（区域绝对坐标，逻辑像素）"""
    xmin: float
    ymin: float
    xmax: float
    ymax: float

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    def vertical_overlap(self, other: BBox) -> bool:
        """判断纵向区间是否重叠（不含相切）"""
        return self.ymin < other.ymax and other.ymin < self.ymax


class Transform(BaseModel):
    """变换（缩放 + 平移）"""
    scale: float | None = None
    translate_x: float = 0.0
    translate_y: float = 0.0

    @property
    def has_translation(self) -> bool:
        return self.translate_x != 0 or self.translate_y != 0


class Edges(BaseModel):
    """四边距"""
    top: float = 0.0
    right: float = 0.0
    bottom: float = 0.0
    left: float = 0.0

    @property
    def is_zero(self) -> bool:
        return not (self.top or self.right or self.bottom or self.left)


class Style(BaseModel):
    """节点样式"""
    background: str | None = None
    color: str = "#000000"
    transform: Transform | None = None
    margin: Edges = Field(default_factory=Edges)
    z_index: int | None = None


class DrawingSurface(BaseModel):
    """动态绘制表面（图表画布）"""
    width: int = 0
    height: int = 0
    rgba: bytes | None = Field(None, description="RGBA原始像素，长度应为 width*height*4")
    fill: str | None = Field(None, description="无像素数据时的填充色")


class Node(BaseModel):
    """渲染树节点"""
    node_id: str
    kind: NodeKind = NodeKind.BOX
    bbox: BBox
    style: Style = Field(default_factory=Style)
    text: str | None = None
    src: str | None = None
    surface: DrawingSurface | None = None
    role: str | None = Field(None, description="语义角色，如 title")
    children: list[Node] = Field(default_factory=list)

    def iter(self) -> Iterator[Node]:
        """深度优先遍历（含自身）"""
        yield self
        for child in self.children:
            yield from child.iter()

    def find(self, node_id: str) -> Node | None:
        """按ID查找节点"""
        for node in self.iter():
            if node.node_id == node_id:
                return node
        return None


class CaptureClone(BaseModel):
    """采集克隆（一次采集独占，用后丢弃）"""
    source_id: str
    root: Node
    disposed: bool = False

    def iter_nodes(self) -> Iterator[Node]:
        return self.root.iter()

    def dispose(self) -> None:
        """释放克隆树（图片数据等随之释放）"""
        self.root.children = []
        self.root.src = None
        self.root.surface = None
        self.disposed = True


class VisualRegion(BaseModel):
    """实时可视区域（外部渲染层持有）"""
    entity_id: str
    display_name: str | None = None
    root: Node

    @property
    def name(self) -> str:
        return self.display_name or self.entity_id

    def clone(self) -> CaptureClone:
        """生成分离的深拷贝"""
        return CaptureClone(source_id=self.entity_id, root=self.root.model_copy(deep=True))
