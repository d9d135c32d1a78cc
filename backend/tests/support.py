"""
测试辅助 - 桩实现与节点构造
"""

from __future__ import annotations

import io

from PIL import Image

from report_snapshot.capture import to_data_uri
from report_snapshot.interfaces import IResourceFetcher
from report_snapshot.models import (
    BBox,
    DrawingSurface,
    Edges,
    FetchOutcome,
    FetchStatus,
    Node,
    NodeKind,
    Style,
    Transform,
)


class StubFetcher(IResourceFetcher):
    """远程获取桩：payloads 中的地址成功，其余跳过"""

    def __init__(self, payloads: dict[str, bytes] | None = None):
        self.payloads = payloads or {}
        self.calls: list[str] = []

    def fetch_data_uri(self, url: str, node_id: str = "") -> FetchOutcome:
        self.calls.append(url)
        if url in self.payloads:
            return FetchOutcome(
                url=url,
                node_id=node_id,
                status=FetchStatus.INLINED,
                data_uri=to_data_uri(self.payloads[url]),
            )
        return FetchOutcome(url=url, node_id=node_id, status=FetchStatus.SKIPPED, reason="unreachable")


def make_png(width: int = 8, height: int = 8, color: str = "red") -> bytes:
    """生成小PNG"""
    buf = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def box(node_id: str, x0: float, y0: float, x1: float, y1: float, **kwargs) -> Node:
    """快速构造节点"""
    return Node(node_id=node_id, bbox=BBox(xmin=x0, ymin=y0, xmax=x1, ymax=y1), **kwargs)


def build_report_root(width: float = 500, height: float = 300) -> Node:
    """典型报告：标题 + 白底头部 + 图表 + 远程图片 + 缩放评语"""
    return box(
        "root", 0, 0, width, height,
        style=Style(background="#ffffff"),
        children=[
            box("title", 10, 0, 490, 30, kind=NodeKind.TEXT, text="学习情况报告", role="title"),
            box("header", 0, 10, 500, 40, style=Style(background="#ffffff", z_index=1)),
            box(
                "chart", 0, 50, 400, 250,
                kind=NodeKind.CANVAS,
                surface=DrawingSurface(width=400, height=200, fill="#3366cc"),
            ),
            box("logo", 410, 50, 490, 130, kind=NodeKind.IMAGE, src="http://example.invalid/logo.png"),
            box(
                "comment", 0, 260, 500, 300,
                style=Style(
                    transform=Transform(scale=0.9, translate_x=-25.0),
                    margin=Edges(left=25.0),
                ),
                children=[box("comment-text", 0, 260, 500, 300, kind=NodeKind.TEXT, text="Good work")],
            ),
        ],
    )

