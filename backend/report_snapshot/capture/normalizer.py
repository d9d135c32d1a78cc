"""
表面规范化器 - 修复采集克隆中无法直接光栅化的元素

职责：
1. 绘制表面物化：canvas 节点转为等尺寸的静态图片节点（零尺寸用回退尺寸）
2. 远程资源内联：网络图片转 data URI，失败跳过并记录原因
3. 变换修复：缩放+平移组合时去掉平移、边距归零，保留缩放
4. 层叠修复：与受保护元素（如标题）纵向重叠的同色背景兄弟节点降层

约束：
- 只操作分离的克隆，实时区域不受影响
- 幂等；缺失/空的子元素不抛异常

测试要点：
- test_zero_surface_fallback: 零尺寸表面回退
- test_data_uri_passthrough: data URI 不变
- test_transform_repair_idempotent: 变换修复幂等
- test_stacking_protects_title: 标题层级不低于兄弟节点
"""

from __future__ import annotations

import asyncio
import io
import logging

from PIL import Image, ImageColor

from ..config import CaptureConfig, StackingConfig
from ..interfaces import IResourceFetcher, ISurfaceNormalizer
from ..models import (
    CaptureClone,
    DrawingSurface,
    Edges,
    FetchOutcome,
    FetchStatus,
    Node,
    NodeKind,
    NormalizeReport,
)
from .fetcher import ResourceFetcher, is_remote, to_data_uri

logger = logging.getLogger(__name__)


def same_color(a: str | None, b: str | None) -> bool:
    """颜色比较（#fff / white / #FFFFFF 视为相同）"""
    if not a or not b:
        return False
    try:
        return ImageColor.getrgb(a.strip()) == ImageColor.getrgb(b.strip())
    except ValueError:
        return a.strip().lower() == b.strip().lower()


def surface_to_image(surface: DrawingSurface, width: int, height: int) -> Image.Image:
    """绘制表面转 Pillow 图片"""
    if surface.rgba and len(surface.rgba) == width * height * 4:
        return Image.frombytes("RGBA", (width, height), surface.rgba)

    color = (0, 0, 0, 0)
    if surface.fill:
        try:
            color = ImageColor.getcolor(surface.fill, "RGBA")
        except ValueError:
            logger.debug(f"无效填充色，使用透明: {surface.fill}")
    return Image.new("RGBA", (width, height), color)


class SurfaceNormalizer(ISurfaceNormalizer):
    """表面规范化器实现"""

    def __init__(
        self,
        fetcher: IResourceFetcher | None = None,
        capture: CaptureConfig | None = None,
        stacking: StackingConfig | None = None,
    ):
        self.fetcher = fetcher or ResourceFetcher()
        self.capture = capture or CaptureConfig()
        self.stacking = stacking or StackingConfig()
        self.last_report = NormalizeReport()

    async def normalize(self, clone: CaptureClone) -> CaptureClone:
        """依次执行四个修复步骤"""
        report = NormalizeReport()
        report.surfaces_materialized = self.materialize_surfaces(clone)
        report.fetches = await self.inline_remote_images(clone)
        report.transforms_repaired = self.repair_transforms(clone)
        report.nodes_demoted, report.nodes_promoted = self.repair_stacking(clone)
        self.last_report = report

        logger.debug(
            f"[{clone.source_id}] 规范化完成: 表面 {report.surfaces_materialized}, "
            f"内联 {len(report.fetches) - len(report.skipped)}/{len(report.fetches)}, "
            f"变换 {report.transforms_repaired}, 降层 {report.nodes_demoted}"
        )
        return clone

    # ------------------------------------------------------------------
    # 1. 绘制表面物化
    # ------------------------------------------------------------------

    def materialize_surfaces(self, clone: CaptureClone) -> int:
        """canvas 节点转为静态图片节点，返回转换数量"""
        count = 0
        for node in clone.iter_nodes():
            if node.kind != NodeKind.CANVAS:
                continue
            self._materialize(node)
            count += 1
        return count

    def _materialize(self, node: Node) -> None:
        surface = node.surface or DrawingSurface()
        width, height = surface.width, surface.height
        if width <= 0 or height <= 0:
            logger.debug(
                f"绘制表面尺寸为零({width}x{height})，使用回退尺寸: {node.node_id}"
            )
            width, height = self.capture.fallback_width, self.capture.fallback_height

        buf = io.BytesIO()
        surface_to_image(surface, width, height).save(buf, format="PNG")

        node.kind = NodeKind.IMAGE
        node.src = to_data_uri(buf.getvalue(), "image/png")
        node.surface = None
        if node.bbox.width <= 0 or node.bbox.height <= 0:
            node.bbox.xmax = node.bbox.xmin + width
            node.bbox.ymax = node.bbox.ymin + height

    # ------------------------------------------------------------------
    # 2. 远程资源内联
    # ------------------------------------------------------------------

    async def inline_remote_images(self, clone: CaptureClone) -> list[FetchOutcome]:
        """远程图片内联为 data URI；失败保留原地址"""
        outcomes = []
        for node in list(clone.iter_nodes()):
            if node.kind != NodeKind.IMAGE or not is_remote(node.src):
                continue
            outcome = await asyncio.to_thread(self.fetcher.fetch_data_uri, node.src, node.node_id)
            if outcome.status == FetchStatus.INLINED:
                node.src = outcome.data_uri
            outcomes.append(outcome)
        return outcomes

    # ------------------------------------------------------------------
    # 3. 变换修复
    # ------------------------------------------------------------------

    def repair_transforms(self, clone: CaptureClone) -> int:
        """缩放+平移：去平移、边距归零、保留缩放"""
        count = 0
        for node in clone.iter_nodes():
            transform = node.style.transform
            if transform is None or transform.scale is None or not transform.has_translation:
                continue
            transform.translate_x = 0.0
            transform.translate_y = 0.0
            node.style.margin = Edges()
            count += 1
        return count

    # ------------------------------------------------------------------
    # 4. 层叠修复
    # ------------------------------------------------------------------

    def repair_stacking(self, clone: CaptureClone) -> tuple[int, int]:
        """受保护元素上方的同色背景兄弟节点降层，返回(降层数, 提升数)"""
        demoted = promoted = 0
        roles = set(self.stacking.protected_roles)
        for parent in clone.iter_nodes():
            for protected in parent.children:
                if protected.role not in roles:
                    continue
                d, p = self._protect(protected, parent.children)
                demoted += d
                promoted += p
        return demoted, promoted

    def _protect(self, protected: Node, siblings: list[Node]) -> tuple[int, int]:
        demoted = 0
        top = protected.style.z_index or 0
        for sibling in siblings:
            if sibling is protected or sibling.role == protected.role:
                continue
            if not same_color(sibling.style.background, self.stacking.demote_background):
                continue
            if not sibling.bbox.vertical_overlap(protected.bbox):
                continue
            if (sibling.style.z_index or 0) >= top:
                sibling.style.z_index = top - 1
                demoted += 1

        highest = max(
            (s.style.z_index or 0 for s in siblings if s is not protected),
            default=top,
        )
        if highest > top:
            protected.style.z_index = highest
            return demoted, 1
        return demoted, 0
