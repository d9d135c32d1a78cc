"""
光栅化器 - 规范化后的克隆树绘制为像素缓冲（Pillow）

职责：
1. 按根节点逻辑尺寸 × scale 生成画布（向下取整，结果确定）
2. 按层叠顺序绘制背景、图片、文本
3. 内容被拒绝时抛 CaptureError

绘制顺序：父节点先于子节点；兄弟节点按 (z_index, 文档顺序)。
未内联的远程图片不绘制（与内联失败"保留原样"的策略一致）。

测试要点：
- test_output_size: 输出尺寸 = floor(逻辑尺寸 × scale)
- test_zero_root_raises: 零尺寸根节点
- test_bad_data_uri_raises: 无法解码的内嵌图片
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import math
from pathlib import Path
from urllib.parse import unquote_to_bytes

from PIL import Image, ImageColor, ImageDraw, ImageFont

from ..config import CaptureConfig
from ..interfaces import CaptureError, IRasterizer
from ..models import CaptureClone, Node, NodeKind, RasterResult
from .fetcher import is_remote

logger = logging.getLogger(__name__)

BASE_FONT_SIZE = 12


def decode_data_uri(src: str) -> bytes:
    """解析 data URI 负载"""
    header, sep, payload = src.partition(",")
    if not sep:
        raise ValueError("data URI 缺少负载")
    if header.endswith(";base64"):
        return base64.b64decode(payload, validate=True)
    return unquote_to_bytes(payload)


class Rasterizer(IRasterizer):
    """Pillow 光栅化器实现"""

    def __init__(self, config: CaptureConfig | None = None):
        self.config = config or CaptureConfig()

    def rasterize(self, clone: CaptureClone, scale: float | None = None) -> RasterResult:
        """克隆树光栅化"""
        scale = scale or self.config.scale
        root = clone.root
        width = math.floor(root.bbox.width * scale)
        height = math.floor(root.bbox.height * scale)
        if width <= 0 or height <= 0:
            raise CaptureError(
                f"[{clone.source_id}] 根节点尺寸无效: {root.bbox.width}x{root.bbox.height}"
            )

        canvas = Image.new("RGBA", (width, height), self._color(self.config.background) or (0, 0, 0, 0))
        try:
            self._paint(canvas, root, (root.bbox.xmin, root.bbox.ymin), scale)
            pixels = canvas.tobytes()
        finally:
            canvas.close()

        return RasterResult(
            pixels=pixels,
            width=width,
            height=height,
            scale=scale,
            source_id=clone.source_id,
        )

    def _paint(self, canvas: Image.Image, node: Node, origin: tuple[float, float], scale: float) -> None:
        box = self._box(node, origin, scale)
        x0, y0, x1, y1 = box

        background = self._color(node.style.background)
        if background and x1 > x0 and y1 > y0:
            layer = Image.new("RGBA", (x1 - x0, y1 - y0), background)
            self._composite(canvas, layer, x0, y0)

        if node.kind == NodeKind.CANVAS:
            raise CaptureError(f"绘制表面未物化: {node.node_id}")
        if node.kind == NodeKind.IMAGE:
            self._paint_image(canvas, node, box)
        elif node.kind == NodeKind.TEXT and node.text:
            self._paint_text(canvas, node, box, scale)

        ordered = sorted(
            enumerate(node.children),
            key=lambda pair: (pair[1].style.z_index or 0, pair[0]),
        )
        for _, child in ordered:
            self._paint(canvas, child, origin, scale)

    @staticmethod
    def _box(node: Node, origin: tuple[float, float], scale: float) -> tuple[int, int, int, int]:
        transform = node.style.transform
        factor = transform.scale if transform and transform.scale is not None else 1.0
        tx = transform.translate_x if transform else 0.0
        ty = transform.translate_y if transform else 0.0

        x = node.bbox.xmin + node.style.margin.left + tx - origin[0]
        y = node.bbox.ymin + node.style.margin.top + ty - origin[1]
        x0 = math.floor(x * scale)
        y0 = math.floor(y * scale)
        return (
            x0,
            y0,
            x0 + math.floor(node.bbox.width * factor * scale),
            y0 + math.floor(node.bbox.height * factor * scale),
        )

    def _paint_image(self, canvas: Image.Image, node: Node, box: tuple[int, int, int, int]) -> None:
        src = (node.src or "").strip()
        if not src:
            return
        if is_remote(src):
            logger.warning(f"远程图片未内联，跳过绘制: {node.node_id} ({src})")
            return

        x0, y0, x1, y1 = box
        if x1 <= x0 or y1 <= y0:
            return

        try:
            if src.startswith("data:"):
                raw = io.BytesIO(decode_data_uri(src))
            elif Path(src).is_file():
                raw = Path(src).open("rb")
            else:
                logger.warning(f"本地图片不存在，跳过绘制: {node.node_id} ({src})")
                return
            with raw, Image.open(raw) as img:
                tile = img.convert("RGBA").resize((x1 - x0, y1 - y0))
        except (binascii.Error, ValueError, OSError) as e:
            raise CaptureError(f"图片内容被拒绝: {node.node_id}: {e}") from e

        self._composite(canvas, tile, x0, y0)

    def _paint_text(self, canvas: Image.Image, node: Node, box: tuple[int, int, int, int], scale: float) -> None:
        transform = node.style.transform
        factor = transform.scale if transform and transform.scale is not None else 1.0
        font = ImageFont.load_default(size=max(1, round(BASE_FONT_SIZE * scale * factor)))
        fill = self._color(node.style.color) or (0, 0, 0, 255)
        try:
            ImageDraw.Draw(canvas).text((box[0], box[1]), node.text, fill=fill, font=font)
        except UnicodeEncodeError:
            # 位图字体不支持的字符
            logger.warning(f"文本含字体不支持的字符，跳过绘制: {node.node_id}")

    @staticmethod
    def _composite(canvas: Image.Image, tile: Image.Image, x: int, y: int) -> None:
        """贴图（超出画布部分裁掉）"""
        left, top = max(x, 0), max(y, 0)
        right = min(x + tile.width, canvas.width)
        bottom = min(y + tile.height, canvas.height)
        if right <= left or bottom <= top:
            return
        part = tile.crop((left - x, top - y, right - x, bottom - y))
        canvas.alpha_composite(part, (left, top))

    @staticmethod
    def _color(value: str | None) -> tuple[int, ...] | None:
        if not value:
            return None
        try:
            return ImageColor.getcolor(value, "RGBA")
        except ValueError:
            logger.debug(f"无法解析颜色: {value}")
            return None
