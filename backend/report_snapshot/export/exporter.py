"""
单项导出器 - 克隆 → 规范化 → 光栅化 → 编码 → 保存/返回

职责：
1. 编排单个实体的采集流程
2. 失败隔离：任何阶段的异常都转为失败结果，不向外抛
3. 每条退出路径都释放克隆与光栅缓冲

测试要点：
- test_export_batch_mode: 批量模式返回PNG字节
- test_export_standalone_writes_file: 独立模式落盘
- test_capture_failure_mapped: 采集失败映射
- test_encode_failure_mapped: 编码失败映射
- test_live_region_untouched: 实时区域不被修改
"""

from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path

from PIL import Image

from ..capture import Rasterizer, ResourceFetcher, SurfaceNormalizer
from ..config import RuntimeConfig, get_config
from ..interfaces import (
    CaptureError,
    EncodeError,
    IItemExporter,
    IProgressReporter,
    IRasterizer,
    ISurfaceNormalizer,
)
from ..models import (
    CaptureClone,
    ErrorKind,
    ExportItem,
    ExportMode,
    ProgressPhase,
    RasterResult,
    VisualRegion,
)
from ..naming import entry_name
from ..progress import emit

logger = logging.getLogger(__name__)


def encode_raster(raster: RasterResult, image_format: str = "PNG") -> bytes:
    """光栅结果编码为图片字节"""
    try:
        img = Image.frombytes(raster.mode, (raster.width, raster.height), raster.pixels)
    except ValueError as e:
        raise EncodeError(f"像素缓冲与尺寸不符: {e}") from e

    buf = io.BytesIO()
    try:
        img.save(buf, format=image_format)
    except (KeyError, ValueError, OSError) as e:
        raise EncodeError(f"编码{image_format}失败: {e}") from e
    finally:
        img.close()
    return buf.getvalue()


class SingleItemExporter(IItemExporter):
    """单项导出器实现"""

    def __init__(
        self,
        normalizer: ISurfaceNormalizer | None = None,
        rasterizer: IRasterizer | None = None,
        config: RuntimeConfig | None = None,
        reporter: IProgressReporter | None = None,
    ):
        self.config = config or get_config()
        self.normalizer = normalizer or SurfaceNormalizer(
            fetcher=ResourceFetcher(self.config.fetch),
            capture=self.config.capture,
            stacking=self.config.stacking,
        )
        self.rasterizer = rasterizer or Rasterizer(self.config.capture)
        self.reporter = reporter

    async def export_one(
        self,
        region: VisualRegion,
        entity_id: str,
        mode: ExportMode = ExportMode.BATCH,
        output_dir: Path | None = None,
    ) -> ExportItem:
        """导出单个实体（不抛异常）"""
        standalone = mode == ExportMode.STANDALONE
        if standalone:
            emit(self.reporter, ProgressPhase.START, 0, 1, f"开始导出 {region.name}", entity_id)

        item = await self._export(region, entity_id, standalone, output_dir)

        if standalone:
            if item.ok:
                emit(self.reporter, ProgressPhase.DONE, 1, 1, f"已保存 {item.path}", entity_id)
            else:
                emit(self.reporter, ProgressPhase.ITEM_FAILED, 1, 1, item.message, entity_id)
        return item

    async def _export(
        self,
        region: VisualRegion,
        entity_id: str,
        standalone: bool,
        output_dir: Path | None,
    ) -> ExportItem:
        clone: CaptureClone | None = None
        try:
            clone = region.clone()
            await self.normalizer.normalize(clone)
            raster = await asyncio.to_thread(
                self.rasterizer.rasterize, clone, self.config.capture.scale
            )
        except CaptureError as e:
            return self._failure(entity_id, ErrorKind.CAPTURE, str(e))
        except Exception as e:
            logger.exception(f"[{entity_id}] 采集异常")
            return self._failure(entity_id, ErrorKind.CAPTURE, f"{type(e).__name__}: {e}")
        finally:
            if clone is not None:
                clone.dispose()

        try:
            data = encode_raster(raster, self.config.capture.image_format)
            path = None
            if standalone:
                path = await asyncio.to_thread(
                    self._save, data, region.name, output_dir or self.config.output_dir
                )
        except EncodeError as e:
            return self._failure(entity_id, ErrorKind.ENCODE, str(e))
        except OSError as e:
            return self._failure(entity_id, ErrorKind.ENCODE, f"保存失败: {e}")
        finally:
            del raster

        logger.info(f"[{entity_id}] 导出完成 ({len(data)} bytes)")
        return ExportItem.success(entity_id, data, path)

    def _save(self, data: bytes, name: str, output_dir: Path) -> Path:
        """独立模式：写入 <安全名>.png"""
        output_dir.mkdir(parents=True, exist_ok=True)
        ext = "." + self.config.capture.image_format.lower()
        path = output_dir / entry_name(name, self.config.archive.entry_suffix, ext)
        path.write_bytes(data)
        return path

    @staticmethod
    def _failure(entity_id: str, kind: ErrorKind, message: str) -> ExportItem:
        logger.warning(f"[{entity_id}] 导出失败 {kind.value}: {message}")
        return ExportItem.failure(entity_id, kind, message)
