"""
批量编排器 - 逐个切换实体并导出，汇总为zip

职责：
1. 按顺序处理实体（共享同一个可视区域，严格串行）
2. 每项前等待渲染层切换完成
3. 失败隔离：单项失败记录到清单，继续下一项
4. 项与项之间检查取消
5. 汇总打包；打包失败是唯一向上抛出的错误

测试要点：
- test_failure_isolated: 第k项失败，清单N项、zip N-1项
- test_empty_batch: N=0 不发 start
- test_switch_failure: 切换失败记为该项失败
- test_cancel_between_items: 取消只在项间生效
- test_archive_failure_propagates: 打包失败抛出
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path

from ..config import RuntimeConfig, get_config
from ..export import SingleItemExporter
from ..interfaces import ArchiveWriteError, IArchivePackager, IItemExporter, IProgressReporter
from ..models import (
    BatchManifest,
    ErrorKind,
    ExportItem,
    ExportMode,
    ProgressPhase,
    VisualRegion,
)
from ..progress import emit
from .packager import Packager, assign_entry_names

logger = logging.getLogger(__name__)

SwitchHook = Callable[[str], Awaitable[None]]
ResetHook = Callable[[], Awaitable[None]]


class CancelToken:
    """取消令牌（由界面设置，编排器在项间检查）"""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class BatchOrchestrator:
    """批量编排器"""

    def __init__(
        self,
        region: VisualRegion,
        exporter: IItemExporter | None = None,
        packager: IArchivePackager | None = None,
        reporter: IProgressReporter | None = None,
        config: RuntimeConfig | None = None,
    ):
        self.region = region
        self.config = config or get_config()
        self.exporter = exporter or SingleItemExporter(config=self.config)
        self.reporter = reporter
        self.packager = packager or Packager(
            self.config.archive,
            reporter=reporter,
            archive_name=self.config.archive_name(),
        )

    async def export_all(
        self,
        entity_ids: Iterable[str],
        switch_to: SwitchHook,
        *,
        reset: ResetHook | None = None,
        cancel: CancelToken | None = None,
        display_name: Callable[[str], str] | None = None,
        output_dir: Path | None = None,
    ) -> BatchManifest:
        """批量导出"""
        ids = list(entity_ids)
        total = len(ids)
        manifest = BatchManifest(total=total)
        manifest.mark_running()

        if total == 0:
            manifest.mark_succeeded()
            emit(self.reporter, ProgressPhase.DONE, 0, 0, "没有需要导出的实体")
            return manifest

        emit(self.reporter, ProgressPhase.START, 0, total, f"开始批量导出 {total} 个实体")
        names: list[str] = []

        for index, entity_id in enumerate(ids):
            if cancel is not None and cancel.cancelled:
                logger.info(f"批量导出已取消: 完成 {index}/{total}")
                break

            item = await self._process(entity_id, switch_to, reset)
            manifest.add(item)
            name = self._display_name(entity_id, display_name)
            names.append(name)

            if item.ok:
                emit(self.reporter, ProgressPhase.ITEM_DONE, index + 1, total,
                     f"处理 {name} ({index + 1}/{total})", entity_id)
            else:
                emit(self.reporter, ProgressPhase.ITEM_FAILED, index + 1, total,
                     f"{name} 导出失败: {item.message}", entity_id)

        cancelled = len(manifest) < total
        await self._finalize(manifest, names, output_dir or self.config.output_dir)

        summary = manifest.summary()
        message = f"成功 {summary.succeeded}，失败 {summary.failed}"
        if summary.failed_ids:
            message += f"（{', '.join(summary.failed_ids)}）"

        if cancelled:
            manifest.mark_cancelled()
            emit(self.reporter, ProgressPhase.ABORTED, len(manifest), total, f"已取消：{message}")
        else:
            manifest.mark_succeeded()
            emit(self.reporter, ProgressPhase.DONE, total, total, message)

        self._write_summary(manifest)
        logger.info(f"批量导出结束: {message}")
        return manifest

    async def _process(
        self,
        entity_id: str,
        switch_to: SwitchHook,
        reset: ResetHook | None,
    ) -> ExportItem:
        """切换并导出单项"""
        try:
            await switch_to(entity_id)
        except Exception as e:
            logger.warning(f"[{entity_id}] 切换实体失败: {e}")
            if reset is not None:
                try:
                    await reset()
                except Exception:
                    logger.exception(f"[{entity_id}] 重置可视区域失败")
            return ExportItem.failure(entity_id, ErrorKind.SWITCH, str(e) or type(e).__name__)

        return await self.exporter.export_one(self.region, entity_id, ExportMode.BATCH)

    def _display_name(self, entity_id: str, display_name: Callable[[str], str] | None) -> str:
        if display_name is not None:
            try:
                return display_name(entity_id)
            except Exception as e:
                logger.warning(f"[{entity_id}] 获取显示名失败，使用实体ID: {e}")
                return entity_id
        if self.region.entity_id == entity_id:
            return self.region.name
        return entity_id

    async def _finalize(self, manifest: BatchManifest, names: list[str], output_dir: Path) -> None:
        """打包成功项（失败时丢弃残缺zip并抛出）"""
        assign_entry_names(manifest, names, self.config.archive.entry_suffix)
        try:
            manifest.archive_path = await asyncio.to_thread(
                self.packager.package, manifest, output_dir
            )
        except ArchiveWriteError as e:
            logger.exception("批量打包失败")
            manifest.mark_failed(str(e))
            emit(self.reporter, ProgressPhase.ABORTED, len(manifest), manifest.total, f"打包失败: {e}")
            raise

    def _write_summary(self, manifest: BatchManifest) -> None:
        if not self.config.archive.write_summary or manifest.archive_path is None:
            return
        try:
            manifest.summary_path = self.packager.write_summary(manifest, manifest.archive_path)
        except OSError as e:
            logger.warning(f"汇总文件写入失败: {e}")
