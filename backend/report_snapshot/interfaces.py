"""
模块接口契约 - 定义各模块的抽象接口

设计原则：
1. 模块间通过接口通信，不直接依赖具体实现
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和mock替换

使用方式：
    from report_snapshot.interfaces import IRasterizer

    class MyRasterizer(IRasterizer):
        def rasterize(self, clone: CaptureClone, scale: float = 2.0) -> RasterResult:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .models import (
        BatchManifest,
        CaptureClone,
        ExportItem,
        FetchOutcome,
        ProgressEvent,
        RasterResult,
        VisualRegion,
    )


# ============================================================================
# 采集模块接口
# ============================================================================

class IResourceFetcher(ABC):
    """远程资源获取器接口 - 远程图片转data URI"""

    @abstractmethod
    def fetch_data_uri(self, url: str, node_id: str = "") -> FetchOutcome:
        """
        获取远程资源并编码为data URI

        Args:
            url: 资源地址
            node_id: 所属节点ID（用于日志和结果定位）

        Returns:
            获取结果（inlined/skipped），失败不抛异常
        """
        ...


class ISurfaceNormalizer(ABC):
    """表面规范化器接口 - 修复克隆树中无法直接采集的元素"""

    @abstractmethod
    async def normalize(self, clone: CaptureClone) -> CaptureClone:
        """
        原地规范化克隆树

        流程：
        1. 绘制表面物化为静态图片
        2. 远程图片内联为data URI
        3. 变换修复（去除平移，保留缩放）
        4. 层叠修复（保护标题等重要元素）

        Args:
            clone: 采集克隆

        Returns:
            同一个克隆（已修改）
        """
        ...


class IRasterizer(ABC):
    """光栅化器接口"""

    @abstractmethod
    def rasterize(self, clone: CaptureClone, scale: float = 2.0) -> RasterResult:
        """
        克隆树光栅化为像素缓冲

        Args:
            clone: 已规范化的采集克隆
            scale: 统一缩放倍数

        Returns:
            光栅结果

        Raises:
            CaptureError: 根节点尺寸为零或内容被拒绝
        """
        ...


# ============================================================================
# 导出与流水线接口
# ============================================================================

class IItemExporter(ABC):
    """单项导出器接口"""

    @abstractmethod
    async def export_one(self, region: VisualRegion, entity_id: str) -> ExportItem:
        """
        导出单个实体的可视区域（不抛异常）

        Args:
            region: 实时可视区域（只读）
            entity_id: 实体ID

        Returns:
            成功或失败的导出结果
        """
        ...


class IArchivePackager(ABC):
    """打包器接口"""

    @abstractmethod
    def package(self, manifest: BatchManifest, output_dir: Path) -> Path:
        """
        打包成功项为zip

        Args:
            manifest: 批量清单
            output_dir: 输出目录

        Returns:
            zip 路径

        Raises:
            ArchiveWriteError: 写入失败（已删除残留文件）
        """
        ...

    @abstractmethod
    def write_summary(self, manifest: BatchManifest, archive_path: Path) -> Path:
        """
        生成汇总json

        Args:
            manifest: 批量清单
            archive_path: zip 路径

        Returns:
            summary.json 路径
        """
        ...


class IProgressReporter(Protocol):
    """进度上报协议"""

    def report(self, event: ProgressEvent) -> None:
        """接收进度事件"""
        ...


# ============================================================================
# 异常定义
# ============================================================================

class SnapshotError(Exception):
    """基础异常"""
    pass


class ResourceFetchError(SnapshotError):
    """远程资源获取错误（可恢复）"""
    pass


class CaptureError(SnapshotError):
    """采集/光栅化错误"""
    pass


class EncodeError(SnapshotError):
    """编码/保存错误"""
    pass


class ArchiveWriteError(SnapshotError):
    """打包写入错误（批量致命）"""
    pass


class SwitchError(SnapshotError):
    """渲染层切换实体错误"""
    pass
