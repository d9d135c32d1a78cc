"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- VisualRegion / CaptureClone / Node: 可视区域与采集克隆
- RasterResult / ExportItem / FetchOutcome: 采集与导出结果
- BatchManifest / ProgressEvent: 批量清单与进度
"""

from .batch import BatchManifest, BatchStatus, BatchSummary, ProgressEvent, ProgressPhase
from .export import (
    ErrorKind,
    ExportItem,
    ExportMode,
    FetchOutcome,
    FetchStatus,
    NormalizeReport,
    RasterResult,
)
from .region import (
    BBox,
    CaptureClone,
    DrawingSurface,
    Edges,
    Node,
    NodeKind,
    Style,
    Transform,
    VisualRegion,
)

__all__ = [
    "VisualRegion",
    "CaptureClone",
    "Node",
    "NodeKind",
    "BBox",
    "Style",
    "Transform",
    "Edges",
    "DrawingSurface",
    "RasterResult",
    "ExportItem",
    "ExportMode",
    "ErrorKind",
    "FetchOutcome",
    "FetchStatus",
    "NormalizeReport",
    "BatchManifest",
    "BatchStatus",
    "BatchSummary",
    "ProgressEvent",
    "ProgressPhase",
]
