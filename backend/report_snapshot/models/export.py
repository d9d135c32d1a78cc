"""
导出结果模型 - 光栅结果、单项结果与内联结果

RasterResult / ExportItem 创建后不可变（frozen）。
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    """错误类型"""
    RESOURCE_FETCH = "ResourceFetchFailure"   # 可恢复，跳过资源
    CAPTURE = "CaptureFailure"                # 单项失败
    ENCODE = "EncodeFailure"                  # 单项失败
    ARCHIVE_WRITE = "ArchiveWriteFailure"     # 批量致命
    SWITCH = "SwitchFailure"                  # 单项失败


class ExportMode(str, Enum):
    """导出模式"""
    STANDALONE = "standalone"   # 直接保存文件
    BATCH = "batch"             # 只返回字节，由打包器汇总


class RasterResult(BaseModel):
    """光栅结果"""
    pixels: bytes = Field(..., repr=False)
    width: int
    height: int
    scale: float
    source_id: str
    mode: str = "RGBA"

    model_config = {"frozen": True}


class ExportItem(BaseModel):
    """单个实体的导出结果"""
    entity_id: str
    data: bytes | None = Field(None, repr=False)
    path: Path | None = None
    error_kind: ErrorKind | None = None
    message: str = ""

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(cls, entity_id: str, data: bytes, path: Path | None = None) -> ExportItem:
        return cls(entity_id=entity_id, data=data, path=path)

    @classmethod
    def failure(cls, entity_id: str, error_kind: ErrorKind, message: str) -> ExportItem:
        return cls(entity_id=entity_id, error_kind=error_kind, message=message)


class FetchStatus(str, Enum):
    """资源内联状态"""
    INLINED = "inlined"
    SKIPPED = "skipped"
    PASSTHROUGH = "passthrough"


class FetchOutcome(BaseModel):
    """单个远程资源的内联结果"""
    url: str
    node_id: str = ""
    status: FetchStatus
    data_uri: str | None = Field(None, repr=False)
    reason: str = ""

    @property
    def error_kind(self) -> ErrorKind | None:
        return ErrorKind.RESOURCE_FETCH if self.status == FetchStatus.SKIPPED else None


class NormalizeReport(BaseModel):
    """规范化报告（各修复步骤的计数与内联结果）"""
    surfaces_materialized: int = 0
    transforms_repaired: int = 0
    nodes_demoted: int = 0
    nodes_promoted: int = 0
    fetches: list[FetchOutcome] = Field(default_factory=list)

    @property
    def skipped(self) -> list[FetchOutcome]:
        return [f for f in self.fetches if f.status == FetchStatus.SKIPPED]
