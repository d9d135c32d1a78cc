"""
批量模型 - 批量清单状态与生命周期、进度事件
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from .export import ExportItem


class BatchStatus(str, Enum):
    """批量状态枚举"""
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ProgressPhase(str, Enum):
    """进度阶段"""
    START = "start"
    ITEM_DONE = "item_done"
    ITEM_FAILED = "item_failed"
    ARCHIVE = "archive"
    DONE = "done"
    ABORTED = "aborted"


class ProgressEvent(BaseModel):
    """进度事件（瞬时，不持久化）"""
    phase: ProgressPhase
    current: int = 0
    total: int = 0
    message: str = ""
    entity_id: str | None = None

    model_config = {"frozen": True}


class BatchSummary(BaseModel):
    """最终汇总"""
    total: int
    succeeded: int
    failed: int
    failed_ids: list[str] = Field(default_factory=list)
    cancelled: bool = False


class BatchManifest(BaseModel):
    """批量清单（按顺序累积ExportItem）"""
    total: int = 0
    items: list[ExportItem] = Field(default_factory=list)

    status: BatchStatus = BatchStatus.QUEUED
    errors: list[str] = Field(default_factory=list, description="致命错误信息")

    # 产物
    archive_path: Path | None = None
    summary_path: Path | None = None
    archive_names: list[str] = Field(
        default_factory=list, description="zip条目名（与 succeeded 顺序一致）"
    )

    # 时间戳
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    model_config = {"arbitrary_types_allowed": True}

    def __len__(self) -> int:
        return len(self.items)

    @property
    def succeeded(self) -> list[ExportItem]:
        return [item for item in self.items if item.ok]

    @property
    def failed(self) -> list[ExportItem]:
        return [item for item in self.items if not item.ok]

    def add(self, item: ExportItem) -> None:
        """追加结果"""
        self.items.append(item)

    def mark_running(self) -> None:
        """标记为运行中"""
        self.status = BatchStatus.RUNNING
        self.started_at = datetime.now()

    def mark_succeeded(self) -> None:
        """标记为完成（单项失败不影响）"""
        self.status = BatchStatus.SUCCEEDED
        self.finished_at = datetime.now()

    def mark_cancelled(self) -> None:
        """标记为已取消"""
        self.status = BatchStatus.CANCELLED
        self.finished_at = datetime.now()

    def mark_failed(self, error: str) -> None:
        """标记为失败"""
        self.status = BatchStatus.FAILED
        self.finished_at = datetime.now()
        self.errors.append(error)

    def summary(self) -> BatchSummary:
        """生成汇总"""
        failed = self.failed
        return BatchSummary(
            total=self.total,
            succeeded=len(self.items) - len(failed),
            failed=len(failed),
            failed_ids=[item.entity_id for item in failed],
            cancelled=self.status == BatchStatus.CANCELLED,
        )
