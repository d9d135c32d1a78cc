"""
进度上报 - ProgressEvent 的接收端

上报器无业务逻辑，只负责呈现：
- LoggingProgressReporter: 写日志
- CollectingProgressReporter: 按序收集（测试/界面桥接）
- CallbackProgressReporter: 转发给回调
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .interfaces import IProgressReporter
from .models import ProgressEvent, ProgressPhase

logger = logging.getLogger(__name__)


class LoggingProgressReporter:
    """日志上报"""

    def report(self, event: ProgressEvent) -> None:
        level = logging.WARNING if event.phase in (
            ProgressPhase.ITEM_FAILED, ProgressPhase.ABORTED
        ) else logging.INFO
        logger.log(level, f"[{event.phase.value}] ({event.current}/{event.total}) {event.message}")


class CollectingProgressReporter:
    """按序收集事件"""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def report(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def phases(self) -> list[ProgressPhase]:
        return [e.phase for e in self.events]


class CallbackProgressReporter:
    """转发给回调"""

    def __init__(self, callback: Callable[[ProgressEvent], None]):
        self.callback = callback

    def report(self, event: ProgressEvent) -> None:
        self.callback(event)


def emit(
    reporter: IProgressReporter | None,
    phase: ProgressPhase,
    current: int = 0,
    total: int = 0,
    message: str = "",
    entity_id: str | None = None,
) -> None:
    """发送进度事件（上报器异常只记录，不影响导出）"""
    if reporter is None:
        return
    event = ProgressEvent(
        phase=phase, current=current, total=total, message=message, entity_id=entity_id
    )
    try:
        reporter.report(event)
    except Exception:
        logger.exception(f"进度上报失败: {phase.value}")
