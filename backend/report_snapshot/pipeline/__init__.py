"""
流水线模块 - 批量编排与打包

子模块：
- orchestrator: 批量编排器（切换/导出/取消/汇总）
- packager: zip打包与summary生成
"""

from .orchestrator import BatchOrchestrator, CancelToken
from .packager import Packager, assign_entry_names

__all__ = [
    "BatchOrchestrator",
    "CancelToken",
    "Packager",
    "assign_entry_names",
]
