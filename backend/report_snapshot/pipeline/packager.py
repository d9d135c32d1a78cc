"""
打包器 - 生成图片zip和汇总json

职责：
1. 成功项打包为扁平zip（DEFLATE），条目名为 <安全名>.png
2. 先写临时文件再原子替换；失败删除残留，抛 ArchiveWriteError
3. 生成 summary.json（不入zip）

测试要点：
- test_package_zip: ZIP打包
- test_package_failure_cleans_up: 失败不留残缺zip
- test_summary_structure: 汇总结构
"""

from __future__ import annotations

import json
import logging
import os
import zipfile
from pathlib import Path

from ..config import ArchiveConfig
from ..interfaces import ArchiveWriteError, IArchivePackager, IProgressReporter
from ..models import BatchManifest, ProgressPhase
from ..naming import UniqueNamer
from ..progress import emit

logger = logging.getLogger(__name__)


def assign_entry_names(
    manifest: BatchManifest,
    display_names: list[str] | None = None,
    suffix: str = "",
) -> list[str]:
    """为成功项分配唯一条目名

    display_names 与 manifest.items 按位置对应（同一实体可出现多次），
    缺省时使用 entity_id。返回值与 manifest.succeeded 顺序一致。
    """
    display_names = display_names or []
    namer = UniqueNamer(suffix=suffix)
    names = []
    for index, item in enumerate(manifest.items):
        if not item.ok:
            continue
        display = display_names[index] if index < len(display_names) else item.entity_id
        names.append(namer.claim(display))
    manifest.archive_names = names
    return names


class Packager(IArchivePackager):
    """打包器实现"""

    def __init__(
        self,
        config: ArchiveConfig | None = None,
        reporter: IProgressReporter | None = None,
        archive_name: str = "reports.zip",
    ):
        self.config = config or ArchiveConfig()
        self.reporter = reporter
        self.archive_name = archive_name

    def package(self, manifest: BatchManifest, output_dir: Path) -> Path:
        """打包成功项"""
        items = manifest.succeeded
        names = manifest.archive_names
        if len(names) != len(items):
            names = assign_entry_names(manifest, suffix=self.config.entry_suffix)
        zip_path = output_dir / self.archive_name
        tmp_path = zip_path.with_name(zip_path.name + ".part")
        total = len(items)

        emit(self.reporter, ProgressPhase.ARCHIVE, 0, 100, "开始创建ZIP文件...")
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(
                tmp_path,
                "w",
                zipfile.ZIP_DEFLATED,
                compresslevel=self.config.compression_level,
            ) as zf:
                for i, (item, name) in enumerate(zip(items, names)):
                    zf.writestr(name, item.data)
                    emit(
                        self.reporter,
                        ProgressPhase.ARCHIVE,
                        round((i + 1) / total * 80),
                        100,
                        f"添加图片 {i + 1}/{total} 到ZIP...",
                        item.entity_id,
                    )
            os.replace(tmp_path, zip_path)
        except Exception as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise ArchiveWriteError(f"ZIP写入失败: {zip_path}: {e}") from e

        emit(self.reporter, ProgressPhase.ARCHIVE, 100, 100, "ZIP文件生成完成")
        logger.info(f"ZIP已生成: {zip_path} ({total} 个条目)")
        return zip_path

    def write_summary(self, manifest: BatchManifest, archive_path: Path) -> Path:
        """生成汇总json"""
        summary = manifest.summary()
        data = {
            "schema_version": "1.0",
            "status": manifest.status.value,
            "archive": archive_path.name,
            "total": summary.total,
            "succeeded": summary.succeeded,
            "failed": summary.failed,
            "cancelled": summary.cancelled,
            "entries": [
                {"entity_id": item.entity_id, "entry": name}
                for item, name in zip(manifest.succeeded, manifest.archive_names)
            ],
            "failures": [
                {
                    "entity_id": item.entity_id,
                    "error_kind": item.error_kind.value,
                    "message": item.message,
                }
                for item in manifest.failed
            ],
            "timestamps": {
                "created_at": manifest.created_at.isoformat() if manifest.created_at else None,
                "started_at": manifest.started_at.isoformat() if manifest.started_at else None,
                "finished_at": manifest.finished_at.isoformat() if manifest.finished_at else None,
            },
        }

        summary_path = archive_path.with_name(f"{archive_path.stem}.summary.json")
        with open(summary_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        return summary_path
