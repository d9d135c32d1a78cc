import argparse
import asyncio
import json
import sys
from pathlib import Path


def _add_backend_to_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    backend_root = repo_root / "backend"
    if str(backend_root) not in sys.path:
        sys.path.insert(0, str(backend_root))


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Replay dumped report regions through the batch exporter."
    )
    parser.add_argument(
        "regions",
        help="渲染层导出的区域JSON（VisualRegion 列表）",
    )
    parser.add_argument(
        "--out-dir",
        default="output",
        help="zip输出目录（默认：output）",
    )
    parser.add_argument(
        "--ids",
        nargs="*",
        help="只导出指定实体（默认：全部）",
    )
    parser.add_argument(
        "--config",
        default="config/runtime.yaml",
        help="运行期配置（默认：config/runtime.yaml）",
    )
    args = parser.parse_args()

    _add_backend_to_path()
    from report_snapshot.config import reload_config, setup_logging  # type: ignore
    from report_snapshot.interfaces import SwitchError  # type: ignore
    from report_snapshot.models import VisualRegion  # type: ignore
    from report_snapshot.pipeline import BatchOrchestrator  # type: ignore
    from report_snapshot.progress import LoggingProgressReporter  # type: ignore

    with open(args.regions, encoding="utf-8") as f:
        snapshots = {r["entity_id"]: VisualRegion(**r) for r in json.load(f)}
    if not snapshots:
        print("区域列表为空")
        return 1

    config = reload_config(args.config)
    setup_logging(config.logging)

    # 模拟渲染层：一个共享区域，切换时原地替换内容
    live = next(iter(snapshots.values())).model_copy(deep=True)

    async def switch_to(entity_id: str) -> None:
        snapshot = snapshots.get(entity_id)
        if snapshot is None:
            raise SwitchError(f"区域JSON中没有实体: {entity_id}")
        live.entity_id = snapshot.entity_id
        live.display_name = snapshot.display_name
        live.root = snapshot.root.model_copy(deep=True)

    orchestrator = BatchOrchestrator(live, reporter=LoggingProgressReporter(), config=config)
    manifest = asyncio.run(
        orchestrator.export_all(args.ids or list(snapshots), switch_to, output_dir=Path(args.out_dir))
    )

    summary = manifest.summary()
    print(f"archive={manifest.archive_path} succeeded={summary.succeeded} failed={summary.failed}")
    for item in manifest.failed:
        print(f"  {item.entity_id}: {item.error_kind.value} {item.message}")
    return 0 if summary.failed == 0 else 2


if __name__ == "__main__":
    raise SystemExit(main())
