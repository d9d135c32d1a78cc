"""
批量编排器单元测试

每个模块完成后必须运行：pytest backend/tests/unit/test_orchestrator.py -v
"""

import asyncio
import json
import zipfile

import pytest

from report_snapshot.capture import Rasterizer, SurfaceNormalizer
from report_snapshot.export import SingleItemExporter
from report_snapshot.interfaces import ArchiveWriteError, IItemExporter, SwitchError
from report_snapshot.models import (
    BatchStatus,
    ErrorKind,
    ExportItem,
    ExportMode,
    ProgressPhase,
    VisualRegion,
)
from report_snapshot.pipeline import BatchOrchestrator, CancelToken, Packager
from report_snapshot.progress import CallbackProgressReporter, CollectingProgressReporter

from ..support import StubFetcher, box, build_report_root


class FakeExporter(IItemExporter):
    """按实体ID决定成功/失败，并记录调用顺序"""

    def __init__(self, fail_ids=(), log=None):
        self.fail_ids = set(fail_ids)
        self.log = log if log is not None else []

    async def export_one(self, region, entity_id, mode=ExportMode.BATCH, output_dir=None):
        self.log.append(("export", entity_id))
        await asyncio.sleep(0)
        if entity_id in self.fail_ids:
            return ExportItem.failure(entity_id, ErrorKind.CAPTURE, "零尺寸")
        return ExportItem.success(entity_id, f"PNG-{entity_id}".encode())


class FailingPackager(Packager):

    def package(self, manifest, output_dir):
        raise ArchiveWriteError("磁盘已满")


def _switch(log=None, fail_ids=(), on_switch=None):
    async def switch_to(entity_id):
        if log is not None:
            log.append(("switch", entity_id))
        if on_switch is not None:
            on_switch(entity_id)
        if entity_id in fail_ids:
            raise SwitchError(f"渲染超时: {entity_id}")
    return switch_to


def _orchestrator(config, exporter=None, reporter=None, packager=None):
    region = VisualRegion(entity_id="", root=build_report_root())
    return BatchOrchestrator(
        region,
        exporter=exporter or FakeExporter(),
        packager=packager or Packager(config.archive, reporter=reporter, archive_name="batch.zip"),
        reporter=reporter,
        config=config,
    )


def _entries(path):
    with zipfile.ZipFile(path) as zf:
        return sorted(zf.namelist())


class TestBatchOrchestrator:
    """批量编排器测试"""

    def test_failure_isolated(self, runtime_config):
        """测试第k项失败：清单N项，zip N-1项"""
        orchestrator = _orchestrator(runtime_config, FakeExporter(fail_ids={"b"}))
        manifest = asyncio.run(orchestrator.export_all(["a", "b", "c"], _switch()))

        assert len(manifest) == 3
        assert manifest.status == BatchStatus.SUCCEEDED
        assert [i.entity_id for i in manifest.failed] == ["b"]
        assert _entries(manifest.archive_path) == ["a.png", "c.png"]
        with zipfile.ZipFile(manifest.archive_path) as zf:
            assert zf.read("a.png") == b"PNG-a"

    def test_empty_batch(self, runtime_config):
        """测试N=0：只发done，不生成zip"""
        reporter = CollectingProgressReporter()
        orchestrator = _orchestrator(runtime_config, reporter=reporter)
        manifest = asyncio.run(orchestrator.export_all([], _switch()))

        assert reporter.phases() == [ProgressPhase.DONE]
        assert (reporter.events[0].current, reporter.events[0].total) == (0, 0)
        assert manifest.archive_path is None
        assert manifest.status == BatchStatus.SUCCEEDED
        assert not runtime_config.output_dir.exists()

    def test_event_sequence(self, runtime_config):
        """测试事件顺序与计数单调"""
        reporter = CollectingProgressReporter()
        orchestrator = _orchestrator(runtime_config, FakeExporter(fail_ids={"b"}), reporter)
        asyncio.run(orchestrator.export_all(["a", "b", "c"], _switch()))

        phases = reporter.phases()
        assert phases[0] == ProgressPhase.START
        assert phases[1:4] == [
            ProgressPhase.ITEM_DONE, ProgressPhase.ITEM_FAILED, ProgressPhase.ITEM_DONE
        ]
        assert set(phases[4:-1]) == {ProgressPhase.ARCHIVE}
        assert phases[-1] == ProgressPhase.DONE

        items = reporter.events[1:4]
        assert [e.current for e in items] == [1, 2, 3]
        assert all(e.total == 3 for e in items)
        assert "b" in reporter.events[-1].message

    def test_sequential(self, runtime_config):
        """测试切换与导出严格交替"""
        log = []
        orchestrator = _orchestrator(runtime_config, FakeExporter(log=log))
        asyncio.run(orchestrator.export_all(["a", "b"], _switch(log)))

        assert log == [("switch", "a"), ("export", "a"), ("switch", "b"), ("export", "b")]

    def test_switch_failure(self, runtime_config):
        """测试切换失败记为该项失败并重置"""
        log = []
        resets = []

        async def reset():
            resets.append(True)

        orchestrator = _orchestrator(runtime_config, FakeExporter(log=log))
        manifest = asyncio.run(
            orchestrator.export_all(["a", "b", "c"], _switch(log, fail_ids={"b"}), reset=reset)
        )

        failed = manifest.failed
        assert [i.entity_id for i in failed] == ["b"]
        assert failed[0].error_kind == ErrorKind.SWITCH
        assert ("export", "b") not in log
        assert resets == [True]
        assert _entries(manifest.archive_path) == ["a.png", "c.png"]

    def test_cancel_between_items(self, runtime_config):
        """测试取消只在项间生效，已完成部分仍打包"""
        token = CancelToken()
        reporter = CollectingProgressReporter()

        def on_switch(entity_id):
            if entity_id == "b":
                token.cancel()

        orchestrator = _orchestrator(runtime_config, reporter=reporter)
        manifest = asyncio.run(
            orchestrator.export_all(["a", "b", "c"], _switch(on_switch=on_switch), cancel=token)
        )

        assert [i.entity_id for i in manifest.items] == ["a", "b"]
        assert manifest.status == BatchStatus.CANCELLED
        assert manifest.summary().cancelled
        assert _entries(manifest.archive_path) == ["a.png", "b.png"]
        assert reporter.phases()[-1] == ProgressPhase.ABORTED
        assert ProgressPhase.DONE not in reporter.phases()

    def test_archive_failure_propagates(self, runtime_config):
        """测试打包失败向上抛出"""
        reporter = CollectingProgressReporter()
        orchestrator = _orchestrator(
            runtime_config,
            reporter=reporter,
            packager=FailingPackager(runtime_config.archive),
        )

        with pytest.raises(ArchiveWriteError):
            asyncio.run(orchestrator.export_all(["a"], _switch()))
        assert reporter.phases()[-1] == ProgressPhase.ABORTED

    def test_archive_failure_leaves_no_zip(self, runtime_config, temp_dir):
        blocker = temp_dir / "blocker"
        blocker.write_text("x")
        orchestrator = _orchestrator(runtime_config)

        with pytest.raises(ArchiveWriteError):
            asyncio.run(orchestrator.export_all(["a"], _switch(), output_dir=blocker / "out"))
        assert sorted(p.name for p in temp_dir.iterdir()) == ["blocker"]

    def test_duplicate_names(self, runtime_config):
        """测试重名条目加序号"""
        orchestrator = _orchestrator(runtime_config)
        manifest = asyncio.run(
            orchestrator.export_all(["a", "b"], _switch(), display_name=lambda _: "王/同名")
        )
        assert _entries(manifest.archive_path) == ["王_同名.png", "王_同名_2.png"]

    def test_summary_written(self, runtime_config):
        orchestrator = _orchestrator(runtime_config, FakeExporter(fail_ids={"a"}))
        manifest = asyncio.run(orchestrator.export_all(["a", "b"], _switch()))

        assert manifest.summary_path == runtime_config.output_dir / "batch.summary.json"
        data = json.loads(manifest.summary_path.read_text(encoding="utf-8"))
        assert data["status"] == "succeeded"
        assert data["failures"][0]["entity_id"] == "a"

    def test_reporter_error_ignored(self, runtime_config):
        """测试上报器异常不影响导出"""
        def explode(event):
            raise RuntimeError("ui gone")

        orchestrator = _orchestrator(runtime_config, reporter=CallbackProgressReporter(explode))
        manifest = asyncio.run(orchestrator.export_all(["a"], _switch()))
        assert manifest.status == BatchStatus.SUCCEEDED

    def test_default_archive_name(self, runtime_config):
        region = VisualRegion(entity_id="", root=build_report_root())
        orchestrator = BatchOrchestrator(region, exporter=FakeExporter(), config=runtime_config)
        manifest = asyncio.run(orchestrator.export_all(["a"], _switch()))

        assert manifest.archive_path.name.startswith("报告图片集合-")
        assert manifest.archive_path.suffix == ".zip"

    def test_repeated_entity_ids(self, runtime_config):
        """测试同一实体出现两次时zip条目互不覆盖"""
        orchestrator = _orchestrator(runtime_config)
        manifest = asyncio.run(orchestrator.export_all(["a", "a"], _switch()))

        names = _entries(manifest.archive_path)
        assert names == ["a.png", "a_2.png"]
        assert manifest.archive_names == ["a.png", "a_2.png"]

    def test_display_name_error_falls_back(self, runtime_config):
        """测试显示名回调异常时使用实体ID且批量继续"""
        def display_name(entity_id):
            if entity_id == "a":
                raise KeyError(entity_id)
            return "李四"

        reporter = CollectingProgressReporter()
        orchestrator = _orchestrator(runtime_config, reporter=reporter)
        manifest = asyncio.run(
            orchestrator.export_all(["a", "b"], _switch(), display_name=display_name)
        )

        assert manifest.status == BatchStatus.SUCCEEDED
        assert _entries(manifest.archive_path) == ["a.png", "李四.png"]
        assert reporter.phases()[-1] == ProgressPhase.DONE

    def test_switch_failure_without_reset(self, runtime_config):
        """测试未提供重置回调时切换失败仍继续下一项"""
        orchestrator = _orchestrator(runtime_config)
        manifest = asyncio.run(
            orchestrator.export_all(["a", "b", "c"], _switch(fail_ids={"a"}))
        )

        assert [i.error_kind for i in manifest.items] == [ErrorKind.SWITCH, None, None]
        assert manifest.status == BatchStatus.SUCCEEDED
        assert _entries(manifest.archive_path) == ["b.png", "c.png"]

    def test_cancel_after_last_item(self, runtime_config):
        """测试最后一项期间取消：全部完成，状态仍为成功"""
        token = CancelToken()
        reporter = CollectingProgressReporter()

        def on_switch(entity_id):
            if entity_id == "b":
                token.cancel()

        orchestrator = _orchestrator(runtime_config, reporter=reporter)
        manifest = asyncio.run(
            orchestrator.export_all(["a", "b"], _switch(on_switch=on_switch), cancel=token)
        )

        assert len(manifest) == 2
        assert manifest.status == BatchStatus.SUCCEEDED
        assert not manifest.summary().cancelled
        assert reporter.phases()[-1] == ProgressPhase.DONE


class TestEndToEnd:
    """真实导出器的批量流程"""

    def test_switch_and_export(self, runtime_config):
        """测试切换实时区域后逐个导出，失败项不入包"""
        region = VisualRegion(entity_id="", root=build_report_root())
        sources = {
            "s-001": ("张三", build_report_root()),
            "s-002": ("李四", box("root", 0, 0, 0, 0)),
            "s-003": ("王五", build_report_root(300, 200)),
        }

        async def switch_to(entity_id):
            name, root = sources[entity_id]
            region.entity_id = entity_id
            region.display_name = name
            region.root = root.model_copy(deep=True)

        exporter = SingleItemExporter(
            normalizer=SurfaceNormalizer(StubFetcher()),
            rasterizer=Rasterizer(runtime_config.capture),
            config=runtime_config,
        )
        orchestrator = BatchOrchestrator(
            region,
            exporter=exporter,
            packager=Packager(runtime_config.archive, archive_name="e2e.zip"),
            config=runtime_config,
        )
        manifest = asyncio.run(orchestrator.export_all(list(sources), switch_to))

        assert manifest.summary().failed_ids == ["s-002"]
        assert _entries(manifest.archive_path) == ["张三.png", "王五.png"]
