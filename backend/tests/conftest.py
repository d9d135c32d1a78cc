"""
pytest 配置与公共 fixtures

使用方式：
    def test_something(runtime_config, sample_region):
        assert runtime_config.capture.scale == 2.0
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from report_snapshot.config import RuntimeConfig
from report_snapshot.models import VisualRegion

from .support import StubFetcher, build_report_root, make_png


# ============================================================================
# 配置 Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """临时目录"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def runtime_config(temp_dir: Path) -> RuntimeConfig:
    """运行期配置（输出到临时目录）"""
    return RuntimeConfig(output_dir=temp_dir / "output")


# ============================================================================
# 数据模型 Fixtures
# ============================================================================

@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def stub_fetcher() -> StubFetcher:
    """所有远程图片都获取失败"""
    return StubFetcher()


@pytest.fixture
def sample_region() -> VisualRegion:
    """示例可视区域"""
    return VisualRegion(entity_id="s-001", display_name="张三", root=build_report_root())
