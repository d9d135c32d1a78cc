"""
运行期配置 - 读取 config/runtime.yaml

职责：
- 加载缩放/回退尺寸/超时/打包等运行参数
- 提供环境变量覆盖机制
- 类型安全的配置访问
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

DEFAULT_CONFIG_PATH = Path("config/runtime.yaml")


class CaptureConfig(BaseModel):
    """采集配置"""

    scale: float = 2.0
    fallback_width: int = 400
    fallback_height: int = 200
    image_format: str = "PNG"
    background: str = "#ffffff"


class FetchConfig(BaseModel):
    """远程资源获取配置"""

    timeout_sec: float = 10.0
    max_bytes: int = 20 * 1024 * 1024
    user_agent: str = "report-snapshot/0.1"


class StackingConfig(BaseModel):
    """层叠修复配置"""

    protected_roles: list[str] = Field(default_factory=lambda: ["title"])
    demote_background: str = "#ffffff"


class ArchiveConfig(BaseModel):
    """打包配置"""

    compression_level: int = Field(6, ge=0, le=9, description="DEFLATE 压缩级别")
    name_template: str = "报告图片集合-{date}.zip"
    entry_suffix: str = ""
    write_summary: bool = True


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_to_file: bool = False
    log_file: str = "logs/report_snapshot.log"


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    # 基础路径
    base_dir: Path = Path(".")
    output_dir: Path = Path("output")

    # 各子配置
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    stacking: StackingConfig = Field(default_factory=StackingConfig)
    archive: ArchiveConfig = Field(default_factory=ArchiveConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "SNAPSHOT_",
        "env_nested_delimiter": "__",
        "arbitrary_types_allowed": True,
    }

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """从YAML文件加载配置"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        runtime_opts = data.get("runtime_options", {})

        config = cls(
            capture=CaptureConfig(**cls._extract(runtime_opts, "capture")),
            fetch=FetchConfig(**cls._extract(runtime_opts, "fetch")),
            stacking=StackingConfig(**cls._extract(runtime_opts, "stacking")),
            archive=ArchiveConfig(**cls._extract(runtime_opts, "archive")),
            logging=LoggingConfig(**cls._extract(runtime_opts, "logging")),
        )
        if "output_dir" in runtime_opts:
            config.output_dir = Path(runtime_opts["output_dir"])

        config._resolve_paths(base_dir=path.parent)
        return config

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置"""
        section = data.get(key, {})
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            elif not isinstance(v, dict):
                result[k] = v
        return result

    def _resolve_paths(self, base_dir: Path) -> None:
        """解析相对路径配置为绝对路径（基于配置文件所在目录）"""
        if not self.output_dir.is_absolute():
            self.output_dir = (base_dir / self.output_dir).resolve()

    def archive_name(self, on: date | None = None) -> str:
        """按模板生成zip文件名"""
        on = on or date.today()
        return self.archive.name_template.format(date=on.isoformat())


# 全局配置实例
_config: RuntimeConfig | None = None


def get_config() -> RuntimeConfig:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        _config = RuntimeConfig.from_yaml(DEFAULT_CONFIG_PATH)
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载配置"""
    global _config
    path = yaml_path or DEFAULT_CONFIG_PATH
    _config = RuntimeConfig.from_yaml(path)
    return _config
