"""
日志配置 - 按 LoggingConfig 初始化标准库 logging

控制台始终输出；log_to_file 为真时追加滚动文件日志。
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any

from .runtime_config import LoggingConfig

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def build_logging_dict(config: LoggingConfig) -> dict[str, Any]:
    """生成 dictConfig 配置"""
    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "console",
            "stream": "ext://sys.stderr",
        },
    }
    if config.log_to_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "console",
            "filename": config.log_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"console": {"format": _FORMAT, "datefmt": _DATEFMT}},
        "handlers": handlers,
        "loggers": {
            "report_snapshot": {
                "level": config.log_level.upper(),
                "handlers": list(handlers),
                "propagate": False,
            },
        },
    }


def setup_logging(config: LoggingConfig | None = None) -> None:
    """初始化日志"""
    config = config or LoggingConfig()
    if config.log_to_file:
        Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_dict(config))
