"""
采集模块 - 克隆树规范化与光栅化

子模块：
- fetcher: 远程资源获取（data URI 内联）
- normalizer: 表面规范化（物化/内联/变换/层叠）
- rasterizer: Pillow 光栅化
"""

from .fetcher import ResourceFetcher, is_remote, to_data_uri
from .normalizer import SurfaceNormalizer
from .rasterizer import Rasterizer

__all__ = [
    "ResourceFetcher",
    "SurfaceNormalizer",
    "Rasterizer",
    "is_remote",
    "to_data_uri",
]
