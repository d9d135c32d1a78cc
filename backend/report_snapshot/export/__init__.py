"""
导出模块 - 单个实体的快照导出与编码
"""

from .exporter import SingleItemExporter, encode_raster

__all__ = [
    "SingleItemExporter",
    "encode_raster",
]
