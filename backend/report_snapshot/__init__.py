"""
报告快照导出系统 - 后端核心模块

模块结构：
- config/     运行期配置与日志
- models/     数据模型定义（可视区域/导出结果/进度）
- capture/    快照采集（表面规范化/资源内联/光栅化）
- export/     单项导出
- pipeline/   批量编排与打包
- progress    进度上报
- naming      文件命名
"""

__version__ = "0.1.0"
