"""
文件命名 - 实体名转文件系统安全名称

规则：
- 路径禁用字符 \\ / : * ? " < > | 及控制字符替换为 _
- 去除首尾空白与结尾的点
- 同一批次内重名在后缀之后追加 _2、_3 ...（如 张三_报告_2.png）
"""

from __future__ import annotations

import re

_FORBIDDEN = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def sanitize_name(name: str) -> str:
    """实体显示名转安全文件名（不含扩展名）"""
    cleaned = _FORBIDDEN.sub("_", name.strip()).rstrip(". ")
    return cleaned or "_"


def entry_name(name: str, suffix: str = "", ext: str = ".png") -> str:
    """zip条目名，如 A/B:C -> A_B_C.png"""
    return f"{sanitize_name(name)}{suffix}{ext}"


class UniqueNamer:
    """批次内唯一命名（忽略大小写冲突）"""

    def __init__(self, suffix: str = "", ext: str = ".png"):
        self.suffix = suffix
        self.ext = ext
        self._used: set[str] = set()

    def claim(self, name: str) -> str:
        base = sanitize_name(name)
        candidate = f"{base}{self.suffix}{self.ext}"
        n = 2
        while candidate.lower() in self._used:
            candidate = f"{base}{self.suffix}_{n}{self.ext}"
            n += 1
        self._used.add(candidate.lower())
        return candidate
