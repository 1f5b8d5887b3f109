"""
全局番号解析器
从文件路径或标题中提取规范化的全局番号（如 REBD-789）
"""

import re
from typing import Optional, Dict

from .models import GLOBAL_ID_KEY, DISAMBIGUATOR_SEP


class IdentifierResolver:
    """全局番号解析器（纯函数，无 I/O）"""

    # 2-5 位前缀 + 连字符 + 0-2 位附加字符 + 3-6 位数字 + 可选尾随字母
    ID_PATTERN = re.compile(r'(\w{2,5}-\w{0,2}\d{3,6}\w?)')

    @staticmethod
    def resolve(
        path: Optional[str] = None,
        name: Optional[str] = None,
        provider_ids: Optional[Dict[str, str]] = None
    ) -> str:
        """
        解析全局番号

        Args:
            path: 文件路径（优先）
            name: 条目名称（路径为空时使用）
            provider_ids: 已知的数据源 ID，若已包含全局番号则原样返回

        Returns:
            全局番号，无法解析时返回空字符串

        Examples:
            resolve(path="/media/[REBD-789].mkv") -> "REBD-789"
            resolve(name="REBD-789 some title") -> "REBD-789"
        """
        if provider_ids:
            existing = provider_ids.get(GLOBAL_ID_KEY)
            if existing:
                return existing

        if path:
            # 先只看文件名，避免目录名中类似番号的片段抢先匹配
            filename = IdentifierResolver._basename(path)
            found = IdentifierResolver.extract(filename) or IdentifierResolver.extract(path)
            return found

        if name:
            return IdentifierResolver.extract(name)

        return ''

    @staticmethod
    def extract(text: Optional[str]) -> str:
        """在文本中查找第一个符合番号格式的片段"""
        if not text:
            return ''
        match = IdentifierResolver.ID_PATTERN.search(text)
        return match.group(1).upper() if match else ''

    @staticmethod
    def _basename(path: str) -> str:
        # 同时兼容 Windows 和 POSIX 路径
        return path.split('/')[-1].split('\\')[-1]


def strip_disambiguator(global_id: Optional[str]) -> str:
    """去除 '|' 之后的消歧后缀"""
    if not global_id:
        return ''
    return global_id.split(DISAMBIGUATOR_SEP)[0]


def same_release(first: Optional[str], second: Optional[str]) -> bool:
    """比较两个全局番号前缀（大小写不敏感）"""
    return strip_disambiguator(first).upper() == strip_disambiguator(second).upper()


def pad_number(global_id: str, width: int = 5) -> str:
    """
    数字部分补零

    Examples:
        "REBD-789" -> "REBD-00789"
        "ABC-X123" -> "ABC-X123"（数字部分无法解析时原样返回）
    """
    parts = global_id.split('-')
    if len(parts) < 2 or not parts[1].isdigit():
        return global_id
    return f"{parts[0]}-{parts[1].zfill(width)}"


def compact_id(global_id: str, width: int = 5) -> str:
    """
    转换为紧凑形式（小写、无连字符、数字补零），用于匹配 DMM 等站点的 CID

    Examples:
        "REBD-789" -> "rebd00789"
    """
    return pad_number(global_id, width).lower().replace('-', '')
