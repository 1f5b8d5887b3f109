"""
数据源模块
"""

from .base_source import BaseSource
from .r18dev_source import R18DevSource
from .javlibrary_source import JavlibrarySource
from .dmm_source import DmmSource

__all__ = [
    'BaseSource',
    'R18DevSource',
    'JavlibrarySource',
    'DmmSource',
]
