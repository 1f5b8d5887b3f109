"""IvInfo - 写真/影片元数据聚合插件"""

__version__ = "1.0.0"
__author__ = "Media Manager"
__description__ = "从多个网站聚合元数据（标题、演员、发行日期、封面/截图、预告片）"

# 导出主要的类和函数
from .core import IdentifierResolver, load_config, ConfigStore, CancellationToken
from .managers import IvInfoManager, SourceRegistry
from .sources import BaseSource

__all__ = [
    # 核心模块
    'IdentifierResolver',
    'load_config',
    'ConfigStore',
    'CancellationToken',
    # 管理器
    'IvInfoManager',
    'SourceRegistry',
    # 数据源
    'BaseSource',
]
