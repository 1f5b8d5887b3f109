"""
聚合管理器模块
"""

from .source_registry import SourceRegistry
from .search_aggregator import SearchAggregator, merge_results
from .metadata_composer import MetadataComposer
from .image_resolver import ImageResolver
from .iv_info_manager import IvInfoManager

__all__ = [
    'SourceRegistry',
    'SearchAggregator',
    'merge_results',
    'MetadataComposer',
    'ImageResolver',
    'IvInfoManager',
]
