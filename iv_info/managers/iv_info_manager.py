"""
IvInfo 管理器
对外的统一入口：搜索、元数据、图片
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from ..core.models import (
    LookupInfo, SearchCandidate, MetadataRecord, ImageItem, ImageCandidate, ImageKind,
    SourceDescriptor
)
from ..core.cancellation import CancellationToken
from ..core.config_loader import ConfigStore
from ..core.error_handler import ErrorAggregator
from .source_registry import SourceRegistry, SourceFactory
from .search_aggregator import SearchAggregator
from .metadata_composer import MetadataComposer
from .image_resolver import ImageResolver


logger = logging.getLogger(__name__)


class IvInfoManager:
    """IvInfo 管理器"""

    def __init__(
        self,
        store: Optional[ConfigStore] = None,
        factories: Optional[Dict[str, SourceFactory]] = None
    ):
        """
        Args:
            store: 配置存储（默认读取 config/config.yml）
            factories: 数据源工厂表（默认为内置数据源）
        """
        self.store = store or ConfigStore('config/config.yml')
        self.registry = SourceRegistry(self.store, factories)
        self.search_aggregator = SearchAggregator(self.registry, self.store)
        self.metadata_composer = MetadataComposer(self.registry, self.store)
        self.image_resolver = ImageResolver(self.registry, self.store)
        self.logger = logging.getLogger(__name__)

        self.logger.info(f"IvInfoManager initialized, sources: {list(self.registry.factories)}")

    @classmethod
    def from_config(cls, config: Dict[str, Any], factories: Optional[Dict[str, SourceFactory]] = None) -> 'IvInfoManager':
        return cls(ConfigStore.from_dict(config), factories)

    async def search(
        self,
        query: LookupInfo,
        cancel: Optional[CancellationToken] = None,
        errors: Optional[ErrorAggregator] = None
    ) -> List[SearchCandidate]:
        return await self.search_aggregator.search(query, cancel, errors)

    async def compose(
        self,
        lookup: LookupInfo,
        cancel: Optional[CancellationToken] = None,
        errors: Optional[ErrorAggregator] = None
    ) -> MetadataRecord:
        return await self.metadata_composer.compose(lookup, cancel, errors)

    async def images(
        self,
        item: ImageItem,
        cancel: Optional[CancellationToken] = None,
        requested_kinds: Optional[Iterable[ImageKind]] = None,
        errors: Optional[ErrorAggregator] = None
    ) -> List[ImageCandidate]:
        return await self.image_resolver.images(item, cancel, requested_kinds, errors)

    def sources(self) -> List[SourceDescriptor]:
        """当前配置下所有数据源的描述"""
        return self.registry.descriptors()
