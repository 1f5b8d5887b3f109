"""
数据源基类
所有数据源的统一契约：搜索、填充元数据、获取图片

子类只需实现 _search_impl / _fill_impl / _images_impl，
异常处理、取消检查和 FirstOnly 策略都在基类中完成。
一次调用内的所有开关都来自同一份配置快照（SourceSettings）。
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Optional, Dict, Any, List, Tuple

from ..core.models import (
    LookupInfo, SearchCandidate, MetadataRecord, ImageItem, ImageCandidate,
    ImageKind, SourceDescriptor, GLOBAL_ID_KEY, DISAMBIGUATOR_SEP
)
from ..core.id_resolver import IdentifierResolver, strip_disambiguator
from ..core.config_loader import ConfigStore
from ..core.cancellation import CancellationToken
from ..core.error_handler import ErrorHandler, ErrorAggregator
from ..web.exceptions import MovieNotFoundError, MovieDuplicateError
from ..web.request import Request


@dataclass
class SourceSettings:
    """从一份配置快照中取出的数据源设置"""
    config: Dict[str, Any]
    options: Dict[str, Any]
    priority: int
    enabled: bool
    image_enabled: bool
    first_only: bool
    overwrite: bool


class BaseSource(ABC):
    """数据源基类（带统一错误处理）"""

    # 数据源名称（子类必须设置，同时作为 provider_ids 的键）
    name: str = 'base'

    # 配置中未设置优先级或优先级无效时使用
    default_priority: int = 100

    # 支持的图片类型
    image_kinds: Tuple[ImageKind, ...] = ()

    # 是否使用 cloudscraper
    use_scraper: bool = False

    # 每次请求携带的 cookies
    cookies: Dict[str, str] = {}

    def __init__(self, store: ConfigStore):
        """
        Args:
            store: 配置存储，未传入快照的调用从这里读取当前配置
        """
        self.store = store
        self.logger = logging.getLogger(f"iv_info.sources.{self.name}")

    # ---- 配置 ----

    def settings(self, config: Optional[Dict[str, Any]] = None) -> SourceSettings:
        """
        从配置快照生成本数据源的设置

        Args:
            config: 配置快照，为 None 时读取一次当前配置
        """
        if config is None:
            config = self.store.current()
        options = (config.get('sources') or {}).get(self.name) or {}
        return SourceSettings(
            config=config,
            options=options,
            priority=self._parse_priority(options.get('priority')),
            enabled=bool(options.get('enabled', False)),
            image_enabled=bool(options.get('image_enabled', False)),
            first_only=bool(config.get('first_only', False)),
            overwrite=bool(config.get('overwrite', False))
        )

    def _parse_priority(self, value: Any) -> int:
        if value is None:
            return self.default_priority
        try:
            return int(value)
        except (TypeError, ValueError):
            self.logger.warning(
                f"{self.name}: 优先级配置无效: {value!r}，使用默认值 {self.default_priority}"
            )
            return self.default_priority

    def handled_image_kinds(self) -> Tuple[ImageKind, ...]:
        return tuple(self.image_kinds)

    def descriptor(self, settings: Optional[SourceSettings] = None) -> SourceDescriptor:
        settings = settings or self.settings()
        return SourceDescriptor(
            name=self.name,
            priority=settings.priority,
            enabled=settings.enabled,
            image_enabled=settings.image_enabled,
            handled_image_kinds=self.handled_image_kinds()
        )

    def create_request(self, settings: SourceSettings) -> Request:
        """根据快照中的网络配置创建请求对象"""
        return Request(settings.config, use_scraper=self.use_scraper, cookies=self.cookies)

    def error_handler(self, settings: SourceSettings) -> ErrorHandler:
        return ErrorHandler(settings.config, self.logger)

    # ---- 公共接口 ----

    async def get_search_results(
        self,
        existing: List[SearchCandidate],
        query: LookupInfo,
        cancel: Optional[CancellationToken] = None,
        errors: Optional[ErrorAggregator] = None,
        config: Optional[Dict[str, Any]] = None
    ) -> List[SearchCandidate]:
        """
        在已有候选列表后追加本数据源的结果

        Returns:
            新列表；出错时返回输入列表的副本，不抛出异常（取消除外）
        """
        cancel = cancel or CancellationToken()
        cancel.raise_if_cancelled()
        global_id = strip_disambiguator(
            IdentifierResolver.resolve(query.path, query.name, query.provider_ids)
        )
        self.logger.debug(f"{self.name}: 搜索全局番号: {global_id}")
        if not global_id:
            return list(existing)

        settings = self.settings(config)
        try:
            return await self._search_impl(list(existing), query, global_id, cancel, settings)
        except Exception as e:
            error = self.error_handler(settings).handle_exception(e, self.name, global_id, 'search')
            if errors is not None:
                errors.add_error(error)
            return list(existing)

    async def fill_metadata(
        self,
        record: MetadataRecord,
        lookup: LookupInfo,
        cancel: Optional[CancellationToken] = None,
        config: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        填充元数据

        Returns:
            True 如果本数据源提供了数据；未找到或结果不唯一时返回 False
        """
        cancel = cancel or CancellationToken()
        cancel.raise_if_cancelled()
        source_id = record.get_provider_id(self.name)
        global_id = strip_disambiguator(record.global_id)
        self.logger.debug(f"{self.name}: 查找 ID: {global_id}, {source_id}")

        if not global_id and not source_id:
            self.logger.error(f"{self.name}: 无法确定任何 ID")
            return False

        settings = self.settings(config)
        try:
            if not source_id:
                source_id = await self._find_source_id(lookup, global_id, cancel, settings)

            cancel.raise_if_cancelled()
            resolved_id = await self._fill_impl(record, source_id, global_id, cancel, settings)
        except (MovieNotFoundError, MovieDuplicateError) as e:
            self.error_handler(settings).handle_exception(e, self.name, source_id or global_id, 'metadata')
            return False

        if not resolved_id:
            return False

        record.set_provider_id(self.name, resolved_id)
        self.logger.debug(f"{self.name}: 元数据获取完成")
        return True

    async def get_images(
        self,
        item: ImageItem,
        cancel: Optional[CancellationToken] = None,
        kind: ImageKind = ImageKind.PRIMARY,
        config: Optional[Dict[str, Any]] = None
    ) -> List[ImageCandidate]:
        """获取一种类型的图片候选"""
        if kind not in self.handled_image_kinds():
            self.logger.debug(f"{self.name}: 不支持图片类型 {kind.value}")
            return []

        if item.has_image(kind):
            self.logger.debug(f"{self.name}: 已存在 {kind.value} 图片，不覆盖")
            return []

        source_id = item.get_provider_id(self.name)
        if not source_id:
            return []

        cancel = cancel or CancellationToken()
        cancel.raise_if_cancelled()
        return await self._images_impl(source_id, kind, cancel, self.settings(config))

    # ---- 子类实现 ----

    @abstractmethod
    async def _search_impl(
        self,
        results: List[SearchCandidate],
        query: LookupInfo,
        global_id: str,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> List[SearchCandidate]:
        """
        搜索实现（results 已经是副本，可以直接追加）

        settings.first_only 为 True 且为手动识别时，只返回第一条结果
        """

    @abstractmethod
    async def _fill_impl(
        self,
        record: MetadataRecord,
        source_id: str,
        global_id: str,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> Optional[str]:
        """
        填充实现

        Returns:
            实际使用的数据源 ID，页面不存在时返回 None

        Raises:
            MovieNotFoundError: 网站明确表示作品不存在
        """

    @abstractmethod
    async def _images_impl(
        self,
        source_id: str,
        kind: ImageKind,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> List[ImageCandidate]:
        """图片实现（类型检查已完成）"""

    # ---- 辅助方法 ----

    async def _find_source_id(
        self,
        lookup: LookupInfo,
        global_id: str,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> str:
        """
        通过自身搜索确定数据源 ID（遵循 FirstOnly）

        Raises:
            MovieNotFoundError: 搜索没有结果
            MovieDuplicateError: 多个结果且未启用 first_only
        """
        self.logger.debug(f"{self.name}: 没有数据源 ID，搜索全局番号: {global_id}")
        candidates = await self._search_impl(
            [], lookup, global_id, cancel, replace(settings, first_only=False)
        )
        return self._select_single(candidates, global_id, settings).get_provider_id(self.name)

    def _select_single(
        self,
        candidates: List[SearchCandidate],
        global_id: str,
        settings: SourceSettings
    ) -> SearchCandidate:
        """
        从候选中选出一个

        Raises:
            MovieNotFoundError: 没有候选
            MovieDuplicateError: 多个候选且未启用 first_only
        """
        if not candidates:
            raise MovieNotFoundError(self.name, global_id)
        if len(candidates) > 1 and not settings.first_only:
            self.logger.debug(f"{self.name}: 找到多个结果且未启用 first_only，放弃")
            raise MovieDuplicateError(self.name, global_id, len(candidates))
        return candidates[0]

    @staticmethod
    def next_index(candidates: List[SearchCandidate]) -> int:
        """下一个 index_number（已有最大值 + 1，空列表为 1）"""
        if not candidates:
            return 1
        return max(c.index_number or 0 for c in candidates) + 1

    def _append_candidate(
        self,
        results: List[SearchCandidate],
        name: str,
        source_id: str,
        global_id: str,
        image_url: Optional[str] = None,
        with_disambiguator: bool = True
    ) -> SearchCandidate:
        """创建候选并追加到列表"""
        candidate = SearchCandidate(
            name=name or '',
            image_url=image_url,
            overview=f"{global_id}<br />{source_id}",
            source_name=self.name,
            index_number=self.next_index(results)
        )
        candidate.set_provider_id(self.name, source_id)
        if with_disambiguator:
            candidate.set_provider_id(GLOBAL_ID_KEY, f"{global_id}{DISAMBIGUATOR_SEP}{source_id}")
        else:
            candidate.set_provider_id(GLOBAL_ID_KEY, global_id)
        results.append(candidate)
        return candidate

    def __repr__(self):
        return f"<{self.__class__.__name__} name={self.name}>"
