"""
图片解析器
收集各数据源的图片候选（只返回 URL）
"""

import logging
from typing import Iterable, List, Optional

from ..core.models import ImageItem, ImageCandidate, ImageKind, GLOBAL_ID_KEY
from ..core.cancellation import CancellationToken
from ..core.config_loader import ConfigStore
from ..core.error_handler import ErrorHandler, ErrorAggregator
from .source_registry import SourceRegistry


logger = logging.getLogger(__name__)


class ImageResolver:
    """图片解析器"""

    def __init__(self, registry: SourceRegistry, store: ConfigStore):
        self.registry = registry
        self.store = store
        self.logger = logging.getLogger(__name__)

    async def images(
        self,
        item: ImageItem,
        cancel: Optional[CancellationToken] = None,
        requested_kinds: Optional[Iterable[ImageKind]] = None,
        errors: Optional[ErrorAggregator] = None
    ) -> List[ImageCandidate]:
        """
        获取图片候选

        Args:
            item: 条目（数据源 ID 和已有图片类型）
            cancel: 取消令牌
            requested_kinds: 需要的图片类型（None 表示全部）
            errors: 错误聚合器（可选）

        Returns:
            按数据源优先级排序的图片候选，不去重
        """
        cancel = cancel or CancellationToken()
        requested = set(requested_kinds) if requested_kinds is not None else None

        global_id = item.get_provider_id(GLOBAL_ID_KEY)
        self.logger.debug(f"获取图片: 全局番号 {global_id}")
        if not global_id or not global_id.strip():
            self.logger.error("没有全局番号，无法获取图片")
            return []

        config = self.store.current()
        handler = ErrorHandler(config, self.logger)
        result: List[ImageCandidate] = []

        for source in self.registry.image_sources(config):
            for kind in source.handled_image_kinds():
                if requested is not None and kind not in requested:
                    continue
                # 已有该类型图片时不查询任何数据源
                if item.has_image(kind):
                    continue

                cancel.raise_if_cancelled()
                try:
                    result.extend(await source.get_images(item, cancel, kind, config))
                except Exception as e:
                    error = handler.handle_exception(e, source.name, global_id, 'images')
                    if errors is not None:
                        errors.add_error(error)

        self.logger.debug(f"找到 {len(result)} 张图片")
        return result
