"""
搜索聚合器
依次调用各数据源搜索，并合并相似的候选结果
"""

import logging
from typing import List, Optional

from rapidfuzz.distance import Levenshtein

from ..core.models import LookupInfo, SearchCandidate
from ..core.id_resolver import IdentifierResolver, same_release
from ..core.cancellation import CancellationToken
from ..core.config_loader import ConfigStore
from ..core.error_handler import ErrorHandler, ErrorAggregator
from .source_registry import SourceRegistry


logger = logging.getLogger(__name__)

# 名称相似度超过该值且番号相同的候选会被合并
SIMILARITY_THRESHOLD = 0.3


def name_similarity(first: Optional[str], second: Optional[str]) -> float:
    """归一化 Levenshtein 相似度（0-1）"""
    return Levenshtein.normalized_similarity(first or '', second or '')


def merge_results(candidates: List[SearchCandidate]) -> List[SearchCandidate]:
    """
    合并重复候选（就地修改并返回同一个列表）

    双指针扫描：current 固定时 next 向后移动；被合并的候选直接删除，
    next 不前进。已经越过的条目不会再次比较，因此结果与输入顺序有关。
    """
    if len(candidates) <= 1:
        return candidates

    current = 0
    nxt = 1
    while True:
        if current + 1 > len(candidates) or nxt + 1 > len(candidates):
            break

        first = candidates[current]
        second = candidates[nxt]
        similarity = name_similarity(first.name, second.name)

        if similarity > SIMILARITY_THRESHOLD and same_release(first.global_id, second.global_id):
            for key, value in second.provider_ids.items():
                if not first.get_provider_id(key):
                    first.set_provider_id(key, value)

            if not first.overview and second.overview:
                first.overview = second.overview
            if not first.image_url and second.image_url:
                first.image_url = second.image_url

            # 按位置删除
            del candidates[nxt]
            if len(candidates) <= 1:
                break
        else:
            if nxt + 1 == len(candidates):
                if current + 1 == len(candidates):
                    break
                current += 1
                nxt = current + 1
            else:
                nxt += 1

    return candidates


class SearchAggregator:
    """搜索聚合器"""

    def __init__(self, registry: SourceRegistry, store: ConfigStore):
        self.registry = registry
        self.store = store
        self.logger = logging.getLogger(__name__)

    async def search(
        self,
        query: LookupInfo,
        cancel: Optional[CancellationToken] = None,
        errors: Optional[ErrorAggregator] = None
    ) -> List[SearchCandidate]:
        """
        搜索候选结果

        Args:
            query: 查询信息
            cancel: 取消令牌
            errors: 错误聚合器（可选，用于记录失败的数据源）

        Returns:
            合并后的候选列表；无法解析番号时返回空列表
        """
        cancel = cancel or CancellationToken()
        self.logger.debug(f"搜索: name={query.name}, path={query.path}")

        global_id = IdentifierResolver.resolve(query.path, query.name, query.provider_ids)
        if not global_id:
            self.logger.info(f"无法解析番号: name={query.name}, path={query.path}")
            return []

        # 本次调用的所有数据源共用一份配置快照
        config = self.store.current()
        handler = ErrorHandler(config, self.logger)
        results: List[SearchCandidate] = []

        for source in self.registry.enabled_sources(config):
            cancel.raise_if_cancelled()
            try:
                results = await source.get_search_results(results, query, cancel, errors, config)
            except Exception as e:
                error = handler.handle_exception(e, source.name, global_id, 'search')
                if errors is not None:
                    errors.add_error(error)

        self.logger.debug(f"找到 {len(results)} 个结果")
        results = merge_results(results)
        self.logger.debug(f"合并后剩余 {len(results)} 个结果")
        return results
