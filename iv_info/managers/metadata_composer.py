"""
元数据组合器
按优先级依次让各数据源填充同一个记录
"""

import logging
from typing import Optional

from ..core.models import LookupInfo, MetadataRecord, GLOBAL_ID_KEY
from ..core.id_resolver import IdentifierResolver, strip_disambiguator
from ..core.cancellation import CancellationToken
from ..core.config_loader import ConfigStore
from ..core.error_handler import ErrorHandler, ErrorAggregator
from .source_registry import SourceRegistry


logger = logging.getLogger(__name__)


class MetadataComposer:
    """
    元数据组合器

    标量字段：Overwrite 关闭时先到先得（优先级高的数据源优先），开启时后到的覆盖。
    集合字段（studios/genres/people）始终合并去重。
    """

    def __init__(self, registry: SourceRegistry, store: ConfigStore):
        self.registry = registry
        self.store = store
        self.logger = logging.getLogger(__name__)

    async def compose(
        self,
        lookup: LookupInfo,
        cancel: Optional[CancellationToken] = None,
        errors: Optional[ErrorAggregator] = None,
        record: Optional[MetadataRecord] = None
    ) -> MetadataRecord:
        """
        组合元数据

        Args:
            lookup: 查询信息
            cancel: 取消令牌
            errors: 错误聚合器（可选）
            record: 调用方持有的记录（可选）；取消时调用方仍可读取已累积的字段

        Returns:
            元数据记录；无法确定番号时 has_metadata 为 False
        """
        cancel = cancel or CancellationToken()
        self.logger.debug(
            f"获取元数据: name={lookup.name}, path={lookup.path}, year={lookup.year}, "
            f"provider_ids={lookup.provider_ids}"
        )

        if record is None:
            record = MetadataRecord()
        record.has_metadata = False

        global_id = lookup.get_provider_id(GLOBAL_ID_KEY) or IdentifierResolver.resolve(lookup.path, lookup.name)
        global_id = strip_disambiguator(global_id)
        self.logger.debug(f"全局番号: {global_id}")

        if not global_id.strip():
            self.logger.error(f"无法确定全局番号 (name: {lookup.name}, path: {lookup.path})")
            return record

        record.path = lookup.path
        record.provider_ids.update(lookup.provider_ids)
        record.set_provider_id(GLOBAL_ID_KEY, global_id)

        config = self.store.current()
        handler = ErrorHandler(config, self.logger)

        for source in self.registry.enabled_sources(config):
            cancel.raise_if_cancelled()
            try:
                filled = await source.fill_metadata(record, lookup, cancel, config)
                record.has_metadata = record.has_metadata or bool(filled)
            except Exception as e:
                error = handler.handle_exception(e, source.name, global_id, 'metadata')
                if errors is not None:
                    errors.add_error(error)

        return record
