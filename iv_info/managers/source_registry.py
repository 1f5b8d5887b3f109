"""
数据源注册表
显式注册可用的数据源，按当前配置过滤和排序
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core.config_loader import ConfigStore
from ..core.models import SourceDescriptor
from ..sources.base_source import BaseSource, SourceSettings
from ..sources.r18dev_source import R18DevSource
from ..sources.javlibrary_source import JavlibrarySource
from ..sources.dmm_source import DmmSource


logger = logging.getLogger(__name__)


# 名称 -> 工厂（接收 ConfigStore，返回数据源实例）
SourceFactory = Callable[[ConfigStore], BaseSource]

DEFAULT_SOURCES: Dict[str, SourceFactory] = {
    R18DevSource.name: R18DevSource,
    JavlibrarySource.name: JavlibrarySource,
    DmmSource.name: DmmSource,
}


class SourceRegistry:
    """
    数据源注册表

    注册表不缓存开关和优先级：每次聚合都从本次调用的配置快照读取，
    修改配置后下一次聚合即可生效。
    """

    def __init__(self, store: ConfigStore, factories: Optional[Dict[str, SourceFactory]] = None):
        """
        Args:
            store: 配置存储
            factories: 数据源工厂表（默认为内置的三个数据源）
        """
        self.store = store
        self.factories: Dict[str, SourceFactory] = dict(DEFAULT_SOURCES if factories is None else factories)
        self.logger = logging.getLogger(__name__)
        self._instances: Dict[str, BaseSource] = {}

    def register(self, name: str, factory: SourceFactory):
        """注册数据源（同名覆盖）"""
        self.factories[name] = factory
        self._instances.pop(name, None)

    def _instantiate(self) -> List[BaseSource]:
        sources = []
        for name, factory in self.factories.items():
            source = self._instances.get(name)
            if source is None:
                try:
                    source = factory(self.store)
                except Exception as e:
                    self.logger.error(f"数据源初始化失败: {name}: {e}")
                    continue
                self._instances[name] = source
            sources.append(source)
        return sources

    def ordered(self, config: Optional[Dict[str, Any]] = None) -> List[Tuple[BaseSource, SourceSettings]]:
        """
        所有数据源及其设置，按优先级升序（优先级相同时保持注册顺序）

        Args:
            config: 配置快照，为 None 时读取一次当前配置

        构造失败或配置段无法读取的数据源会被记录并跳过
        """
        if config is None:
            config = self.store.current()

        keyed = []
        for index, source in enumerate(self._instantiate()):
            try:
                settings = source.settings(config)
            except Exception as e:
                self.logger.error(f"数据源配置无效，已跳过: {source.name}: {e}")
                continue
            keyed.append((settings.priority, index, source, settings))

        keyed.sort(key=lambda x: (x[0], x[1]))
        return [(source, settings) for _, _, source, settings in keyed]

    def all_sources(self, config: Optional[Dict[str, Any]] = None) -> List[BaseSource]:
        return [s for s, _ in self.ordered(config)]

    def enabled_sources(self, config: Optional[Dict[str, Any]] = None) -> List[BaseSource]:
        return [s for s, settings in self.ordered(config) if settings.enabled]

    def image_sources(self, config: Optional[Dict[str, Any]] = None) -> List[BaseSource]:
        return [s for s, settings in self.ordered(config) if settings.enabled and settings.image_enabled]

    def descriptors(self, config: Optional[Dict[str, Any]] = None) -> List[SourceDescriptor]:
        return [s.descriptor(settings) for s, settings in self.ordered(config)]
