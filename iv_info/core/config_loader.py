"""
配置加载器
从 config.yml 加载插件配置，并提供每次调用时重新读取的配置存储
"""

import copy
import logging
import os
import threading
import yaml
from pathlib import Path
from typing import Dict, Any, Optional


logger = logging.getLogger(__name__)


def load_config(config_file: str = "config/config.yml") -> Dict[str, Any]:
    """
    加载配置文件

    Args:
        config_file: 配置文件路径（相对路径以项目根目录为基准）

    Returns:
        与默认配置深度合并后的配置字典
    """
    config_path = _resolve_path(config_file)

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        # 返回默认配置
        return _get_default_config()
    except Exception as e:
        raise RuntimeError(f"配置文件加载失败: {e}")

    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise RuntimeError(f"配置文件格式错误: {config_path}")

    return _deep_merge(_get_default_config(), config)


def _resolve_path(config_file: str) -> Path:
    path = Path(config_file)
    if path.is_absolute():
        return path
    # 项目根目录（iv_info 包的父目录）
    project_root = Path(__file__).parent.parent.parent
    return project_root / path


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """递归合并，override 中的值优先"""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _get_default_config() -> Dict[str, Any]:
    """返回默认配置"""
    return {
        'first_only': True,
        'overwrite': False,
        'sources': {
            'r18dev': {
                'enabled': True,
                'image_enabled': True,
                'priority': 1,
                'titles_english': False,
                'tags_english': False,
                'cast_english': False,
            },
            'javlibrary': {
                'enabled': True,
                'image_enabled': True,
                'priority': 3,
                'titles_english': False,
                'tags_english': False,
                'cast_english': False,
                'use_solverr': False,
                'solverr_url': 'http://localhost:8191',
            },
            'dmm': {
                'enabled': True,
                'image_enabled': True,
                'priority': 4,
                'get_trailers': False,
            },
        },
        'network': {
            'proxy_server': None,
            'timeout': 30,
            'retry': 3
        },
        'logging': {
            'level': 'INFO',
            'log_file': 'iv_info.log',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        }
    }


class ConfigStore:
    """
    配置存储

    每次 current() 都返回一份独立的快照：
    - 基于文件时，文件修改时间变化后重新加载
    - update() 写入的值只保存在内存中，叠加在文件配置之上
    """

    def __init__(self, config_file: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        self.config_file = config_file
        self._lock = threading.Lock()
        self._mtime: Optional[float] = None
        self._base: Dict[str, Any] = _get_default_config()
        self._overrides: Dict[str, Any] = dict(data or {})

        if config_file:
            self._reload_if_changed()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConfigStore':
        return cls(data=data)

    def current(self) -> Dict[str, Any]:
        """返回当前配置快照"""
        with self._lock:
            if self.config_file:
                self._reload_if_changed()
            return copy.deepcopy(_deep_merge(self._base, self._overrides))

    def update(self, values: Dict[str, Any]):
        """合并新值到内存配置（不写回文件）"""
        with self._lock:
            self._overrides = _deep_merge(self._overrides, values)

    def source_config(self, name: str) -> Dict[str, Any]:
        """单个数据源的配置段"""
        return self.current().get('sources', {}).get(name) or {}

    def _reload_if_changed(self):
        path = _resolve_path(self.config_file)
        try:
            mtime = os.path.getmtime(path)
        except OSError:
            mtime = None

        if mtime is not None and mtime == self._mtime:
            return

        self._base = load_config(str(path))
        self._mtime = mtime
        logger.debug(f"配置已加载: {path}")
