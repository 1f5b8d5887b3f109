#!/usr/bin/env python3
"""
IvInfo Plugin - 主入口
通过 stdin/stdout 与主程序通信（每行一个 JSON 请求 / 响应）
"""

import sys
import json
import asyncio
import logging
import io
from typing import Dict, Any, Optional

from . import __version__
from .core.config_loader import ConfigStore
from .core.error_handler import ErrorAggregator
from .core.models import LookupInfo, ImageItem, ImageKind
from .managers.iv_info_manager import IvInfoManager


class PluginMain:
    """插件主入口"""

    def __init__(self, store: Optional[ConfigStore] = None, manager: Optional[IvInfoManager] = None,
                 setup_logging: bool = True):
        """
        初始化插件

        Args:
            store: 配置存储（默认读取 config/config.yml）
            manager: 管理器（测试时可注入）
            setup_logging: 是否配置日志文件
        """
        self.store = store or ConfigStore('config/config.yml')
        self.config = self.store.current()

        # 设置日志（写入文件，避免干扰 stdout）
        if setup_logging:
            self._setup_logging()
        self.logger = logging.getLogger(__name__)

        self.manager = manager or IvInfoManager(self.store)

        self.logger.info("Plugin initialized")

    def _setup_logging(self):
        """设置日志"""
        log_config = self.config.get('logging', {})
        log_level = log_config.get('level', 'INFO')
        log_file = log_config.get('log_file', 'iv_info.log')
        log_format = log_config.get('format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')

        # 配置日志到文件
        logging.basicConfig(
            level=getattr(logging, str(log_level).upper(), logging.INFO),
            format=log_format,
            filename=log_file,
            filemode='a',
            encoding='utf-8'
        )

    def run(self, stdin=None, stdout=None):
        """运行插件主循环"""
        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout
        self.logger.info("Plugin started")

        try:
            while True:
                # 从 stdin 读取请求
                line = stdin.readline()
                if not line:
                    break

                line = line.strip()
                if not line:
                    continue

                try:
                    # 解析 JSON 请求
                    request = json.loads(line)
                    self.logger.debug(f"Received request: {request}")

                    # 处理请求
                    response = self.handle_request(request)

                except json.JSONDecodeError as e:
                    self.logger.error(f"JSON decode error: {e}")
                    response = {
                        'success': False,
                        'error': f'Invalid JSON: {str(e)}'
                    }

                except Exception as e:
                    self.logger.exception(f"Unexpected error: {e}")
                    response = {
                        'success': False,
                        'error': f'Internal error: {str(e)}'
                    }

                # 输出响应到 stdout
                print(json.dumps(response, ensure_ascii=False), file=stdout)
                stdout.flush()

        except KeyboardInterrupt:
            self.logger.info("Plugin interrupted by user")

        finally:
            self.logger.info("Plugin stopped")

    def handle_request(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        处理请求

        Args:
            request: 请求字典，包含 action 字段

        Returns:
            响应字典
        """
        action = request.get('action')

        if action == 'info':
            return self._handle_info()
        elif action == 'search':
            return asyncio.run(self._handle_search(request))
        elif action == 'metadata':
            return asyncio.run(self._handle_metadata(request))
        elif action == 'images':
            return asyncio.run(self._handle_images(request))
        else:
            return {
                'success': False,
                'error': f'Unknown action: {action}'
            }

    def _handle_info(self) -> Dict[str, Any]:
        """返回插件信息"""
        return {
            'success': True,
            'data': {
                'id': 'iv_info',
                'name': 'IvInfo',
                'version': __version__,
                'description': '写真/影片元数据聚合插件',
                'id_patterns': [r'\w{2,5}-\w{0,2}\d{3,6}\w?'],
                'sources': [d.to_dict() for d in self.manager.sources()],
                'supports_search': True
            }
        }

    async def _handle_search(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        搜索候选

        Args:
            request: 请求字典，包含：
                - name: 名称（可选）
                - path: 文件路径（可选）
                - provider_ids: 已知 ID（可选）
                - is_automated: 是否为自动刮削（可选，默认 True）
        """
        lookup = LookupInfo.from_dict(request)
        errors = ErrorAggregator()
        results = await self.manager.search(lookup, errors=errors)

        self.logger.info(f"Search finished: {lookup.path or lookup.name} -> {len(results)} results")
        return {
            'success': True,
            'data': [r.to_dict() for r in results],
            'errors': [e.to_dict() for e in errors.errors]
        }

    async def _handle_metadata(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """获取元数据（success 表示是否有任何数据源提供了数据）"""
        lookup = LookupInfo.from_dict(request)
        errors = ErrorAggregator()
        record = await self.manager.compose(lookup, errors=errors)

        if record.has_metadata:
            self.logger.info(f"Metadata success: {record.global_id}")
        else:
            self.logger.warning(f"Metadata not found: {lookup.path or lookup.name}")

        response = {
            'success': record.has_metadata,
            'data': record.to_dict(),
            'errors': [e.to_dict() for e in errors.errors]
        }
        if errors.has_errors():
            response['error_summary'] = errors.get_summary()
        return response

    async def _handle_images(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        获取图片候选

        Args:
            request: 请求字典，包含：
                - provider_ids: 已知 ID（必须包含全局番号）
                - existing_image_kinds: 已有图片类型（可选）
                - kinds: 需要的图片类型（可选，默认全部）
        """
        try:
            item = ImageItem.from_dict(request)
            kinds = request.get('kinds')
            requested = [ImageKind(k) for k in kinds] if kinds else None
        except ValueError as e:
            return {
                'success': False,
                'error': f'Invalid image kind: {e}'
            }

        errors = ErrorAggregator()
        images = await self.manager.images(item, requested_kinds=requested, errors=errors)

        return {
            'success': True,
            'data': [i.to_dict() for i in images],
            'errors': [e.to_dict() for e in errors.errors]
        }


def main():
    """主函数"""
    # 设置 stdin/stdout 为 UTF-8 编码
    sys.stdin = io.TextIOWrapper(sys.stdin.buffer, encoding='utf-8')
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', line_buffering=True)

    plugin = PluginMain()
    plugin.run()


if __name__ == '__main__':
    main()
