"""
错误处理核心模块
提供错误分类、双语消息、建议生成和错误聚合功能

数据源失败在最低层被捕获并记录，聚合器本身从不因单个数据源抛出异常。
ErrorAggregator 作为可选的旁路通道，让调用方知道是哪个数据源失败以及原因。
"""

import logging
from typing import Dict, List, Optional, Any
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime

from ..web.exceptions import (
    ScraperError, NetworkError, MovieNotFoundError, MovieDuplicateError,
    SiteBlocked, WebsiteError
)


logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """错误分类枚举"""
    NETWORK_ERROR = "network_error"
    PROXY_REQUIRED = "proxy_required"
    NOT_FOUND = "not_found"
    DUPLICATE_ERROR = "duplicate_error"
    SITE_ERROR = "site_error"
    UNKNOWN = "unknown"


@dataclass
class StructuredError:
    """结构化错误对象（用于 JSON 序列化）"""
    category: ErrorCategory
    source: str
    code: str
    operation: str
    message_zh: str
    message_en: str
    suggestions_zh: List[str] = field(default_factory=list)
    suggestions_en: List[str] = field(default_factory=list)
    http_status: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category.value,
            'source': self.source,
            'code': self.code,
            'operation': self.operation,
            'message': {
                'zh': self.message_zh,
                'en': self.message_en
            },
            'suggestions': {
                'zh': self.suggestions_zh,
                'en': self.suggestions_en
            },
            'http_status': self.http_status,
            'timestamp': self.timestamp.isoformat()
        }


class ErrorHandler:
    """错误处理器 - 负责错误分类、消息生成和建议生成"""

    def __init__(self, config: Optional[Dict[str, Any]] = None, logger: logging.Logger = None):
        """
        Args:
            config: 配置字典（用于生成代理相关建议）
            logger: 日志记录器（可选）
        """
        self.config = config or {}
        self.logger = logger or logging.getLogger(__name__)

    def handle_exception(
        self,
        exception: Exception,
        source: str,
        code: str,
        operation: str = 'unknown',
        http_status: Optional[int] = None
    ) -> StructuredError:
        """
        处理异常，生成结构化错误

        Args:
            exception: 捕获的异常
            source: 数据源名称
            code: 全局番号或数据源 ID
            operation: 出错的操作（search / metadata / images）
            http_status: HTTP 状态码（可选）

        Returns:
            StructuredError 对象
        """
        category = self._categorize_error(exception, http_status)

        if isinstance(exception, ScraperError):
            message_zh = exception.message_zh
            message_en = exception.message_en
        else:
            message_zh = str(exception) or type(exception).__name__
            message_en = message_zh

        suggestions_zh, suggestions_en = self._generate_suggestions(category, source)

        self._log_error(exception, source, code, operation, category, http_status)

        return StructuredError(
            category=category,
            source=source,
            code=code,
            operation=operation,
            message_zh=message_zh,
            message_en=message_en,
            suggestions_zh=suggestions_zh,
            suggestions_en=suggestions_en,
            http_status=http_status
        )

    def _categorize_error(
        self,
        exception: Exception,
        http_status: Optional[int] = None
    ) -> ErrorCategory:
        """错误分类逻辑"""
        if isinstance(exception, NetworkError):
            return ErrorCategory.NETWORK_ERROR
        elif isinstance(exception, SiteBlocked):
            return ErrorCategory.PROXY_REQUIRED
        elif isinstance(exception, MovieNotFoundError):
            return ErrorCategory.NOT_FOUND
        elif isinstance(exception, MovieDuplicateError):
            return ErrorCategory.DUPLICATE_ERROR
        elif isinstance(exception, WebsiteError):
            return ErrorCategory.SITE_ERROR

        if http_status:
            if http_status == 403:
                return ErrorCategory.PROXY_REQUIRED
            elif http_status == 404:
                return ErrorCategory.NOT_FOUND
            elif http_status >= 500:
                return ErrorCategory.SITE_ERROR

        return ErrorCategory.UNKNOWN

    def _generate_suggestions(
        self,
        category: ErrorCategory,
        source: str
    ) -> tuple[List[str], List[str]]:
        """
        生成可操作的建议

        Returns:
            (中文建议列表, 英文建议列表)
        """
        proxy_server = self.config.get('network', {}).get('proxy_server')

        if category == ErrorCategory.NETWORK_ERROR:
            return (
                ['🔌 检查网络连接', '🔄 稍后重试'],
                ['🔌 Check network connection', '🔄 Try again later']
            )

        elif category == ErrorCategory.PROXY_REQUIRED:
            if proxy_server:
                return (
                    [f'🔧 当前代理: {proxy_server}', '✅ 确认代理正常运行'],
                    [f'🔧 Current proxy: {proxy_server}', '✅ Ensure proxy is running']
                )
            return (
                [f'🚫 {source} 需要代理访问', '⚙️ 请在配置中设置 network.proxy_server'],
                [f'🚫 {source} requires proxy', '⚙️ Set network.proxy_server in config']
            )

        elif category == ErrorCategory.NOT_FOUND:
            return (
                ['🔍 确认番号是否正确', '🔄 尝试其他数据源'],
                ['🔍 Verify the code', '🔄 Try other sources']
            )

        elif category == ErrorCategory.DUPLICATE_ERROR:
            return (
                ['⚠️ 搜索结果有多个匹配', '✏️ 手动识别或启用 first_only'],
                ['⚠️ Multiple matches found', '✏️ Identify manually or enable first_only']
            )

        elif category == ErrorCategory.SITE_ERROR:
            return (
                [f'⚠️ {source} 页面异常', '🔄 稍后重试或换其他源'],
                [f'⚠️ {source} page error', '🔄 Retry or try other sources']
            )

        return (
            ['❓ 未知错误', '📋 查看日志了解详情'],
            ['❓ Unknown error', '📋 Check logs for details']
        )

    def _log_error(
        self,
        exception: Exception,
        source: str,
        code: str,
        operation: str,
        category: ErrorCategory,
        http_status: Optional[int] = None
    ):
        """记录错误日志"""
        log_msg = f"[{category.value}] {source}.{operation}: {code} - {exception}"
        if http_status:
            log_msg += f" (HTTP {http_status})"

        # 未找到只是"没有数据"，不算真正的错误
        if category == ErrorCategory.NOT_FOUND:
            self.logger.info(log_msg)
        else:
            self.logger.error(log_msg)

        # 详细堆栈仅在 DEBUG 模式记录
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug("Exception details:", exc_info=exception)


class ErrorAggregator:
    """错误聚合器 - 收集和汇总一次调用中多个数据源的错误"""

    def __init__(self):
        self.errors: List[StructuredError] = []

    def add_error(self, error: StructuredError):
        self.errors.append(error)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def failed_sources(self) -> List[str]:
        """失败的数据源（保持首次出现顺序）"""
        return list(dict.fromkeys(e.source for e in self.errors))

    def get_summary(self) -> Dict[str, Any]:
        """
        生成错误摘要

        Returns:
            错误摘要字典，没有错误时返回空字典
        """
        if not self.errors:
            return {}

        failed_sources = self.failed_sources()

        by_category = {}
        for error in self.errors:
            by_category.setdefault(error.category.value, []).append(error.source)

        summary_zh = f"共 {len(failed_sources)} 个数据源失败: {', '.join(failed_sources)}"
        summary_en = f"{len(failed_sources)} data source(s) failed: {', '.join(failed_sources)}"

        all_suggestions_zh = []
        all_suggestions_en = []
        for error in self.errors:
            all_suggestions_zh.extend(error.suggestions_zh)
            all_suggestions_en.extend(error.suggestions_en)

        return {
            'total_errors': len(self.errors),
            'failed_sources': failed_sources,
            'summary': {
                'zh': summary_zh,
                'en': summary_en
            },
            'by_category': by_category,
            'suggestions': {
                'zh': list(dict.fromkeys(all_suggestions_zh)),
                'en': list(dict.fromkeys(all_suggestions_en))
            },
            'errors': [e.to_dict() for e in self.errors]
        }
