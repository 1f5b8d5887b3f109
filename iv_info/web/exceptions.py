"""
网页抓取相关的异常
支持中英双语消息
"""

__all__ = ['ScraperError', 'NetworkError', 'MovieNotFoundError', 'MovieDuplicateError',
           'SiteBlocked', 'WebsiteError']


class ScraperError(Exception):
    """所有数据源相关异常的基类（支持双语消息）"""

    def __init__(self, message_zh: str, message_en: str = None, *args):
        """
        Args:
            message_zh: 中文错误消息
            message_en: 英文错误消息（可选，默认使用中文消息）
        """
        self.message_zh = message_zh
        self.message_en = message_en or message_zh
        super().__init__(message_zh, *args)


class NetworkError(ScraperError):
    """网络连接错误"""


class MovieNotFoundError(ScraperError):
    """表示某个站点没有找到某部影片"""

    def __init__(self, source: str, code: str, *args) -> None:
        """
        Args:
            source: 数据源名称（如 'dmm', 'javlibrary'）
            code: 番号或数据源 ID
        """
        message_zh = f"{source}: 未找到影片: '{code}'"
        message_en = f"{source}: Movie not found: '{code}'"
        super().__init__(message_zh, message_en, *args)
        self.source = source
        self.code = code

    def __str__(self):
        return self.message_zh


class MovieDuplicateError(ScraperError):
    """搜索结果有多个匹配，且未启用 first_only"""

    def __init__(self, source: str, code: str, count: int, *args) -> None:
        message_zh = f"{source}: '{code}': 存在 {count} 个匹配结果"
        message_en = f"{source}: '{code}': Found {count} matching results"
        super().__init__(message_zh, message_en, *args)
        self.source = source
        self.code = code
        self.count = count

    def __str__(self):
        return self.message_zh


class SiteBlocked(ScraperError):
    """由于 IP 段或触发反爬机制等原因导致被站点封锁"""

    def __init__(self, message_zh: str = None, message_en: str = None, source: str = None, *args):
        if message_zh is None:
            if source:
                message_zh = f"{source}: 站点封锁"
                message_en = f"{source}: Site blocked"
            else:
                message_zh = "站点封锁"
                message_en = "Site blocked"
        super().__init__(message_zh, message_en, *args)
        self.source = source


class WebsiteError(ScraperError):
    """非预期的状态码、页面结构变化等网页故障"""

    def __init__(self, message_zh: str = "网页故障", message_en: str = "Website error", *args):
        super().__init__(message_zh, message_en, *args)
