"""
HTTP 请求封装

同步请求基于 requests / cloudscraper，异步接口通过 asyncio.to_thread 桥接，
避免阻塞事件循环。
"""

import asyncio
import logging
import requests
import cloudscraper
import lxml.html
from cloudscraper.exceptions import CloudflareException
from typing import Dict, Any, Optional
from requests.models import Response

from .exceptions import NetworkError, SiteBlocked, WebsiteError

logger = logging.getLogger(__name__)


class Request:
    """
    HTTP 请求封装类
    支持自定义 headers、cookies、代理等
    支持 CloudFlare 绕过和 FlareSolverr 代理
    """

    # 默认 User-Agent 和浏览器请求头（模拟真实浏览器）
    DEFAULT_HEADERS = {
        'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/132.0.0.0 Safari/537.36',
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8',
        'Accept-Language': 'ja-JP,ja;q=0.9,en;q=0.8',
        'Accept-Encoding': 'gzip, deflate',
        'Connection': 'keep-alive',
        'Upgrade-Insecure-Requests': '1',
    }

    # FlareSolverr 单次请求的最长等待时间（毫秒）
    SOLVERR_MAX_TIMEOUT = 40000

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        use_scraper: bool = False,
        cookies: Optional[Dict[str, str]] = None
    ):
        """
        初始化 Request 对象

        Args:
            config: 配置字典，包含 network 配置
            use_scraper: 是否使用 cloudscraper（用于绕过 CloudFlare）
            cookies: 每次请求都携带的 cookies（如年龄确认）
        """
        self.config = config or {}
        network_config = self.config.get('network', {})

        self.headers = self.DEFAULT_HEADERS.copy()
        self.cookies = dict(cookies or {})

        proxy_server = network_config.get('proxy_server')
        if proxy_server:
            self.proxies = {'http': proxy_server, 'https': proxy_server}
            logger.debug(f"使用代理: {proxy_server}")
        else:
            self.proxies = {}

        self.timeout = network_config.get('timeout', 30)

        # 超时和连接错误的最大尝试次数
        self.retry = max(1, int(network_config.get('retry', 3) or 1))

        if use_scraper:
            self.scraper = cloudscraper.create_scraper()
            self._get = self._scraper_monitor(self.scraper.get)
        else:
            self.scraper = None
            self.session = requests.Session()
            self._get = self.session.get

        self._post = requests.post

    def _scraper_monitor(self, func):
        """
        监控 cloudscraper 的工作状态
        遇到不支持的 Challenge 时尝试退回常规的 requests 请求
        """
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except CloudflareException as e:
                logger.debug(f"无法通过 CloudFlare 检测: '{e}', 尝试退回常规的 requests 请求")
                return requests.get(*args, **kwargs)
        return wrapper

    def get(self, url: str, delay_raise: bool = False, **kwargs) -> Response:
        """
        发送 GET 请求

        Args:
            url: 请求 URL
            delay_raise: 是否延迟抛出异常（不检查状态码）
            **kwargs: 其他 requests 参数

        Returns:
            Response 对象

        Raises:
            NetworkError: 网络错误
            SiteBlocked: 站点封锁
        """
        for attempt in range(1, self.retry + 1):
            try:
                return self._get_once(url, delay_raise, **kwargs)
            except NetworkError as e:
                retryable = isinstance(e.__cause__, (requests.exceptions.Timeout, requests.exceptions.ConnectionError))
                if attempt >= self.retry or not retryable:
                    raise
                logger.debug(f"请求失败，重试 {attempt}/{self.retry}: {url}")

    def _get_once(self, url: str, delay_raise: bool = False, **kwargs) -> Response:
        try:
            r = self._get(
                url,
                headers=self.headers,
                proxies=self.proxies,
                cookies=self.cookies,
                timeout=self.timeout,
                **kwargs
            )

            # 检查 CloudFlare 封锁
            if r.status_code == 403 and b'>Just a moment...<' in r.content:
                raise SiteBlocked(
                    f"403 Forbidden: 无法通过 CloudFlare 检测: {url}",
                    f"403 Forbidden: Cannot bypass CloudFlare detection: {url}"
                )

            if not delay_raise:
                r.raise_for_status()

            return r

        except requests.exceptions.Timeout as e:
            raise NetworkError(
                f"请求超时: {url}",
                f"Request timeout: {url}"
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(
                f"连接错误: {url}",
                f"Connection error: {url}"
            ) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(
                f"请求失败: {url}",
                f"Request failed: {url}"
            ) from e

    def get_html(self, url: str, encoding: str = 'utf-8', delay_raise: bool = False) -> lxml.html.HtmlElement:
        """
        获取 HTML 并解析为 lxml 对象

        Args:
            url: 请求 URL
            encoding: 编码格式（None 表示自动检测）
            delay_raise: 是否延迟抛出异常

        Returns:
            lxml.html.HtmlElement 对象（链接已转为绝对地址）
        """
        r = self.get(url, delay_raise=delay_raise)

        if encoding:
            r.encoding = encoding
        else:
            r.encoding = r.apparent_encoding

        return parse_html(r.text, url)

    def get_json(self, url: str) -> Any:
        """获取 JSON 响应"""
        r = self.get(url)
        try:
            return r.json()
        except ValueError as e:
            raise WebsiteError(
                f"响应不是有效的 JSON: {url}",
                f"Response is not valid JSON: {url}"
            ) from e

    def solverr_get_html(self, url: str, solverr_url: str) -> lxml.html.HtmlElement:
        """
        通过 FlareSolverr 获取页面

        Args:
            url: 目标页面 URL
            solverr_url: FlareSolverr 服务地址（如 http://localhost:8191）

        Returns:
            lxml.html.HtmlElement 对象
        """
        endpoint = solverr_url.rstrip('/') + '/v1'
        payload = {
            'cmd': 'request.get',
            'url': url,
            'maxTimeout': self.SOLVERR_MAX_TIMEOUT,
        }

        try:
            r = self._post(
                endpoint,
                json=payload,
                timeout=self.SOLVERR_MAX_TIMEOUT / 1000 + 5
            )
            r.raise_for_status()
            data = r.json()
        except requests.exceptions.RequestException as e:
            raise NetworkError(
                f"FlareSolverr 请求失败: {endpoint}",
                f"FlareSolverr request failed: {endpoint}"
            ) from e
        except ValueError as e:
            raise WebsiteError(
                f"FlareSolverr 响应格式错误: {endpoint}",
                f"Invalid FlareSolverr response: {endpoint}"
            ) from e

        if data.get('status') != 'ok':
            raise SiteBlocked(
                f"FlareSolverr 无法获取页面: {data.get('message')}",
                f"FlareSolverr failed: {data.get('message')}"
            )

        text = (data.get('solution') or {}).get('response') or ''
        return parse_html(text, url)

    # ---- 异步桥接 ----

    async def aget_html(self, url: str, encoding: str = 'utf-8', delay_raise: bool = False) -> lxml.html.HtmlElement:
        return await asyncio.to_thread(self.get_html, url, encoding, delay_raise)

    async def aget_json(self, url: str) -> Any:
        return await asyncio.to_thread(self.get_json, url)

    async def asolverr_get_html(self, url: str, solverr_url: str) -> lxml.html.HtmlElement:
        return await asyncio.to_thread(self.solverr_get_html, url, solverr_url)


def parse_html(text: str, base_url: Optional[str] = None) -> lxml.html.HtmlElement:
    """解析 HTML 文本（测试中直接用于解析样例页面）"""
    html = lxml.html.fromstring(text or '<html></html>')
    if base_url:
        html.make_links_absolute(base_url, resolve_base_href=True)
    return html
