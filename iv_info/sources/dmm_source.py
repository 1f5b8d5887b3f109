"""
DMM 数据源
HTML 页面（requests + lxml），需要年龄确认 cookies
"""

import json
import re
from datetime import datetime, date
from typing import Optional, Dict, Any, List
from urllib.parse import unquote

import lxml.html

from .base_source import BaseSource, SourceSettings
from ..core.models import (
    LookupInfo, SearchCandidate, MetadataRecord, ImageCandidate, ImageKind, PersonKind
)
from ..core.id_resolver import pad_number, compact_id
from ..core.cancellation import CancellationToken
from ..web.exceptions import MovieNotFoundError


DOMAIN_URL = "https://www.dmm.co.jp/"
SEARCH_URL = DOMAIN_URL + "search/=/searchstr={0}"

NO_PAGE = "404 Not Found"
NO_RESULTS = "に一致する商品は見つかりませんでした"

METADATA_SELECTOR = "//table[@class='mg-b20']//tr/td[@class='nw']"
PUBLISH_DATE = "発売日"
PUBLISH_DATE_RENTAL = "貸出開始日"
DIRECTOR = "監督"
SERIES = "シリーズ"
MAKER = "メーカー"
LABEL = "レーベル"
EXPAND = "すべて表示する"

# 描述所在位置随页面版本不同
DESCRIPTION_SELECTORS = (
    "//div[@class='clear mg-b20 lh4']/p[@class='mg-t0 mg-b20']",
    "//div[@class='mg-b20 lh4']/p[@class='mg-b20']",
    "//div[@class='mg-b20 lh4']",
)


def page_text(html: Optional[lxml.html.HtmlElement]) -> str:
    if html is None:
        return ''
    return html.text_content().strip()


def parse_date(value: Optional[str]) -> Optional[date]:
    """DMM 日期格式为 2020/01/31"""
    if not value:
        return None
    for fmt in ('%Y/%m/%d', '%Y-%m-%d'):
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    return None


def labelled_value(html: lxml.html.HtmlElement, label: str) -> Optional[str]:
    """详情表格中某个标签对应的值（同一行最后一个单元格）"""
    for cell in html.xpath(METADATA_SELECTOR):
        if label not in cell.text_content():
            continue
        cells = cell.getparent().xpath("td")
        if not cells:
            return None
        value = cells[-1].text_content().strip().strip('-').strip()
        return value or None
    return None


def parse_search_page(html: lxml.html.HtmlElement, global_id: str) -> List[Dict[str, Any]]:
    """
    解析搜索结果列表，只保留 CID 与番号匹配的条目

    Returns:
        [{'source_id', 'title', 'image_url'}, ...]
    """
    pattern = re.compile(rf"/cid=(\w_\d+)?{re.escape(compact_id(global_id))}/")
    entries = []
    for anchor in html.xpath("//div[@class='d-item']/ul[@id='list']/li/div/p[@class='tmb']/a"):
        href = unquote(anchor.get('href') or '')
        if not pattern.search(href.lower()):
            continue

        images = anchor.xpath(".//img")
        title = anchor.text_content().strip()
        if not title and images:
            title = (images[0].get('alt') or '').strip()

        entries.append({
            'source_id': href,
            'title': title,
            'image_url': images[0].get('src') if images else None,
        })
    return entries


def parse_detail_page(html: lxml.html.HtmlElement) -> Dict[str, Any]:
    """解析详情页"""
    titles = html.xpath("//div[@class='area-headline group']/div[@class='hreview']/h1")
    title = titles[0].text_content().strip() if titles else None

    release_date = parse_date(labelled_value(html, PUBLISH_DATE))
    if release_date is None:
        release_date = parse_date(labelled_value(html, PUBLISH_DATE_RENTAL))

    performers = []
    for anchor in html.xpath("//span[@id='performer']/a"):
        name = anchor.text_content().strip()
        if name and EXPAND not in name:
            performers.append(name)

    description = None
    for selector in DESCRIPTION_SELECTORS:
        nodes = html.xpath(selector)
        if nodes:
            description = nodes[0].text_content().strip()
            if description:
                break

    return {
        'title': title,
        'description': description or None,
        'release_date': release_date,
        'performers': performers,
        'director': labelled_value(html, DIRECTOR),
        'maker': labelled_value(html, MAKER),
        'label': labelled_value(html, LABEL),
        'series': labelled_value(html, SERIES),
    }


def apply_metadata(record: MetadataRecord, page: Dict[str, Any], source_id: str, overwrite: bool = False):
    record.set_field('name', page.get('title'), overwrite)
    record.set_field('overview', page.get('description'), overwrite)
    record.set_release_date(page.get('release_date'), overwrite)
    record.set_field('official_rating', 'R', overwrite)
    record.set_field('external_id', source_id, overwrite)
    record.set_field('collection_name', page.get('series'), overwrite)

    record.add_studio(page.get('label'))
    record.add_studio(page.get('maker'))

    for name in page.get('performers') or []:
        record.add_person(name, PersonKind.ACTOR)
    if page.get('director'):
        record.add_person(page['director'], PersonKind.DIRECTOR)


def extract_images(html: lxml.html.HtmlElement, kind: ImageKind, source_name: str) -> List[ImageCandidate]:
    if kind == ImageKind.PRIMARY:
        urls = html.xpath("//img[@class='tdmm']/@src")
    elif kind == ImageKind.BOX:
        urls = html.xpath("//a[@name='package-image']/@href")[:1]
    elif kind == ImageKind.SCREENSHOT:
        urls = html.xpath("//div[@id='sample-image-block']/a/img/@src")
    else:
        urls = []

    if kind == ImageKind.PRIMARY:
        urls = urls[:1]

    return [ImageCandidate(url=url, kind=kind, source_name=source_name) for url in urls if url]


def parse_sample_play_url(html: lxml.html.HtmlElement) -> Optional[str]:
    """详情页中预告片播放器页面的地址"""
    onclicks = html.xpath("//div[@id='detail-sample-movie']/div/a/@onclick")
    if not onclicks:
        return None
    match = re.search(r"sampleplay\('/(.*?)'\); return false;", onclicks[0])
    if not match:
        return None
    return DOMAIN_URL + match.group(1)


def parse_player_iframe(html: lxml.html.HtmlElement) -> Optional[str]:
    srcs = html.xpath("//iframe/@src")
    return srcs[0] if srcs else None


def parse_trailer_src(html: lxml.html.HtmlElement) -> Optional[str]:
    """播放器脚本中 `const args = {...};` 的 src 字段"""
    for script in html.xpath("//script"):
        content = script.text or ''
        if 'litevideo' not in content:
            continue
        match = re.search(r"const args = (\{.*?\});", content, re.S)
        if not match:
            return None
        try:
            args = json.loads(match.group(1))
        except ValueError:
            return None
        src = args.get('src')
        if not src:
            return None
        return src if src.startswith('http') else f"https:{src}"
    return None


class DmmSource(BaseSource):
    """DMM 数据源"""

    name = 'dmm'
    default_priority = 4
    image_kinds = (ImageKind.PRIMARY, ImageKind.BOX, ImageKind.SCREENSHOT)
    cookies = {'age_check_done': '1', 'cklg': 'ja'}

    async def _search_impl(
        self,
        results: List[SearchCandidate],
        query: LookupInfo,
        global_id: str,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> List[SearchCandidate]:
        cancel.raise_if_cancelled()
        html = await self.create_request(settings).aget_html(SEARCH_URL.format(pad_number(global_id)))
        if NO_RESULTS in page_text(html):
            self.logger.debug(f"{self.name}: 没有搜索结果")
            return results

        # 结果链接里通常只有图片，不能用页面文本判断是否为空
        for entry in parse_search_page(html, global_id):
            self._append_candidate(
                results,
                name=entry['title'],
                source_id=entry['source_id'],
                global_id=global_id,
                image_url=entry['image_url'],
                with_disambiguator=False
            )
            if settings.first_only and not query.is_automated:
                break

        self.logger.debug(f"{self.name}: 找到 {len(results)} 个结果")
        return results

    async def _fill_impl(
        self,
        record: MetadataRecord,
        source_id: str,
        global_id: str,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> Optional[str]:
        request = self.create_request(settings)
        html = await request.aget_html(source_id)
        if NO_PAGE in page_text(html):
            raise MovieNotFoundError(self.name, source_id)

        page = parse_detail_page(html)
        if not page['title']:
            self.logger.debug(f"{self.name}: 详情页没有标题: {source_id}")
            return None

        apply_metadata(record, page, source_id, settings.overwrite)

        if settings.options.get('get_trailers', False):
            trailer_url = await self._get_trailer_url(request, html, cancel)
            record.add_trailer_url(trailer_url)
        else:
            self.logger.debug(f"{self.name}: 未启用预告片获取")

        return source_id

    async def _images_impl(
        self,
        source_id: str,
        kind: ImageKind,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> List[ImageCandidate]:
        self.logger.debug(f"{self.name}: 数据源 ID: {source_id}")
        html = await self.create_request(settings).aget_html(source_id, delay_raise=True)
        if NO_PAGE in page_text(html):
            return []
        return extract_images(html, kind, self.name)

    async def _get_trailer_url(self, request, html: lxml.html.HtmlElement, cancel: CancellationToken) -> Optional[str]:
        sample_url = parse_sample_play_url(html)
        if not sample_url:
            return None

        cancel.raise_if_cancelled()
        player = await request.aget_html(sample_url)
        iframe_src = parse_player_iframe(player)
        if not iframe_src:
            return None

        cancel.raise_if_cancelled()
        player = await request.aget_html(iframe_src)
        return parse_trailer_src(player)
