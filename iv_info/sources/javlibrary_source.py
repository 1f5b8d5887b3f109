"""
JAVLibrary 数据源
HTML 页面（cloudscraper + lxml），可选通过 FlareSolverr 访问
"""

from datetime import datetime
from typing import Optional, Dict, Any, List

import lxml.html

from .base_source import BaseSource, SourceSettings
from ..core.models import (
    LookupInfo, SearchCandidate, MetadataRecord, ImageCandidate, ImageKind, PersonKind
)
from ..core.cancellation import CancellationToken


DOMAIN_URL = "https://www.javlibrary.com/"
DOMAIN_URL_EN = DOMAIN_URL + "en/"
DOMAIN_URL_JA = DOMAIN_URL + "ja/"
PAGE_URL = "?v={0}"
SEARCH_URL = DOMAIN_URL_JA + "vl_searchbyid.php?keyword={0}"

NO_RESULTS = "ご指定の検索条件に合う項目がありませんでした"
MULTIPLE_RESULTS = "品番検索結果"
NO_IMAGE = "img/noimage"


def _text(html: lxml.html.HtmlElement, xpath: str) -> Optional[str]:
    nodes = html.xpath(xpath)
    if not nodes:
        return None
    node = nodes[0]
    value = node if isinstance(node, str) else node.text_content()
    return value.strip() or None


def _texts(html: lxml.html.HtmlElement, xpath: str) -> List[str]:
    result = []
    for node in html.xpath(xpath):
        value = node.text_content().strip()
        if value:
            result.append(value)
    return result


def _id_from_href(href: Optional[str]) -> str:
    """'.../?v=javli7abcd' -> 'javli7abcd'"""
    if not href or '=' not in href:
        return ''
    return href.split('=')[1]


def page_text(html: Optional[lxml.html.HtmlElement]) -> str:
    if html is None:
        return ''
    return html.text_content().strip()


def get_source_id(html: lxml.html.HtmlElement) -> str:
    hrefs = html.xpath("//div[@id='video_title']/*/a/@href")
    return _id_from_href(hrefs[0]) if hrefs else ''


def get_jacket_url(html: lxml.html.HtmlElement) -> Optional[str]:
    """封面大图地址（pl.jpg），无图时返回 None"""
    srcs = html.xpath("//img[@id='video_jacket_img']/@src")
    if not srcs:
        return None
    url = srcs[0].strip()
    if not url or NO_IMAGE in url:
        return None
    if not url.startswith('http'):
        url = 'https:' + url
    return url


def parse_listing(html: lxml.html.HtmlElement, global_id: str) -> List[Dict[str, Any]]:
    """
    解析多结果列表页

    Returns:
        [{'source_id', 'global_id', 'title', 'image_url'}, ...]
    """
    entries = []
    for node in html.xpath("//div[@class='videos']/div[@class='video']/a"):
        source_id = _id_from_href(node.get('href'))
        if not source_id:
            continue

        found_id = _text(node, "div[@class='id']") or _text(node, "div") or ''
        children = list(node)
        title = children[-1].text_content() if children else node.text_content()
        title = title.replace(global_id, '').strip()
        images = node.xpath("img/@src")

        entries.append({
            'source_id': source_id,
            'global_id': found_id,
            'title': title,
            'image_url': images[0] if images else None,
        })
    return entries


def parse_video_page(html: lxml.html.HtmlElement, global_id: Optional[str]) -> Dict[str, Any]:
    """解析单个影片页面"""
    title = _text(html, "//div[@id='video_title']/*/a")
    if title and global_id:
        title = title.replace(global_id, '').strip()

    release_date = None
    date_text = _text(html, "//div[@id='video_date']//td[@class='text']")
    if date_text:
        try:
            release_date = datetime.strptime(date_text, '%Y-%m-%d').date()
        except ValueError:
            release_date = None

    score = None
    score_text = _text(html, "//span[@class='score']")
    if score_text:
        score_text = score_text.replace('(', '').replace(')', '').strip()
        try:
            score = float(score_text)
        except ValueError:
            score = None

    return {
        'source_id': get_source_id(html),
        'title': title,
        'release_date': release_date,
        'score': score,
        'cast': _texts(html, "//span[@class='cast']/span[@class='star']"),
        'genres': _texts(html, "//span[@class='genre']"),
        'label': _text(html, "//span[@class='label']/a"),
        'maker': _text(html, "//span[@class='maker']/a"),
        'director': _text(html, "//span[@class='director']/a"),
        'jacket_url': get_jacket_url(html),
    }


def apply_japanese(record: MetadataRecord, page: Dict[str, Any], overwrite: bool = False, tags_english: bool = False):
    """写入日文页面的数据"""
    record.set_field('name', page.get('title'), overwrite)
    record.set_release_date(page.get('release_date'), overwrite)
    if page.get('score') is not None:
        record.set_field('community_rating', page['score'], overwrite)
    record.set_field('official_rating', 'R', overwrite)
    record.set_field('external_id', page.get('source_id'), overwrite)
    record.set_field('collection_name', page.get('label'), overwrite)

    record.add_studio(page.get('label'))
    record.add_studio(page.get('maker'))

    if not tags_english:
        record.add_genres(page.get('genres') or [])

    if page.get('director'):
        record.add_person(page['director'], PersonKind.DIRECTOR)
    for name in page.get('cast') or []:
        record.add_person(name, PersonKind.ACTOR)


def apply_english(
    record: MetadataRecord,
    page_en: Dict[str, Any],
    page_ja: Dict[str, Any],
    overwrite: bool = False,
    titles_english: bool = False,
    tags_english: bool = False,
    cast_english: bool = False
):
    """写入英文页面的数据（原标题、英文标签、罗马音名作为角色名）"""
    if titles_english:
        record.set_field('original_title', page_en.get('title'), overwrite)

    if tags_english:
        record.add_genres(page_en.get('genres') or [])

    if not cast_english:
        return

    director_ja = page_ja.get('director')
    if director_ja and page_en.get('director'):
        person = record.find_person(director_ja)
        if person is not None and person.kind == PersonKind.DIRECTOR:
            person.role = page_en['director']

    # 两个页面的演员顺序一致
    for name_ja, name_en in zip(page_ja.get('cast') or [], page_en.get('cast') or []):
        person = record.find_person(name_ja)
        if person is not None and person.kind == PersonKind.ACTOR:
            person.role = name_en


class JavlibrarySource(BaseSource):
    """JAVLibrary 数据源"""

    name = 'javlibrary'
    default_priority = 3
    image_kinds = (ImageKind.PRIMARY, ImageKind.BOX)
    use_scraper = True

    async def _search_impl(
        self,
        results: List[SearchCandidate],
        query: LookupInfo,
        global_id: str,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> List[SearchCandidate]:
        multiple, html = await self._search_page(global_id, cancel, settings)
        if html is None:
            return results

        if multiple:
            for entry in parse_listing(html, global_id):
                found_id = entry['global_id']
                # 列表中番号不同的条目不加消歧后缀
                same = found_id.upper() == global_id.upper()
                self._append_candidate(
                    results,
                    name=entry['title'],
                    source_id=entry['source_id'],
                    global_id=global_id if same else found_id,
                    image_url=entry['image_url'],
                    with_disambiguator=same
                )
                # 手动识别时只取第一条
                if settings.first_only and not query.is_automated:
                    break
        else:
            page = parse_video_page(html, global_id)
            jacket = page.get('jacket_url')
            self._append_candidate(
                results,
                name=page.get('title'),
                source_id=page['source_id'],
                global_id=global_id,
                image_url=jacket.replace('pl.jpg', 'ps.jpg') if jacket else None
            )

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
        html = await self._single_page(source_id, cancel, settings)
        if html is None:
            self.logger.debug(f"{self.name}: 页面为空")
            return None

        page_ja = parse_video_page(html, global_id)
        source_id = page_ja['source_id'] or source_id

        options = settings.options
        overwrite = settings.overwrite
        titles_english = options.get('titles_english', False)
        tags_english = options.get('tags_english', False)
        cast_english = options.get('cast_english', False)

        apply_japanese(record, page_ja, overwrite, tags_english)

        if titles_english or tags_english or cast_english:
            cancel.raise_if_cancelled()
            html_en = await self._get_html(DOMAIN_URL_EN + PAGE_URL.format(source_id), settings)
            if page_text(html_en):
                page_en = parse_video_page(html_en, global_id)
                apply_english(
                    record, page_en, page_ja, overwrite,
                    titles_english, tags_english, cast_english
                )

        return source_id

    async def _images_impl(
        self,
        source_id: str,
        kind: ImageKind,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> List[ImageCandidate]:
        html = await self._single_page(source_id, cancel, settings)
        if html is None:
            return []

        url = get_jacket_url(html)
        if not url:
            return []

        if kind == ImageKind.PRIMARY:
            url = url.replace('pl.jpg', 'ps.jpg')

        return [ImageCandidate(url=url, kind=kind, source_name=self.name)]

    async def _search_page(self, global_id: str, cancel: CancellationToken, settings: SourceSettings):
        """
        搜索番号

        Returns:
            (是否为多结果列表, 页面)；未找到时页面为 None
        """
        cancel.raise_if_cancelled()
        html = await self._get_html(SEARCH_URL.format(global_id), settings)
        text = page_text(html)
        if not text or NO_RESULTS in text:
            return False, None
        return MULTIPLE_RESULTS in text, html

    async def _single_page(
        self,
        source_id: str,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> Optional[lxml.html.HtmlElement]:
        self.logger.debug(f"{self.name}: 获取页面: {source_id}")
        cancel.raise_if_cancelled()
        html = await self._get_html(DOMAIN_URL_JA + PAGE_URL.format(source_id), settings)
        return html if page_text(html) else None

    async def _get_html(self, url: str, settings: SourceSettings) -> lxml.html.HtmlElement:
        self.logger.debug(f"{self.name}: 加载页面: {url}")
        options = settings.options
        request = self.create_request(settings)

        solverr_url = options.get('solverr_url')
        if options.get('use_solverr') and solverr_url:
            self.logger.debug(f"{self.name}: 使用 FlareSolverr: {solverr_url}")
            return await request.asolverr_get_html(url, solverr_url)

        return await request.aget_html(url)
