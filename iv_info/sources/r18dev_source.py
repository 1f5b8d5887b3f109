"""
R18.dev 数据源
JSON 接口：先按 DVD 番号查 content_id，再按 content_id 取完整数据
"""

import asyncio
import aiohttp
from datetime import datetime, date
from typing import Optional, Dict, Any, List

from .base_source import BaseSource, SourceSettings
from ..core.models import (
    LookupInfo, SearchCandidate, MetadataRecord, ImageCandidate, ImageKind, PersonKind
)
from ..core.cancellation import CancellationToken
from ..web.exceptions import MovieNotFoundError, NetworkError, WebsiteError


SEARCH_URL = "https://r18.dev/videos/vod/movies/detail/-/dvd_id={0}/json"
DATA_URL = "https://r18.dev/videos/vod/movies/detail/-/combined={0}/json"
ACTRESS_IMAGE_URL = "https://pics.dmm.co.jp/mono/actjpgs/{0}"


def parse_release_date(value: Optional[str]) -> Optional[date]:
    """解析 '2020-01-31' 或 '2020-01-31 10:00:00' 格式的日期"""
    if not value:
        return None
    for fmt in ('%Y-%m-%d %H:%M:%S', '%Y-%m-%d'):
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    return None


def apply_metadata(
    record: MetadataRecord,
    data: Dict[str, Any],
    overwrite: bool = False,
    titles_english: bool = False,
    tags_english: bool = False,
    cast_english: bool = False
):
    """将 R18.dev 的 JSON 写入记录"""
    record.set_field('name', data.get('title_ja'), overwrite)
    if titles_english:
        record.set_field('original_title', data.get('title_en'), overwrite)

    record.set_release_date(parse_release_date(data.get('release_date')), overwrite)
    record.set_field('official_rating', 'R', overwrite)
    record.set_field('collection_name', data.get('series_name_ja'), overwrite)
    record.add_studio(data.get('maker_name_ja'))

    # 英文标签与日文标签二选一
    genre_key = 'name_en' if tags_english else 'name_ja'
    record.add_genres(c.get(genre_key) for c in data.get('categories') or [])

    for actress in data.get('actresses') or []:
        image = actress.get('image_url')
        record.add_person(
            actress.get('name_kanji'),
            PersonKind.ACTOR,
            role=actress.get('name_romaji') if cast_english else None,
            image_url=ACTRESS_IMAGE_URL.format(image) if image else None
        )

    for director in data.get('directors') or []:
        record.add_person(
            director.get('name_kanji'),
            PersonKind.DIRECTOR,
            role=director.get('name_romaji') if cast_english else None
        )


def extract_images(data: Dict[str, Any], kind: ImageKind, source_name: str) -> List[ImageCandidate]:
    """从 JSON 中取出指定类型的图片"""
    if kind == ImageKind.PRIMARY:
        url = data.get('jacket_thumb_url')
        return [ImageCandidate(url=url, kind=kind, source_name=source_name)] if url else []

    if kind == ImageKind.BOX:
        url = data.get('jacket_full_url')
        return [ImageCandidate(url=url, kind=kind, source_name=source_name)] if url else []

    if kind == ImageKind.SCREENSHOT:
        result = []
        for entry in data.get('gallery') or []:
            url = entry.get('image_thumb')
            if url:
                result.append(ImageCandidate(url=url, kind=kind, source_name=source_name, thumbnail_url=url))
        return result

    return []


class R18DevSource(BaseSource):
    """R18.dev 数据源"""

    name = 'r18dev'
    default_priority = 1
    image_kinds = (ImageKind.PRIMARY, ImageKind.BOX, ImageKind.SCREENSHOT)

    async def _search_impl(
        self,
        results: List[SearchCandidate],
        query: LookupInfo,
        global_id: str,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> List[SearchCandidate]:
        data = await self._get_data(cancel, settings, global_id=global_id)
        if data is None:
            return results

        source_id = data.get('content_id')
        self._append_candidate(
            results,
            name=data.get('title_ja'),
            source_id=source_id,
            global_id=global_id,
            image_url=data.get('jacket_thumb_url')
        )
        return results

    async def _find_source_id(
        self,
        lookup: LookupInfo,
        global_id: str,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> str:
        # DVD 番号查询只会返回一个 content_id
        data = await self._get_json(SEARCH_URL.format(global_id), cancel, settings)
        source_id = (data or {}).get('content_id')
        if not source_id:
            raise MovieNotFoundError(self.name, global_id)
        return source_id

    async def _fill_impl(
        self,
        record: MetadataRecord,
        source_id: str,
        global_id: str,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> Optional[str]:
        data = await self._get_data(cancel, settings, source_id=source_id)
        if data is None:
            raise MovieNotFoundError(self.name, source_id)

        options = settings.options
        apply_metadata(
            record,
            data,
            overwrite=settings.overwrite,
            titles_english=options.get('titles_english', False),
            tags_english=options.get('tags_english', False),
            cast_english=options.get('cast_english', False)
        )
        return data.get('content_id') or source_id

    async def _images_impl(
        self,
        source_id: str,
        kind: ImageKind,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> List[ImageCandidate]:
        self.logger.debug(f"{self.name}: 数据源 ID: {source_id}")
        data = await self._get_data(cancel, settings, source_id=source_id)
        if data is None:
            return []
        return extract_images(data, kind, self.name)

    async def _get_data(
        self,
        cancel: CancellationToken,
        settings: SourceSettings,
        global_id: str = '',
        source_id: str = ''
    ) -> Optional[Dict[str, Any]]:
        """取完整数据，未找到时返回 None"""
        if not source_id:
            search = await self._get_json(SEARCH_URL.format(global_id), cancel, settings)
            if not search:
                return None
            source_id = search.get('content_id') or ''
            if not source_id:
                return None

        cancel.raise_if_cancelled()
        return await self._get_json(DATA_URL.format(source_id), cancel, settings)

    async def _get_json(
        self,
        url: str,
        cancel: CancellationToken,
        settings: SourceSettings
    ) -> Optional[Dict[str, Any]]:
        cancel.raise_if_cancelled()
        network = settings.config.get('network', {})
        proxy = network.get('proxy_server') or None
        timeout = aiohttp.ClientTimeout(total=network.get('timeout', 30))

        self.logger.debug(f"{self.name}: 请求 {url}")
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url, proxy=proxy) as response:
                    if response.status == 404:
                        return None
                    if response.status != 200:
                        raise WebsiteError(
                            f"{self.name}: 非预期的状态码 {response.status}: {url}",
                            f"{self.name}: Unexpected status {response.status}: {url}"
                        )
                    data = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise NetworkError(
                f"请求失败: {url}",
                f"Request failed: {url}"
            ) from e
        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"请求超时: {url}",
                f"Request timeout: {url}"
            ) from e
        except ValueError as e:
            raise WebsiteError(
                f"响应不是有效的 JSON: {url}",
                f"Response is not valid JSON: {url}"
            ) from e

        if not isinstance(data, dict):
            return None
        return data
