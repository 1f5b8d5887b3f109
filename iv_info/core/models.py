"""
核心数据模型
包含所有数据源和聚合器共用的数据结构
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, Any, Optional, List, Iterable


# 全局番号在 provider_ids 中使用的键
GLOBAL_ID_KEY = 'IvInfo'

# 搜索结果中全局番号与消歧后缀之间的分隔符
DISAMBIGUATOR_SEP = '|'


class ImageKind(Enum):
    """图片类型"""
    PRIMARY = 'Primary'
    BOX = 'Box'
    SCREENSHOT = 'Screenshot'
    BACKDROP = 'Backdrop'
    THUMB = 'Thumb'


class PersonKind(Enum):
    """人员类型"""
    ACTOR = 'Actor'
    DIRECTOR = 'Director'


def _is_empty(value: Any) -> bool:
    """判断字段是否为空（None、空字符串或纯空白字符串）"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


@dataclass
class LookupInfo:
    """
    查询信息（搜索和元数据填充共用）

    字段：
        name: 条目名称（通常为标题）
        path: 文件路径
        metadata_language: 元数据语言
        metadata_country_code: 元数据国家代码
        is_automated: 是否为自动刮削（手动识别时为 False）
        year: 年份（可选）
        provider_ids: 已知的数据源 ID（包括全局番号）
    """
    name: Optional[str] = None
    path: Optional[str] = None
    metadata_language: Optional[str] = None
    metadata_country_code: Optional[str] = None
    is_automated: bool = True
    year: Optional[int] = None
    provider_ids: Dict[str, str] = field(default_factory=dict)

    def get_provider_id(self, name: str) -> Optional[str]:
        value = self.provider_ids.get(name)
        return value or None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LookupInfo':
        """从请求字典构造（插件入口使用）"""
        return cls(
            name=data.get('name'),
            path=data.get('path'),
            metadata_language=data.get('metadata_language'),
            metadata_country_code=data.get('metadata_country_code'),
            is_automated=data.get('is_automated', True),
            year=data.get('year'),
            provider_ids=dict(data.get('provider_ids') or {}),
        )


@dataclass
class SearchCandidate:
    """
    搜索候选结果

    index_number 是插入时分配的递增序号，仅用于稳定排序，不是业务主键。
    全局番号保存在 provider_ids[GLOBAL_ID_KEY] 中，可能带有 "|数据源ID" 消歧后缀。
    """
    name: str = ''
    source_name: str = ''
    index_number: int = 0
    image_url: Optional[str] = None
    overview: Optional[str] = None
    provider_ids: Dict[str, str] = field(default_factory=dict)

    @property
    def global_id(self) -> str:
        return self.provider_ids.get(GLOBAL_ID_KEY) or ''

    @property
    def global_id_prefix(self) -> str:
        """全局番号中 '|' 之前的部分"""
        return self.global_id.split(DISAMBIGUATOR_SEP)[0]

    def get_provider_id(self, name: str) -> Optional[str]:
        value = self.provider_ids.get(name)
        return value or None

    def set_provider_id(self, name: str, value: Optional[str]):
        if value:
            self.provider_ids[name] = value

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'image_url': self.image_url,
            'overview': self.overview,
            'source_name': self.source_name,
            'index_number': self.index_number,
            'provider_ids': dict(self.provider_ids),
        }


@dataclass
class PersonInfo:
    """演员/导演信息（按 name 去重）"""
    name: str
    kind: PersonKind = PersonKind.ACTOR
    role: Optional[str] = None
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'kind': self.kind.value,
            'role': self.role,
            'image_url': self.image_url,
        }


@dataclass
class MetadataRecord:
    """
    元数据记录（聚合输出）

    记录由调用方独占，数据源只通过下面的辅助方法写入字段：
    - 标量字段：set_field()，仅在字段为空或 overwrite=True 时写入
    - 集合字段（studios/genres/people/trailer_urls）：add_*()，只追加并按键去重，从不整体替换
    """
    name: Optional[str] = None
    original_title: Optional[str] = None
    overview: Optional[str] = None
    premiere_date: Optional[date] = None
    production_year: Optional[int] = None
    official_rating: Optional[str] = None
    community_rating: Optional[float] = None
    external_id: Optional[str] = None
    collection_name: Optional[str] = None
    studios: List[str] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)
    people: List[PersonInfo] = field(default_factory=list)
    trailer_urls: List[str] = field(default_factory=list)
    provider_ids: Dict[str, str] = field(default_factory=dict)
    path: Optional[str] = None
    has_metadata: bool = False

    # 允许通过 set_field 写入的标量字段
    SCALAR_FIELDS = (
        'name', 'original_title', 'overview', 'premiere_date', 'production_year',
        'official_rating', 'community_rating', 'external_id', 'collection_name',
    )

    @property
    def global_id(self) -> Optional[str]:
        return self.get_provider_id(GLOBAL_ID_KEY)

    def get_provider_id(self, name: str) -> Optional[str]:
        value = self.provider_ids.get(name)
        return value or None

    def set_provider_id(self, name: str, value: Optional[str]):
        if value:
            self.provider_ids[name] = value

    def set_field(self, field_name: str, value: Any, overwrite: bool = False) -> bool:
        """
        写入标量字段

        Args:
            field_name: 字段名（必须在 SCALAR_FIELDS 中）
            value: 新值，空值不会写入
            overwrite: 是否覆盖已有值

        Returns:
            True 如果字段被写入
        """
        if field_name not in self.SCALAR_FIELDS:
            raise ValueError(f"不支持的标量字段: {field_name}")
        if _is_empty(value):
            return False
        if not overwrite and not _is_empty(getattr(self, field_name)):
            return False
        setattr(self, field_name, value)
        return True

    def set_release_date(self, value: Optional[date], overwrite: bool = False) -> bool:
        """同时写入发行日期和年份"""
        if value is None:
            return False
        if isinstance(value, datetime):
            value = value.date()
        wrote_date = self.set_field('premiere_date', value, overwrite)
        wrote_year = self.set_field('production_year', value.year, overwrite)
        return wrote_date or wrote_year

    def add_studio(self, studio: Optional[str]) -> bool:
        return self._add_unique(self.studios, studio)

    def add_genre(self, genre: Optional[str]) -> bool:
        return self._add_unique(self.genres, genre)

    def add_genres(self, genres: Iterable[str]) -> int:
        return sum(1 for genre in genres if self.add_genre(genre))

    def add_trailer_url(self, url: Optional[str]) -> bool:
        return self._add_unique(self.trailer_urls, url)

    def find_person(self, name: str) -> Optional[PersonInfo]:
        for person in self.people:
            if person.name == name:
                return person
        return None

    def add_person(
        self,
        name: Optional[str],
        kind: PersonKind = PersonKind.ACTOR,
        role: Optional[str] = None,
        image_url: Optional[str] = None
    ) -> bool:
        """添加人员（同名人员只保留第一个）"""
        if _is_empty(name):
            return False
        name = name.strip()
        if self.find_person(name) is not None:
            return False
        self.people.append(PersonInfo(name=name, kind=kind, role=role, image_url=image_url))
        return True

    @staticmethod
    def _add_unique(target: List[str], value: Optional[str]) -> bool:
        if _is_empty(value):
            return False
        value = value.strip()
        if value in target:
            return False
        target.append(value)
        return True

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（用于 JSON 序列化）"""
        return {
            'name': self.name,
            'original_title': self.original_title,
            'overview': self.overview,
            'premiere_date': self.premiere_date.isoformat() if self.premiere_date else None,
            'production_year': self.production_year,
            'official_rating': self.official_rating,
            'community_rating': self.community_rating,
            'external_id': self.external_id,
            'collection_name': self.collection_name,
            'studios': list(self.studios),
            'genres': list(self.genres),
            'people': [p.to_dict() for p in self.people],
            'trailer_urls': list(self.trailer_urls),
            'provider_ids': dict(self.provider_ids),
            'path': self.path,
            'has_metadata': self.has_metadata,
        }


@dataclass
class ImageItem:
    """请求图片的条目：已知的数据源 ID 和已存在的图片类型"""
    provider_ids: Dict[str, str] = field(default_factory=dict)
    existing_image_kinds: set = field(default_factory=set)
    preferred_language: Optional[str] = None

    def get_provider_id(self, name: str) -> Optional[str]:
        value = self.provider_ids.get(name)
        return value or None

    def has_image(self, kind: ImageKind) -> bool:
        return kind in self.existing_image_kinds

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ImageItem':
        kinds = {ImageKind(k) for k in data.get('existing_image_kinds') or []}
        return cls(
            provider_ids=dict(data.get('provider_ids') or {}),
            existing_image_kinds=kinds,
            preferred_language=data.get('preferred_language'),
        )


@dataclass
class ImageCandidate:
    """图片候选（只有 URL，不做任何图片处理）"""
    url: str
    kind: ImageKind
    source_name: str
    thumbnail_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'thumbnail_url': self.thumbnail_url,
            'kind': self.kind.value,
            'source_name': self.source_name,
        }


@dataclass
class SourceDescriptor:
    """数据源描述（每次调用时根据当前配置重新生成）"""
    name: str
    priority: int
    enabled: bool
    image_enabled: bool
    handled_image_kinds: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'priority': self.priority,
            'enabled': self.enabled,
            'image_enabled': self.image_enabled,
            'handled_image_kinds': [k.value for k in self.handled_image_kinds],
        }
