"""
Pytest config: local package imports and in-memory sources.
"""

import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest


def _add_repo_root_to_path() -> None:
    """
    Insert the repo root into sys.path for local imports.
    """
    repo_root = Path(__file__).resolve().parent.parent
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_add_repo_root_to_path()

from iv_info.core.config_loader import ConfigStore  # noqa: E402
from iv_info.core.models import ImageCandidate, ImageKind, PersonKind  # noqa: E402
from iv_info.managers.iv_info_manager import IvInfoManager  # noqa: E402
from iv_info.sources.base_source import BaseSource  # noqa: E402
from iv_info.web.exceptions import NetworkError  # noqa: E402


class FakeSource(BaseSource):
    """
    In-memory source for aggregation tests.

    catalog: global id -> list of entries; each entry is a dict with
    'source_id', 'title' and optional 'overview', 'genres', 'studios',
    'actors', 'image_url'.
    images: (source_id, kind) -> list of urls.
    fail_on: operations that raise ('search', 'metadata', 'images').
    tokens: cancellation token seen by each call.
    """

    def __init__(
        self,
        store: ConfigStore,
        name: str,
        catalog: Optional[Dict[str, List[dict]]] = None,
        images: Optional[Dict[Tuple[str, ImageKind], List[str]]] = None,
        image_kinds: Tuple[ImageKind, ...] = (ImageKind.PRIMARY, ImageKind.SCREENSHOT),
        fail_on: Tuple[str, ...] = ()
    ):
        self.name = name
        super().__init__(store)
        self.catalog = catalog or {}
        self.images = images or {}
        self.image_kinds = image_kinds
        self.fail_on = set(fail_on)
        self.calls: List[tuple] = []
        self.tokens: list = []

    async def _search_impl(self, results, query, global_id, cancel, settings):
        self.calls.append(('search', global_id))
        self.tokens.append(cancel)
        if 'search' in self.fail_on:
            raise NetworkError(f"{self.name} down", f"{self.name} down")

        for entry in self.catalog.get(global_id.upper(), []):
            self._append_candidate(
                results,
                name=entry['title'],
                source_id=entry['source_id'],
                global_id=global_id,
                image_url=entry.get('image_url')
            )
            if settings.first_only and not query.is_automated:
                break
        return results

    async def _fill_impl(self, record, source_id, global_id, cancel, settings):
        self.calls.append(('metadata', source_id))
        self.tokens.append(cancel)
        if 'metadata' in self.fail_on:
            raise RuntimeError(f"{self.name} exploded")

        entry = self._entry(source_id)
        if entry is None:
            return None

        overwrite = settings.overwrite
        record.set_field('name', entry['title'], overwrite)
        record.set_field('overview', entry.get('overview'), overwrite)
        record.add_genres(entry.get('genres', []))
        for studio in entry.get('studios', []):
            record.add_studio(studio)
        for actor in entry.get('actors', []):
            record.add_person(actor, PersonKind.ACTOR)
        return source_id

    async def _images_impl(self, source_id, kind, cancel, settings):
        self.calls.append(('images', kind))
        self.tokens.append(cancel)
        if 'images' in self.fail_on:
            raise NetworkError(f"{self.name} down", f"{self.name} down")
        urls = self.images.get((source_id, kind), [])
        return [ImageCandidate(url=url, kind=kind, source_name=self.name) for url in urls]

    def _entry(self, source_id: str) -> Optional[dict]:
        for entries in self.catalog.values():
            for entry in entries:
                if entry['source_id'] == source_id:
                    return entry
        return None


def source_config(priority: int, enabled: bool = True, image_enabled: bool = True) -> dict:
    return {'enabled': enabled, 'image_enabled': image_enabled, 'priority': priority}


def make_manager(store: ConfigStore, *sources: BaseSource) -> IvInfoManager:
    """Manager whose registry holds exactly the given source instances."""
    factories = {source.name: (lambda _store, source=source: source) for source in sources}
    return IvInfoManager(store, factories)


@pytest.fixture
def store() -> ConfigStore:
    return ConfigStore.from_dict({
        'first_only': True,
        'overwrite': False,
        'sources': {
            'alpha': source_config(1),
            'beta': source_config(2),
        },
    })


@pytest.fixture
def rebd_catalog() -> Dict[str, List[dict]]:
    return {
        'REBD-789': [{
            'source_id': 'a-789',
            'title': 'Summer Memories',
            'overview': 'beach trip',
            'genres': ['Idol', 'Swimsuit'],
            'studios': ['REbecca'],
            'actors': ['Aoi'],
            'image_url': 'https://img.example/a-789.jpg',
        }],
    }
