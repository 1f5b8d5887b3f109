import pytest

from conftest import FakeSource, make_manager
from iv_info.core.error_handler import ErrorAggregator, ErrorCategory
from iv_info.core.models import ImageItem, ImageKind


def _item(**kwargs) -> ImageItem:
    provider_ids = {'IvInfo': 'REBD-789', 'alpha': 'a-789', 'beta': 'b-789'}
    return ImageItem(provider_ids=provider_ids, **kwargs)


def _sources(store):
    alpha = FakeSource(store, 'alpha', images={
        ('a-789', ImageKind.PRIMARY): ['https://alpha/p.jpg'],
        ('a-789', ImageKind.SCREENSHOT): ['https://alpha/s1.jpg', 'https://alpha/s2.jpg'],
    })
    beta = FakeSource(store, 'beta', images={
        ('b-789', ImageKind.PRIMARY): ['https://beta/p.jpg'],
    })
    return alpha, beta


@pytest.mark.asyncio
async def test_single_primary_candidate(store) -> None:
    alpha = FakeSource(store, 'alpha', images={('a-789', ImageKind.PRIMARY): ['https://alpha/p.jpg']})
    manager = make_manager(store, alpha)

    images = await manager.images(ImageItem(provider_ids={'IvInfo': 'REBD-789', 'alpha': 'a-789'}))

    assert [(i.url, i.kind, i.source_name) for i in images] == [
        ('https://alpha/p.jpg', ImageKind.PRIMARY, 'alpha')
    ]


@pytest.mark.asyncio
async def test_existing_primary_is_never_requested(store) -> None:
    alpha, beta = _sources(store)
    manager = make_manager(store, alpha, beta)

    images = await manager.images(_item(existing_image_kinds={ImageKind.PRIMARY}))

    assert all(i.kind != ImageKind.PRIMARY for i in images)
    assert ('images', ImageKind.PRIMARY) not in alpha.calls
    assert ('images', ImageKind.PRIMARY) not in beta.calls


@pytest.mark.asyncio
async def test_results_follow_source_priority(store) -> None:
    alpha, beta = _sources(store)
    manager = make_manager(store, alpha, beta)

    images = await manager.images(_item(), requested_kinds=[ImageKind.PRIMARY])
    assert [i.url for i in images] == ['https://alpha/p.jpg', 'https://beta/p.jpg']

    store.update({'sources': {'beta': {'priority': 0}}})
    images = await manager.images(_item(), requested_kinds=[ImageKind.PRIMARY])
    assert [i.url for i in images] == ['https://beta/p.jpg', 'https://alpha/p.jpg']


@pytest.mark.asyncio
async def test_requested_kinds_limit_queries(store) -> None:
    alpha, beta = _sources(store)
    manager = make_manager(store, alpha, beta)

    images = await manager.images(_item(), requested_kinds=[ImageKind.SCREENSHOT])

    assert [i.url for i in images] == ['https://alpha/s1.jpg', 'https://alpha/s2.jpg']
    assert ('images', ImageKind.PRIMARY) not in alpha.calls


@pytest.mark.asyncio
async def test_missing_global_id_returns_nothing(store) -> None:
    alpha, beta = _sources(store)
    manager = make_manager(store, alpha, beta)

    images = await manager.images(ImageItem(provider_ids={'alpha': 'a-789'}))

    assert images == []
    assert alpha.calls == []


@pytest.mark.asyncio
async def test_source_without_its_id_contributes_nothing(store) -> None:
    alpha, beta = _sources(store)
    manager = make_manager(store, alpha, beta)

    images = await manager.images(
        ImageItem(provider_ids={'IvInfo': 'REBD-789', 'beta': 'b-789'}),
        requested_kinds=[ImageKind.PRIMARY]
    )

    assert [i.source_name for i in images] == ['beta']


@pytest.mark.asyncio
async def test_image_disabled_source_is_skipped(store) -> None:
    alpha, beta = _sources(store)
    manager = make_manager(store, alpha, beta)
    store.update({'sources': {'alpha': {'image_enabled': False}}})

    images = await manager.images(_item())

    assert [i.source_name for i in images] == ['beta']
    assert alpha.calls == []


@pytest.mark.asyncio
async def test_unhandled_kind_is_not_requested(store) -> None:
    alpha, beta = _sources(store)
    manager = make_manager(store, alpha, beta)

    images = await manager.images(_item(), requested_kinds=[ImageKind.BACKDROP])

    assert images == []
    assert alpha.calls == [] and beta.calls == []


@pytest.mark.asyncio
async def test_failing_source_is_recorded(store) -> None:
    alpha, beta = _sources(store)
    alpha.fail_on.add('images')
    manager = make_manager(store, alpha, beta)
    errors = ErrorAggregator()

    images = await manager.images(_item(), requested_kinds=[ImageKind.PRIMARY], errors=errors)

    assert [i.url for i in images] == ['https://beta/p.jpg']
    assert errors.failed_sources() == ['alpha']
    assert errors.errors[0].category == ErrorCategory.NETWORK_ERROR
    assert errors.errors[0].operation == 'images'
