from conftest import FakeSource, source_config
from iv_info.core.config_loader import ConfigStore
from iv_info.core.models import ImageKind
from iv_info.managers.source_registry import SourceRegistry


def _store(**priorities) -> ConfigStore:
    return ConfigStore.from_dict({
        'sources': {name: source_config(priority) for name, priority in priorities.items()}
    })


def _factories(*names):
    return {name: (lambda store, name=name: FakeSource(store, name)) for name in names}


def test_sources_are_ordered_by_ascending_priority() -> None:
    registry = SourceRegistry(_store(alpha=3, beta=1, gamma=2), _factories('alpha', 'beta', 'gamma'))

    assert [s.name for s in registry.all_sources()] == ['beta', 'gamma', 'alpha']


def test_equal_priorities_keep_registration_order() -> None:
    registry = SourceRegistry(_store(alpha=1, beta=1, gamma=1), _factories('gamma', 'alpha', 'beta'))

    assert [s.name for s in registry.all_sources()] == ['gamma', 'alpha', 'beta']


def test_instances_are_reused() -> None:
    registry = SourceRegistry(_store(alpha=1), _factories('alpha'))

    assert registry.all_sources()[0] is registry.all_sources()[0]


def test_toggles_are_read_on_every_call() -> None:
    store = _store(alpha=1, beta=2)
    registry = SourceRegistry(store, _factories('alpha', 'beta'))
    assert [s.name for s in registry.enabled_sources()] == ['alpha', 'beta']

    store.update({'sources': {'alpha': {'enabled': False}, 'beta': {'priority': 0}}})

    assert [s.name for s in registry.enabled_sources()] == ['beta']
    assert [s.name for s in registry.all_sources()] == ['beta', 'alpha']


def test_image_sources_require_both_flags() -> None:
    store = ConfigStore.from_dict({'sources': {
        'alpha': source_config(1, image_enabled=False),
        'beta': source_config(2),
        'gamma': source_config(3, enabled=False),
    }})
    registry = SourceRegistry(store, _factories('alpha', 'beta', 'gamma'))

    assert [s.name for s in registry.image_sources()] == ['beta']


def test_unconfigured_source_is_disabled() -> None:
    registry = SourceRegistry(_store(alpha=1), _factories('alpha', 'beta'))

    assert [s.name for s in registry.enabled_sources()] == ['alpha']


def test_failing_factory_is_skipped() -> None:
    def broken(store):
        raise RuntimeError("cannot build")

    factories = _factories('alpha')
    factories['broken'] = broken
    registry = SourceRegistry(_store(alpha=1, broken=0), factories)

    assert [s.name for s in registry.all_sources()] == ['alpha']


def test_register_replaces_cached_instance() -> None:
    store = _store(alpha=1)
    registry = SourceRegistry(store, _factories('alpha'))
    first = registry.all_sources()[0]

    registry.register('alpha', lambda s: FakeSource(s, 'alpha'))

    assert registry.all_sources()[0] is not first


def test_descriptors_reflect_current_config() -> None:
    store = _store(alpha=2)
    registry = SourceRegistry(store, _factories('alpha'))
    store.update({'sources': {'alpha': {'image_enabled': False}}})

    descriptor = registry.descriptors()[0]

    assert descriptor.name == 'alpha'
    assert descriptor.priority == 2
    assert descriptor.enabled is True
    assert descriptor.image_enabled is False
    assert descriptor.to_dict()['handled_image_kinds'] == ['Primary', 'Screenshot']


def test_default_registry() -> None:
    registry = SourceRegistry(ConfigStore.from_dict({}))

    descriptors = registry.descriptors()

    assert [(d.name, d.priority) for d in descriptors] == [('r18dev', 1), ('javlibrary', 3), ('dmm', 4)]
    assert all(d.enabled and d.image_enabled for d in descriptors)
    assert descriptors[1].handled_image_kinds == (ImageKind.PRIMARY, ImageKind.BOX)


def test_invalid_priority_falls_back_to_default() -> None:
    store = _store(alpha=150, beta=2)
    store.update({'sources': {'beta': {'priority': 'high'}}})
    registry = SourceRegistry(store, _factories('alpha', 'beta'))

    assert [(d.name, d.priority) for d in registry.descriptors()] == [('beta', 100), ('alpha', 150)]
    assert [s.name for s in registry.enabled_sources()] == ['beta', 'alpha']


def test_unreadable_source_section_is_skipped() -> None:
    store = _store(alpha=1)
    store.update({'sources': {'beta': 'enabled'}})
    registry = SourceRegistry(store, _factories('alpha', 'beta'))

    assert [s.name for s in registry.all_sources()] == ['alpha']


def test_one_snapshot_per_call() -> None:
    store = _store(alpha=1, beta=2)
    registry = SourceRegistry(store, _factories('alpha', 'beta'))
    snapshot = store.current()

    store.update({'sources': {'alpha': {'enabled': False}}})

    assert [s.name for s in registry.enabled_sources(snapshot)] == ['alpha', 'beta']
    assert [s.name for s in registry.enabled_sources()] == ['beta']
