import os

import pytest

from iv_info.core.config_loader import ConfigStore, load_config


def test_missing_file_returns_defaults(tmp_path) -> None:
    config = load_config(str(tmp_path / "missing.yml"))

    assert config['first_only'] is True
    assert config['overwrite'] is False
    assert config['sources']['r18dev']['priority'] == 1
    assert config['network']['proxy_server'] is None


def test_file_values_are_merged_over_defaults(tmp_path) -> None:
    path = tmp_path / "config.yml"
    path.write_text(
        "overwrite: true\n"
        "sources:\n"
        "  dmm:\n"
        "    get_trailers: true\n"
        "network:\n"
        "  proxy_server: http://127.0.0.1:7890\n",
        encoding='utf-8'
    )

    config = load_config(str(path))

    assert config['overwrite'] is True
    assert config['sources']['dmm']['get_trailers'] is True
    assert config['sources']['dmm']['priority'] == 4
    assert config['sources']['javlibrary']['enabled'] is True
    assert config['network']['proxy_server'] == 'http://127.0.0.1:7890'
    assert config['network']['timeout'] == 30


def test_empty_file_returns_defaults(tmp_path) -> None:
    path = tmp_path / "config.yml"
    path.write_text("", encoding='utf-8')

    assert load_config(str(path))['first_only'] is True


@pytest.mark.parametrize("content", ["sources: [unclosed\n", "- just\n- a list\n"])
def test_invalid_file_raises(tmp_path, content) -> None:
    path = tmp_path / "config.yml"
    path.write_text(content, encoding='utf-8')

    with pytest.raises(RuntimeError):
        load_config(str(path))


def test_store_reloads_after_file_change(tmp_path) -> None:
    path = tmp_path / "config.yml"
    path.write_text("overwrite: false\n", encoding='utf-8')
    os.utime(path, (1_000_000, 1_000_000))
    store = ConfigStore(str(path))
    assert store.current()['overwrite'] is False

    path.write_text("overwrite: true\n", encoding='utf-8')
    os.utime(path, (2_000_000, 2_000_000))

    assert store.current()['overwrite'] is True


def test_updates_survive_reload(tmp_path) -> None:
    path = tmp_path / "config.yml"
    path.write_text("overwrite: false\n", encoding='utf-8')
    os.utime(path, (1_000_000, 1_000_000))
    store = ConfigStore(str(path))
    store.update({'sources': {'dmm': {'enabled': False}}})

    path.write_text("overwrite: true\n", encoding='utf-8')
    os.utime(path, (2_000_000, 2_000_000))
    config = store.current()

    assert config['overwrite'] is True
    assert config['sources']['dmm']['enabled'] is False


def test_snapshots_are_independent() -> None:
    store = ConfigStore.from_dict({'first_only': False})

    snapshot = store.current()
    snapshot['sources']['r18dev']['enabled'] = False
    snapshot['first_only'] = True

    assert store.current()['sources']['r18dev']['enabled'] is True
    assert store.current()['first_only'] is False


def test_source_config() -> None:
    store = ConfigStore.from_dict({'sources': {'javlibrary': {'use_solverr': True}}})

    options = store.source_config('javlibrary')

    assert options['use_solverr'] is True
    assert options['solverr_url'] == 'http://localhost:8191'
    assert store.source_config('unknown') == {}
