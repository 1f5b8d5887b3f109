import logging

import pytest

from iv_info.core.error_handler import ErrorAggregator, ErrorCategory, ErrorHandler
from iv_info.web.exceptions import (
    MovieDuplicateError, MovieNotFoundError, NetworkError, SiteBlocked, WebsiteError
)


@pytest.mark.parametrize("exception,category", [
    (NetworkError("连接超时", "Connection timeout"), ErrorCategory.NETWORK_ERROR),
    (SiteBlocked(source='javlibrary'), ErrorCategory.PROXY_REQUIRED),
    (MovieNotFoundError('dmm', 'REBD-789'), ErrorCategory.NOT_FOUND),
    (MovieDuplicateError('javlibrary', 'REBD-789', 2), ErrorCategory.DUPLICATE_ERROR),
    (WebsiteError(), ErrorCategory.SITE_ERROR),
    (RuntimeError("boom"), ErrorCategory.UNKNOWN),
])
def test_categories(exception, category) -> None:
    error = ErrorHandler().handle_exception(exception, 'dmm', 'REBD-789', 'metadata')

    assert error.category == category


@pytest.mark.parametrize("status,category", [
    (403, ErrorCategory.PROXY_REQUIRED),
    (404, ErrorCategory.NOT_FOUND),
    (503, ErrorCategory.SITE_ERROR),
    (418, ErrorCategory.UNKNOWN),
])
def test_http_status_fallback(status, category) -> None:
    error = ErrorHandler().handle_exception(RuntimeError("x"), 'dmm', 'REBD-789', http_status=status)

    assert error.category == category
    assert error.http_status == status


def test_bilingual_messages() -> None:
    error = ErrorHandler().handle_exception(MovieNotFoundError('dmm', 'REBD-789'), 'dmm', 'REBD-789', 'search')

    assert error.message_zh == "dmm: 未找到影片: 'REBD-789'"
    assert error.message_en == "dmm: Movie not found: 'REBD-789'"
    data = error.to_dict()
    assert data['category'] == 'not_found'
    assert data['operation'] == 'search'
    assert data['message'] == {'zh': error.message_zh, 'en': error.message_en}


def test_proxy_suggestion_mentions_config_key() -> None:
    error = ErrorHandler().handle_exception(SiteBlocked(source='javlibrary'), 'javlibrary', 'REBD-789')

    assert any('network.proxy_server' in s for s in error.suggestions_en)


def test_proxy_suggestion_shows_configured_proxy() -> None:
    handler = ErrorHandler({'network': {'proxy_server': 'http://127.0.0.1:7890'}})

    error = handler.handle_exception(SiteBlocked(), 'javlibrary', 'REBD-789')

    assert any('http://127.0.0.1:7890' in s for s in error.suggestions_zh)


def test_aggregator_summary() -> None:
    handler = ErrorHandler()
    errors = ErrorAggregator()
    assert errors.get_summary() == {}

    errors.add_error(handler.handle_exception(NetworkError("超时"), 'dmm', 'REBD-789', 'search'))
    errors.add_error(handler.handle_exception(SiteBlocked(), 'javlibrary', 'REBD-789', 'search'))
    errors.add_error(handler.handle_exception(NetworkError("超时"), 'dmm', 'REBD-789', 'images'))

    summary = errors.get_summary()

    assert errors.has_errors()
    assert summary['total_errors'] == 3
    assert summary['failed_sources'] == ['dmm', 'javlibrary']
    assert summary['by_category'] == {'network_error': ['dmm', 'dmm'], 'proxy_required': ['javlibrary']}
    assert summary['summary']['en'] == "2 data source(s) failed: dmm, javlibrary"
    assert len(summary['errors']) == 3


def test_not_found_is_logged_as_info(caplog) -> None:
    handler = ErrorHandler()
    caplog.set_level(logging.INFO, logger=handler.logger.name)

    handler.handle_exception(MovieNotFoundError('dmm', 'ASDF-000'), 'dmm', 'ASDF-000', 'metadata')
    handler.handle_exception(NetworkError("超时"), 'dmm', 'REBD-789', 'search')

    levels = [(r.levelno, r.getMessage().split(']')[0]) for r in caplog.records]
    assert levels == [(logging.INFO, '[not_found'), (logging.ERROR, '[network_error')]
