import pytest

from iv_info.core.id_resolver import (
    IdentifierResolver, strip_disambiguator, same_release, pad_number, compact_id
)


def test_resolve_from_path() -> None:
    assert IdentifierResolver.resolve(path="/media/[REBD-789].mkv") == "REBD-789"


def test_resolve_from_name() -> None:
    assert IdentifierResolver.resolve(name="REBD-789 some title") == "REBD-789"


def test_attached_global_id_is_returned_unchanged() -> None:
    resolved = IdentifierResolver.resolve(
        path="/media/[ABCD-123].mkv",
        provider_ids={'IvInfo': 'rebd-789|javli7abc'}
    )
    assert resolved == 'rebd-789|javli7abc'


def test_path_wins_over_name() -> None:
    resolved = IdentifierResolver.resolve(path="/media/iv/[REBD-789].mkv", name="ABCD-123 other")
    assert resolved == "REBD-789"


def test_file_name_wins_over_directory() -> None:
    resolved = IdentifierResolver.resolve(path="/media/ABCD-123 collection/REBD-789.mp4")
    assert resolved == "REBD-789"


def test_directory_is_used_when_file_name_has_no_id() -> None:
    resolved = IdentifierResolver.resolve(path="/media/REBD-789/video.mp4")
    assert resolved == "REBD-789"


def test_windows_path() -> None:
    resolved = IdentifierResolver.resolve(path="D:\\media\\iv\\REBD-789.mkv")
    assert resolved == "REBD-789"


def test_trailing_modifiers_are_dropped() -> None:
    resolved = IdentifierResolver.resolve(path="/media/REBD-789 (remaster) 1080p.mkv")
    assert resolved == "REBD-789"


def test_derived_id_is_upper_cased() -> None:
    assert IdentifierResolver.resolve(path="/media/rebd-789.mkv") == "REBD-789"


@pytest.mark.parametrize("path,name", [
    ("/media/holiday.mkv", None),
    (None, "just a title"),
    (None, None),
    ("", ""),
])
def test_unresolvable_input_returns_empty(path, name) -> None:
    assert IdentifierResolver.resolve(path=path, name=name) == ""


def test_short_number_is_not_an_id() -> None:
    assert IdentifierResolver.resolve(name="AB-12 title") == ""


def test_strip_disambiguator() -> None:
    assert strip_disambiguator("REBD-789|javli7abc") == "REBD-789"
    assert strip_disambiguator("REBD-789") == "REBD-789"
    assert strip_disambiguator(None) == ""


def test_same_release_is_case_insensitive_on_prefix() -> None:
    assert same_release("REBD-789|a", "rebd-789|b")
    assert same_release("REBD-789", "REBD-789|x")
    assert not same_release("REBD-789", "REBD-790")


def test_pad_number() -> None:
    assert pad_number("REBD-789") == "REBD-00789"
    assert pad_number("REBD-123456") == "REBD-123456"
    assert pad_number("ABC-X123") == "ABC-X123"


def test_compact_id() -> None:
    assert compact_id("REBD-789") == "rebd00789"
