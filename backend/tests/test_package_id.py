import pytest

from dccon.utils.package_id import extract_package_id


def test_package_id_from_fragment():
    assert extract_package_id("https://dccon.dcinside.com/#123456") == "123456"


def test_package_id_from_query_key():
    assert extract_package_id("https://dccon.dcinside.com/index/package_detail?package_idx=98765") == "98765"


def test_package_id_query_key_anywhere_in_text():
    assert extract_package_id("see IDX=4321 for details") == "4321"


def test_package_id_from_path_segment_without_scheme():
    assert extract_package_id("dccon.dcinside.com/packages/55555/view") == "55555"


def test_package_id_prefers_last_path_segment():
    assert extract_package_id("https://example.com/111/222") == "222"


def test_package_id_short_fragment_is_ignored():
    assert extract_package_id("https://example.com/777#12") == "777"


@pytest.mark.parametrize("raw", ["no digits here", "", "   ", None, "id 12"])
def test_package_id_missing(raw):
    assert extract_package_id(raw) is None


def test_package_id_fallback_takes_last_bare_run():
    assert extract_package_id("packs 1234 and 5678 please") == "5678"


def test_package_id_fallback_skips_digits_glued_to_letters():
    assert extract_package_id("code 999x") is None
    assert extract_package_id("code 12345x") == "1234"
