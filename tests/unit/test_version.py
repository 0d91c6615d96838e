import pytest

from bepoz_toolkit.resources.version import (
    compare_versions,
    get_app_info,
    get_version,
    is_newer_version,
    parse_version,
)


def test_parse_version_pads_and_strips_prefix():
    assert parse_version("1.2.3") == (1, 2, 3)
    assert parse_version("v2.1") == (2, 1, 0)
    assert parse_version("3") == (3, 0, 0)


@pytest.mark.parametrize("value", ["", "v", "1.2.3.4", "1.x.0", None])
def test_parse_version_rejects_invalid(value):
    with pytest.raises(ValueError):
        parse_version(value)


def test_compare_versions():
    assert compare_versions("1.0.0", "1.1.0") == -1
    assert compare_versions("v2.0", "1.9.9") == 1
    assert compare_versions("1.0", "1.0.0") == 0


def test_is_newer_version():
    assert is_newer_version("1.0.1", "1.0.0") is True
    assert is_newer_version("1.0.0", "1.0.0") is False
    assert is_newer_version("0.9.0", "1.0.0") is False
    # sin versión instalada cualquier versión es más nueva
    assert is_newer_version("0.1.0", None) is True
    assert is_newer_version("basura", "1.0.0") is False


def test_app_info_uses_package_version():
    info = get_app_info()
    assert info["version"] == get_version()
    assert info["copyright"].startswith("Copyright ")
