import importlib.util
from pathlib import Path

import pytest

from bepoz_toolkit.resources.version import __version__


BUILD_SCRIPT = Path(__file__).resolve().parents[2] / "build" / "build_toolkit.py"


@pytest.fixture(scope="module")
def build():
    spec = importlib.util.spec_from_file_location("build_toolkit", BUILD_SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_reads_version_file(build):
    info = build.read_version_info()
    assert info["version"] == __version__
    assert info["app_name"] == "BepozToolkit"
    assert isinstance(info["copyright_year_start"], int)


def test_version_file_without_version(build, tmp_path):
    path = tmp_path / "version.py"
    path.write_text('APP_NAME = "X"\n', encoding="utf-8")
    with pytest.raises(RuntimeError):
        build.read_version_info(path)


def test_copyright_text(build):
    info = {"copyright_year_start": 2026, "app_author": ""}
    assert build.copyright_text(info, year=2026) == "Copyright 2026"
    info["app_author"] = "Onboarding"
    assert build.copyright_text(info, year=2027) == "Copyright 2026-2027 Onboarding"


def test_windows_command(build):
    cmd = build.build_nuitka_command(build.read_version_info(), platform="win32", python_executable="python")

    assert cmd[:3] == ["python", "-m", "nuitka"]
    assert "--include-package=bepoz_toolkit" in cmd
    assert "--include-module=pyodbc" in cmd
    assert "--include-module=csv" in cmd
    assert f"--file-version={__version__}" in cmd
    assert "--windows-console-mode=force" in cmd
    assert "--output-filename=BepozToolkit.exe" in cmd
    assert cmd[-1].endswith("main.py")


def test_linux_command_has_no_windows_metadata(build):
    cmd = build.build_nuitka_command(build.read_version_info(), platform="linux", python_executable="python3")

    assert "--output-filename=BepozToolkit" in cmd
    assert not any(arg.startswith("--windows-") for arg in cmd)
    assert not any(arg.startswith("--file-version") for arg in cmd)
