import json
import os
import sys
from pathlib import Path

import pytest


ROOT = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def pytest_configure():
    # Permite importar bepoz_toolkit sin instalar el paquete
    if ROOT not in sys.path:
        sys.path.insert(0, ROOT)


TOOLKIT_ENV_VARS = (
    "BEPOZ_TOOLKIT_HOME",
    "BEPOZ_TOOLKIT_MANIFEST_URL",
    "BEPOZ_TOOLKIT_PYTHON",
    "BEPOZ_TOOLKIT_TRACE",
    "BEPOZ_TOOLKIT_CONTEXT",
    "BEPOZ_TOOLKIT_RUN_DIR",
    "BEPOZ_TOOLKIT_TOOL_ID",
    "BEPOZ_TOOLKIT_TOOL_VERSION",
    "BEPOZ_TOOLKIT_ASSUME_YES",
    "BEPOZ_TOOLKIT_INTERACTIVE",
    "BEPOZ_SQL_SERVER",
    "BEPOZ_SQL_DATABASE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in TOOLKIT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def toolkit_home(tmp_path, monkeypatch) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("BEPOZ_TOOLKIT_HOME", str(home))
    return home


REPORTING_SCRIPT = """\
import sys
from bepoz_toolkit.sdk import main_entry


def main(session):
    print("hola desde", session.report.tool_id, " ".join(session.args))
    session.report.add_item(server=session.context.sql_server)
    session.report.set_metric("args", len(session.args))
    return "listo"


if __name__ == "__main__":
    main_entry(main, requires_db=False)
"""


def write_tool(source_dir: Path, tool_id: str, version: str, script: str = REPORTING_SCRIPT,
               requires_db: bool = False, extra_files=None) -> dict:
    """Escribe el script de una herramienta y retorna su entrada de manifiesto."""
    folder = tool_id.replace("-", "_")
    entry = f"{folder}/{folder}.py"
    (source_dir / folder).mkdir(parents=True, exist_ok=True)
    (source_dir / entry).write_text(script, encoding="utf-8")

    files = []
    for name, content in (extra_files or {}).items():
        relative = f"{folder}/{name}"
        (source_dir / relative).write_text(content, encoding="utf-8")
        files.append(relative)

    return {
        "id": tool_id,
        "name": tool_id.replace("-", " ").title(),
        "version": version,
        "entry": entry,
        "files": files,
        "category": "Pruebas",
        "requires_db": requires_db,
    }


def write_manifest(source_dir: Path, tools: list) -> Path:
    path = source_dir / "manifest.json"
    path.write_text(json.dumps({"toolkit_version": "1.4.0", "tools": tools}), encoding="utf-8")
    return path


@pytest.fixture
def tool_source(tmp_path) -> Path:
    """Carpeta local que hace de origen publicado de herramientas."""
    source = tmp_path / "published"
    source.mkdir()
    tools = [write_tool(source, "hello-tool", "1.0.0")]
    write_manifest(source, tools)
    return source


@pytest.fixture
def tool_factory():
    return write_tool


@pytest.fixture
def manifest_writer():
    return write_manifest
