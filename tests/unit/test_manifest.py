import json

import pytest

from bepoz_toolkit.manifest import ManifestError, load_manifest_file, parse_manifest


def _tool(**overrides):
    data = {"id": "table-audit", "version": "1.0.2", "entry": "table_audit/table_audit.py"}
    data.update(overrides)
    return data


def test_parse_manifest_defaults():
    manifest = parse_manifest({"toolkit_version": "1.4.0", "tools": [_tool()]}, source="x")
    tool = manifest.get("table-audit")

    assert manifest.toolkit_version == "1.4.0"
    assert manifest.source == "x"
    assert tool.display_name == "table-audit"
    assert tool.requires_db is True
    assert tool.files == []
    assert tool.entry_name == "table_audit.py"


def test_all_files_lists_entry_first_without_duplicates():
    tool = parse_manifest({"tools": [_tool(files=["table_audit/defaults.json", "table_audit/table_audit.py"])]}).tools[0]
    assert tool.all_files == ["table_audit/table_audit.py", "table_audit/defaults.json"]


def test_requires_db_accepts_text_flags():
    manifest = parse_manifest({"tools": [
        _tool(requires_db="false"),
        _tool(id="b", entry="b.py", requires_db="0"),
        _tool(id="c", entry="c.py", requires_db="true"),
        _tool(id="d", entry="d.py", requires_db=False),
    ]})
    assert [tool.requires_db for tool in manifest.tools] == [False, False, True, False]


def test_backslashes_are_normalized():
    tool = parse_manifest({"tools": [_tool(entry="table_audit\\table_audit.py")]}).tools[0]
    assert tool.entry == "table_audit/table_audit.py"


def test_find_by_id_or_menu_number():
    manifest = parse_manifest({"tools": [_tool(), _tool(id="connection-check", entry="c.py")]})
    assert manifest.find("connection-check").id == "connection-check"
    assert manifest.find("1").id == "table-audit"
    assert manifest.find("2").id == "connection-check"
    assert manifest.find("3") is None
    assert manifest.find("nope") is None


def test_categories_keep_order_and_default():
    manifest = parse_manifest({"tools": [
        _tool(category="Auditoría"),
        _tool(id="b", entry="b.py"),
        _tool(id="c", entry="c.py", category="Auditoría"),
    ]})
    assert manifest.categories() == ["Auditoría", "General"]


@pytest.mark.parametrize("data, message", [
    ([], "objeto"),
    ({"tools": {}}, "lista"),
    ({"tools": ["x"]}, "no es un objeto"),
    ({"tools": [_tool(id="")]}, "id"),
    ({"tools": [_tool(id="../evil")]}, "inválido"),
    ({"tools": [_tool(version="")]}, "version"),
    ({"tools": [_tool(version="uno")]}, "inválido"),
    ({"tools": [_tool(entry="/etc/passwd")]}, "no permitida"),
    ({"tools": [_tool(entry="../outside.py")]}, "no permitida"),
    ({"tools": [_tool(entry="C:/tools/x.py")]}, "no permitida"),
    ({"tools": [_tool(entry=".")]}, "no permitida"),
    ({"tools": [_tool(entry="./")]}, "no permitida"),
    ({"tools": [_tool(files=["."])]}, "no permitida"),
    ({"tools": [_tool(requires_db="quizás")]}, "requires_db"),
    ({"tools": [_tool(files="a.json")]}, "lista"),
    ({"tools": [_tool(args="--all")]}, "lista"),
    ({"tools": [_tool(), _tool()]}, "duplicado"),
])
def test_parse_manifest_rejects_invalid(data, message):
    with pytest.raises(ManifestError) as excinfo:
        parse_manifest(data)
    assert message in str(excinfo.value)


def test_load_manifest_file(tmp_path):
    path = tmp_path / "manifest.json"
    assert load_manifest_file(path) is None

    path.write_text("{no es json", encoding="utf-8")
    assert load_manifest_file(path) is None

    path.write_text(json.dumps({"tools": [_tool()]}), encoding="utf-8")
    assert load_manifest_file(path).get("table-audit").version == "1.0.2"

    path.write_text(json.dumps({"tools": "x"}), encoding="utf-8")
    with pytest.raises(ManifestError):
        load_manifest_file(path)


def test_to_dict_round_trips_through_parser():
    manifest = parse_manifest({"tools": [_tool(args=["--all"], sha256="sha256:abc")]})
    again = parse_manifest(manifest.to_dict())
    assert again.tools == manifest.tools
