import sys

import pytest

from bepoz_toolkit.console import ConsoleUI
from bepoz_toolkit.context import ToolkitContext, load_context, save_context
from bepoz_toolkit.installer import ToolInstaller
from bepoz_toolkit.runner import ToolRunner


def _scripted(*answers):
    remaining = list(answers)

    def input_func(prompt):
        if not remaining:
            raise EOFError
        return remaining.pop(0)
    return input_func


@pytest.fixture
def services(tmp_path, tool_source):
    installer = ToolInstaller(
        manifest_url=str(tool_source / "manifest.json"),
        tools_dir=tmp_path / "tools",
        backup_dir=tmp_path / "backup",
        manifest_cache_path=tmp_path / "cache.json",
    )
    runner = ToolRunner(runs_dir=tmp_path / "runs", python_executable=sys.executable)
    return installer, runner


def _console(services, tmp_path, *answers):
    installer, runner = services
    return ConsoleUI(installer, runner, context_path=tmp_path / "ctx.json", input_func=_scripted(*answers))


def test_menu_lists_tools(services, tmp_path, capsys):
    console = _console(services, tmp_path, "q")
    console.mainloop()

    out = capsys.readouterr().out
    assert "Bepoz Onboarding Toolkit" in out
    assert "-- Pruebas --" in out
    assert "1. Hello Tool  v1.0.0  [instalada: no instalada]" in out
    assert "Conexión: (sin configurar)" in out


def test_configure_saves_context(services, tmp_path, capsys):
    console = _console(services, tmp_path, "c", "PC\\SQLEXPRESS", "BepozData", "", "Bar Central", "q")
    console.mainloop()

    ctx = load_context(tmp_path / "ctx.json")
    assert ctx.sql_server == "PC\\SQLEXPRESS"
    assert ctx.sql_database == "BepozData"
    assert ctx.odbc_driver == "ODBC Driver 17 for SQL Server"
    assert ctx.venue_name == "Bar Central"
    assert "Conexión: PC\\SQLEXPRESS / BepozData" in capsys.readouterr().out


def test_run_installs_and_executes(services, tmp_path, capsys):
    save_context(ToolkitContext(sql_server="srv", sql_database="db"), tmp_path / "ctx.json")
    console = _console(services, tmp_path, "1", "s", "q")
    console.mainloop()

    out = capsys.readouterr().out
    assert "Instalada la versión 1.0.0." in out
    assert "hola desde hello-tool" in out
    assert "Estado: ok" in out
    installer, runner = services
    assert installer.installed_version("hello-tool") == "1.0.0"
    assert runner.list_runs()[0]["tool_id"] == "hello-tool"


def test_run_declined(services, tmp_path):
    console = _console(services, tmp_path)
    console.refresh_manifest()
    console.input = _scripted("n")

    assert console.run_tool(console.manifest.get("hello-tool")) is None
    assert services[0].installed_version("hello-tool") is None


def test_tool_requiring_db_asks_for_connection(services, tmp_path, tool_factory, manifest_writer, tool_source):
    manifest_writer(tool_source, [tool_factory(tool_source, "hello-tool", "1.0.0", requires_db=True)])
    console = _console(services, tmp_path)
    console.refresh_manifest()
    console.input = _scripted("", "", "", "")

    assert console.run_tool(console.manifest.get("hello-tool")) is None


def test_invalid_option_and_history(services, tmp_path, capsys):
    console = _console(services, tmp_path)
    console.refresh_manifest()

    assert console.handle_choice("99")
    assert console.handle_choice("h")
    assert not console.handle_choice("salir")

    out = capsys.readouterr().out
    assert "Opción inválida: 99" in out
    assert "No hay ejecuciones registradas." in out


def test_install_errors_are_reported(services, tmp_path, tool_source, capsys):
    save_context(ToolkitContext(sql_server="srv", sql_database="db"), tmp_path / "ctx.json")
    console = _console(services, tmp_path)
    console.refresh_manifest()
    (tool_source / "hello_tool" / "hello_tool.py").unlink()
    services[0].retry_delay = 0
    console.input = _scripted("s")

    assert console.handle_choice("1")
    assert "ERROR:" in capsys.readouterr().out


def test_closed_input_at_confirmation_returns_to_menu(services, tmp_path):
    save_context(ToolkitContext(sql_server="srv", sql_database="db"), tmp_path / "ctx.json")
    console = _console(services, tmp_path, "1")
    console.mainloop()

    assert services[0].installed_version("hello-tool") is None
    assert services[1].list_runs() == []


def test_closed_input_while_configuring_keeps_defaults(services, tmp_path):
    save_context(ToolkitContext(sql_server="srv", sql_database="db"), tmp_path / "ctx.json")
    console = _console(services, tmp_path, "c", "otro-srv")
    console.mainloop()

    ctx = load_context(tmp_path / "ctx.json")
    assert ctx.sql_server == "otro-srv"
    assert ctx.sql_database == "db"


def test_menu_groups_tools_by_category(services, tmp_path, tool_factory, manifest_writer, tool_source, capsys):
    audit = dict(tool_factory(tool_source, "audit-a", "1.0.0"), category="Auditoría")
    check = tool_factory(tool_source, "check-b", "1.0.0")
    later = dict(tool_factory(tool_source, "audit-c", "1.0.0"), category="Auditoría")
    manifest_writer(tool_source, [audit, check, later])

    _console(services, tmp_path, "q").mainloop()

    out = capsys.readouterr().out
    assert out.count("-- Auditoría --") == 1
    assert out.index("3. Audit C") < out.index("-- Pruebas --") < out.index("2. Check B")
