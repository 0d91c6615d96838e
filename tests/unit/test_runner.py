import json
import sys

import pytest

from bepoz_toolkit.context import ToolkitContext
from bepoz_toolkit.manifest import ToolInfo
from bepoz_toolkit.runner import RunError, ToolRunner


@pytest.fixture
def runner(tmp_path):
    return ToolRunner(runs_dir=tmp_path / "runs", python_executable=sys.executable)


@pytest.fixture
def context():
    return ToolkitContext(sql_server="srv", sql_database="db", operator="tester")


def _script(tmp_path, name, body):
    path = tmp_path / "scripts" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body, encoding="utf-8")
    return path


def _tool(tool_id="hello-tool", version="1.0.0", args=None):
    return ToolInfo(id=tool_id, version=version, entry=f"{tool_id}.py", requires_db=False, args=args or [])


def test_run_collects_output_and_report(tmp_path, runner, context, tool_source):
    entry = tool_source / "hello_tool" / "hello_tool.py"
    chunks = []

    result = runner.run(_tool(args=["--fijo"]), entry, context, args=["extra"], on_output=chunks.append)

    assert result.exit_code == 0
    assert result.succeeded
    assert result.status == "ok"
    assert result.report["summary"] == "listo"
    assert result.report["items"] == [{"server": "srv"}]
    assert result.report["metrics"] == {"args": 2}

    output = "".join(chunks)
    assert "hola desde hello-tool --fijo extra" in output
    assert result.log_path.read_text(encoding="utf-8") == output

    assert result.run_dir.parent == tmp_path / "runs"
    assert result.run_dir.name.endswith("_hello-tool")
    assert json.loads((result.run_dir / "ToolkitContext.json").read_text(encoding="utf-8"))["sql_server"] == "srv"
    run_info = json.loads((result.run_dir / "run.json").read_text(encoding="utf-8"))
    assert run_info["exit_code"] == 0
    assert run_info["status"] == "ok"


def test_child_environment_flags(tmp_path, runner, context):
    entry = _script(tmp_path, "env.py", (
        "import os\n"
        "for name in ('BEPOZ_TOOLKIT_ASSUME_YES', 'BEPOZ_TOOLKIT_INTERACTIVE', 'BEPOZ_TOOLKIT_TOOL_ID',\n"
        "             'BEPOZ_TOOLKIT_TOOL_VERSION', 'BEPOZ_SQL_SERVER'):\n"
        "    print(name + '=' + os.environ.get(name, ''))\n"
        "print('cwd=' + os.getcwd())\n"
    ))
    chunks = []

    result = runner.run(_tool(version="2.0.1"), entry, context, on_output=chunks.append,
                        assume_yes=True, interactive=False)

    output = "".join(chunks)
    assert "BEPOZ_TOOLKIT_ASSUME_YES=1" in output
    assert "BEPOZ_TOOLKIT_INTERACTIVE=0" in output
    assert "BEPOZ_TOOLKIT_TOOL_ID=hello-tool" in output
    assert "BEPOZ_TOOLKIT_TOOL_VERSION=2.0.1" in output
    assert "BEPOZ_SQL_SERVER=srv" in output
    assert f"cwd={result.run_dir}" in output
    assert result.report is None
    assert "no generó Report.json" in result.summary()


def test_non_zero_exit_code(tmp_path, runner, context):
    entry = _script(tmp_path, "fail.py", "import sys\nprint('fallo')\nsys.exit(3)\n")
    result = runner.run(_tool(), entry, context, on_output=lambda text: None)

    assert result.exit_code == 3
    assert not result.succeeded
    assert result.status == "error"


def test_utf8_output_is_decoded(tmp_path, runner, context):
    entry = _script(tmp_path, "utf8.py", "print('Añadido: café ✓')\n")
    chunks = []
    runner.run(_tool(), entry, context, on_output=chunks.append)
    assert "Añadido: café ✓" in "".join(chunks)


def test_timeout_kills_process(tmp_path, runner, context):
    entry = _script(tmp_path, "slow.py", "import time\nprint('empieza', flush=True)\ntime.sleep(30)\n")
    chunks = []

    result = runner.run(_tool(), entry, context, on_output=chunks.append, timeout=1)

    assert result.timed_out
    assert result.status == "timeout"
    assert not result.succeeded
    assert result.duration < 25
    assert "Tiempo máximo" in "".join(chunks)


def test_missing_entry_raises(tmp_path, runner, context):
    with pytest.raises(RunError):
        runner.run(_tool(), tmp_path / "missing.py", context)


def test_history_is_pruned_and_listed(tmp_path, context):
    runner = ToolRunner(runs_dir=tmp_path / "runs", python_executable=sys.executable, max_history=2)
    entry = _script(tmp_path, "ok.py", "print('ok')\n")

    for tool_id in ("uno", "dos", "tres"):
        runner.run(_tool(tool_id=tool_id), entry, context, on_output=lambda text: None)

    runs = runner.list_runs()
    assert [run["tool_id"] for run in runs] == ["tres", "dos"]
    assert len(list((tmp_path / "runs").iterdir())) == 2
    assert [run["tool_id"] for run in runner.list_runs(tool_id="dos")] == ["dos"]
    assert len(runner.list_runs(limit=1)) == 1


def test_list_runs_without_history(tmp_path):
    assert ToolRunner(runs_dir=tmp_path / "nothing", python_executable=sys.executable).list_runs() == []


def test_frozen_launcher_runs_tools_through_itself(tmp_path, monkeypatch):
    from bepoz_toolkit.resources import utils

    monkeypatch.setattr(utils, "is_frozen", lambda: True)
    monkeypatch.setattr(sys, "executable", str(tmp_path / "BepozToolkit.exe"))
    frozen = ToolRunner(runs_dir=tmp_path / "runs")
    entry = _script(tmp_path, "audit.py", "print('ok')\n")

    command = frozen.build_command(_tool(args=["--fijo"]), entry, ["Venue"])

    assert frozen.python_executable is None
    assert command == [str(tmp_path / "BepozToolkit.exe"), "--run-tool", str(entry.resolve()), "--fijo", "Venue"]


def test_source_checkout_runs_tools_with_interpreter(tmp_path, runner):
    entry = _script(tmp_path, "audit.py", "print('ok')\n")
    assert runner.build_command(_tool(), entry, ["a"]) == [sys.executable, str(entry.resolve()), "a"]
