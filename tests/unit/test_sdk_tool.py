import json
import sqlite3

import pytest

from bepoz_toolkit.context import ToolkitContext
from bepoz_toolkit.sdk import ToolCancelled, ToolError, ToolSession, run_tool
from bepoz_toolkit.sdk.report import Report
from bepoz_toolkit.sdk.tool import EXIT_CANCELLED, EXIT_CONFIG_ERROR, EXIT_ERROR, EXIT_OK


class TrackingConnection:
    """Envuelve una conexión sqlite3 para saber si se cerró."""

    def __init__(self):
        self.inner = sqlite3.connect(":memory:")
        self.closed = False

    def cursor(self):
        return self.inner.cursor()

    def commit(self):
        self.inner.commit()

    def rollback(self):
        self.inner.rollback()

    def close(self):
        self.closed = True
        self.inner.close()


@pytest.fixture
def session(tmp_path):
    ctx = ToolkitContext(sql_server="srv", sql_database="db")
    connection = TrackingConnection()
    connection.inner.execute("CREATE TABLE Venue (VenueID INTEGER, Name TEXT)")
    connection.inner.execute("INSERT INTO Venue VALUES (1, 'Bar Central')")
    connection.inner.commit()
    return ToolSession(ctx, tmp_path, Report("demo", "1.0.0"), args=["a"], connection=connection)


def _saved_report(tmp_path):
    return json.loads((tmp_path / "Report.json").read_text(encoding="utf-8"))


def test_successful_tool_saves_report(session, tmp_path):
    def main(s):
        for row in s.fetch_all("SELECT VenueID, Name FROM Venue"):
            s.report.add_item(**row)
        return "1 venue"

    assert run_tool(main, session=session) == EXIT_OK
    report = _saved_report(tmp_path)
    assert report["status"] == "ok"
    assert report["summary"] == "1 venue"
    assert report["items"] == [{"VenueID": 1, "Name": "Bar Central"}]
    assert report["finished_at"] is not None


def test_injected_connection_is_not_closed(session):
    connection = session.connection
    run_tool(lambda s: None, session=session)
    assert not connection.closed


def test_tool_error(session, tmp_path, capsys):
    def main(s):
        raise ToolError("No hay tills configurados")

    assert run_tool(main, session=session) == EXIT_ERROR
    assert "No hay tills configurados" in capsys.readouterr().err
    report = _saved_report(tmp_path)
    assert report["status"] == "error"
    assert report["findings"][0]["message"] == "No hay tills configurados"


def test_database_error_from_driver(session, tmp_path):
    def main(s):
        s.fetch_value("SELECT COUNT(*) FROM Missing")

    assert run_tool(main, session=session) == EXIT_ERROR
    assert _saved_report(tmp_path)["status"] == "error"


def test_unexpected_error_prints_traceback(session, tmp_path, capsys):
    def main(s):
        raise KeyError("x")

    assert run_tool(main, session=session) == EXIT_ERROR
    assert "Traceback" in capsys.readouterr().err
    assert "KeyError" in _saved_report(tmp_path)["findings"][0]["message"]


def test_cancelled(session, tmp_path):
    def main(s):
        raise ToolCancelled()

    assert run_tool(main, session=session) == EXIT_CANCELLED
    assert _saved_report(tmp_path)["status"] == "cancelled"


def test_keyboard_interrupt_is_cancel(session):
    def main(s):
        raise KeyboardInterrupt

    assert run_tool(main, session=session) == EXIT_CANCELLED


def test_missing_context_is_config_error(tmp_path):
    session = ToolSession(ToolkitContext(), tmp_path, Report("demo"))
    assert run_tool(lambda s: "no llega", session=session) == EXIT_CONFIG_ERROR
    assert _saved_report(tmp_path)["status"] == "error"


def test_tool_without_db_skips_validation(tmp_path):
    session = ToolSession(ToolkitContext(), tmp_path, Report("demo"))
    assert run_tool(lambda s: "ok", requires_db=False, session=session) == EXIT_OK


def test_error_finding_sets_exit_code(session):
    def main(s):
        s.report.error("Datos inconsistentes")

    assert run_tool(main, session=session) == EXIT_ERROR


def test_warnings_keep_exit_ok(session, tmp_path):
    def main(s):
        s.report.warn("Tabla vacía")

    assert run_tool(main, session=session) == EXIT_OK
    assert _saved_report(tmp_path)["status"] == "warning"


def test_apply_changes_records_change(session, tmp_path, monkeypatch):
    monkeypatch.setenv("BEPOZ_TOOLKIT_ASSUME_YES", "1")

    def main(s):
        rows = s.apply_changes("Renombrar venue", [("UPDATE Venue SET Name = ? WHERE VenueID = ?", ("Bar Norte", 1))])
        assert s.fetch_value("SELECT Name FROM Venue") == "Bar Norte"
        return f"{rows} fila(s)"

    assert run_tool(main, session=session) == EXIT_OK
    assert _saved_report(tmp_path)["changes"] == [{"description": "Renombrar venue", "rows": 1}]


def test_from_environment(tmp_path, monkeypatch):
    context_file = tmp_path / "ToolkitContext.json"
    context_file.write_text(json.dumps({"sql_server": "srv", "sql_database": "db"}), encoding="utf-8")
    monkeypatch.setenv("BEPOZ_TOOLKIT_CONTEXT", str(context_file))
    monkeypatch.setenv("BEPOZ_TOOLKIT_RUN_DIR", str(tmp_path))
    monkeypatch.setenv("BEPOZ_TOOLKIT_TOOL_ID", "table-audit")
    monkeypatch.setenv("BEPOZ_TOOLKIT_TOOL_VERSION", "1.0.2")

    session = ToolSession.from_environment(argv=["Venue", "Till"])

    assert session.context.sql_database == "db"
    assert session.run_dir == tmp_path
    assert session.report.tool_id == "table-audit"
    assert session.report.tool_version == "1.0.2"
    assert session.args == ["Venue", "Till"]


def test_from_environment_without_launcher(tmp_path, monkeypatch, toolkit_home):
    monkeypatch.chdir(tmp_path)
    session = ToolSession.from_environment(argv=[], script_name="/tools/table_audit.py")
    assert session.run_dir == tmp_path
    assert session.report.tool_id == "table_audit"
    assert not session.context.is_configured()
