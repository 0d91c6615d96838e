import pytest

from bepoz_toolkit.sdk.report import Report, load_report


def test_status_precedence():
    report = Report("demo")
    assert report.status == "ok"

    report.info("Inicio")
    assert report.status == "ok"

    report.warn("Tabla vacía")
    assert report.status == "warning"

    report.mark_cancelled("Cancelado")
    assert report.status == "cancelled"

    report.error("Fallo")
    assert report.status == "error"


def test_invalid_level():
    with pytest.raises(ValueError):
        Report("demo").add_finding("fatal", "x")


def test_save_and_load(tmp_path):
    report = Report("table-audit", "1.0.2")
    report.summary = "2 tablas"
    report.add_item(table="Venue", rows=3)
    report.warn("La tabla Till está vacía", table="Till")
    report.set_metric("tables", 2)
    report.add_change("Activar tills", 4)

    path = report.save(tmp_path)
    data = load_report(path)

    assert path.name == "Report.json"
    assert data["tool_id"] == "table-audit"
    assert data["status"] == "warning"
    assert data["items"] == [{"table": "Venue", "rows": 3}]
    assert data["findings"] == [{"level": "warning", "message": "La tabla Till está vacía", "details": {"table": "Till"}}]
    assert data["metrics"] == {"tables": 2}
    assert data["changes"] == [{"description": "Activar tills", "rows": 4}]
    assert data["finished_at"] is not None


def test_load_report_missing_or_invalid(tmp_path):
    assert load_report(tmp_path / "Report.json") is None
    (tmp_path / "Report.json").write_text("[1, 2]", encoding="utf-8")
    assert load_report(tmp_path / "Report.json") is None
