"""
Report.json de una ejecución.

Cada herramienta deja en su RunDir un Report.json con el resultado:

    {
        "tool_id": "table-audit",
        "tool_version": "1.0.2",
        "status": "warning",
        "started_at": "...",
        "finished_at": "...",
        "summary": "12 tablas revisadas",
        "metrics": {"tables": 12},
        "items": [{"table": "Venue", "rows": 3}],
        "findings": [{"level": "warning", "message": "Tabla vacía", "details": {...}}]
    }
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from bepoz_toolkit.resources.config import REPORT_FILENAME
from bepoz_toolkit.resources.utils import read_json, write_json


STATUS_OK = "ok"
STATUS_WARNING = "warning"
STATUS_ERROR = "error"
STATUS_CANCELLED = "cancelled"

LEVELS = ("info", "warning", "error")


class Report:
    """Acumula el resultado de una herramienta y lo guarda como Report.json."""

    def __init__(self, tool_id: str, tool_version: str = ""):
        self.tool_id = tool_id
        self.tool_version = tool_version
        self.started_at = datetime.now()
        self.finished_at: Optional[datetime] = None
        self.summary = ""
        self.metrics: Dict[str, Any] = {}
        self.items: List[Dict[str, Any]] = []
        self.findings: List[Dict[str, Any]] = []
        self.changes: List[Dict[str, Any]] = []
        self._cancelled = False

    def add_item(self, **values) -> None:
        """Agrega una fila al detalle del reporte."""
        self.items.append(values)

    def add_finding(self, level: str, message: str, **details) -> None:
        if level not in LEVELS:
            raise ValueError(f"Nivel inválido: {level} (usar {', '.join(LEVELS)})")
        self.findings.append({"level": level, "message": message, "details": details})

    def info(self, message: str, **details) -> None:
        self.add_finding("info", message, **details)

    def warn(self, message: str, **details) -> None:
        self.add_finding("warning", message, **details)

    def error(self, message: str, **details) -> None:
        self.add_finding("error", message, **details)

    def add_change(self, description: str, rows: int) -> None:
        """Registra una modificación aplicada a la base de datos."""
        self.changes.append({"description": description, "rows": rows})

    def set_metric(self, name: str, value: Any) -> None:
        self.metrics[name] = value

    def mark_cancelled(self, message: str = "") -> None:
        self._cancelled = True
        if message:
            self.info(message)

    @property
    def status(self) -> str:
        if any(f["level"] == "error" for f in self.findings):
            return STATUS_ERROR
        if self._cancelled:
            return STATUS_CANCELLED
        if any(f["level"] == "warning" for f in self.findings):
            return STATUS_WARNING
        return STATUS_OK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool_id": self.tool_id,
            "tool_version": self.tool_version,
            "status": self.status,
            "started_at": self.started_at.isoformat(timespec="seconds"),
            "finished_at": self.finished_at.isoformat(timespec="seconds") if self.finished_at else None,
            "summary": self.summary,
            "metrics": self.metrics,
            "items": self.items,
            "findings": self.findings,
            "changes": self.changes,
        }

    def save(self, run_dir: Path) -> Path:
        """Escribe Report.json en el RunDir y retorna su ruta."""
        self.finished_at = self.finished_at or datetime.now()
        path = Path(run_dir) / REPORT_FILENAME
        write_json(path, self.to_dict())
        return path


def load_report(path: Path) -> Optional[Dict[str, Any]]:
    """Lee un Report.json. None si no existe o no es un objeto JSON."""
    data = read_json(Path(path))
    return data if isinstance(data, dict) else None
