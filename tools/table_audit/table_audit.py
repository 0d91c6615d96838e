"""
Auditoría de tablas.

Cuenta las filas de cada tabla y avisa si alguna está vacía o no existe.

Uso:
    table_audit.py                 # tablas de defaults.json
    table_audit.py Venue dbo.Till  # tablas indicadas
"""

import re
from pathlib import Path
from typing import List

from bepoz_toolkit.sdk import DatabaseError, ToolError, ToolSession, main_entry
from bepoz_toolkit.resources.utils import read_json


DEFAULTS_FILE = Path(__file__).resolve().parent / "defaults.json"

# esquema.tabla o tabla, sin corchetes ni comillas
TABLE_NAME_PATTERN = re.compile(r"^(?:[A-Za-z_][A-Za-z0-9_]*\.)?[A-Za-z_][A-Za-z0-9_]*$")


def quote_table_name(name: str) -> str:
    """
    Valida un nombre de tabla y lo devuelve entre corchetes.

    Raises:
        ToolError: Si el nombre tiene caracteres no permitidos
    """
    name = name.strip()
    if not TABLE_NAME_PATTERN.match(name):
        raise ToolError(f"Nombre de tabla inválido: '{name}'")
    return ".".join(f"[{part}]" for part in name.split("."))


def load_default_tables(path: Path = DEFAULTS_FILE) -> List[str]:
    data = read_json(path, default={})
    tables = data.get("tables") if isinstance(data, dict) else None
    return [str(table) for table in tables or []]


def main(session: ToolSession) -> str:
    tables = session.args or load_default_tables()
    if not tables:
        raise ToolError("No hay tablas para revisar (ni argumentos ni defaults.json)")

    quoted = [(table, quote_table_name(table)) for table in tables]

    total_rows = 0
    empty = 0
    missing = 0
    for table, quoted_name in quoted:
        try:
            rows = session.fetch_value(f"SELECT COUNT(*) FROM {quoted_name}")
        except DatabaseError as e:
            missing += 1
            session.report.warn(f"No se pudo leer la tabla {table}", error=str(e))
            print(f"  {table:<30} ERROR")
            continue

        rows = int(rows or 0)
        total_rows += rows
        session.report.add_item(table=table, rows=rows)
        print(f"  {table:<30} {rows:>10}")

        if rows == 0:
            empty += 1
            session.report.warn(f"La tabla {table} está vacía", table=table)

    session.report.set_metric("tables", len(quoted))
    session.report.set_metric("rows", total_rows)
    session.report.set_metric("empty_tables", empty)
    session.report.set_metric("unreadable_tables", missing)

    return f"{len(quoted)} tablas revisadas, {empty} vacías, {missing} con error"


if __name__ == "__main__":
    main_entry(main)
