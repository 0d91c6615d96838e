"""
Punto de entrada común de las herramientas.

Un script de herramienta solo define su lógica:

    from bepoz_toolkit.sdk import ToolSession, main_entry

    def main(session: ToolSession):
        rows = session.fetch_all("SELECT VenueID, Name FROM Venue")
        for row in rows:
            session.report.add_item(**row)
        return f"{len(rows)} venues"

    if __name__ == "__main__":
        main_entry(main)

run_tool() se encarga del contexto, la conexión, el Report.json y el
código de salida.
"""

import os
import sys
import traceback
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from bepoz_toolkit.context import ContextError, ToolkitContext, load_context
from bepoz_toolkit.resources.config import (
    ENV_CONTEXT_FILE,
    ENV_RUN_DIR,
    ENV_TOOL_ID,
    ENV_TOOL_VERSION,
)
from bepoz_toolkit.sdk import db
from bepoz_toolkit.sdk.prompts import confirm
from bepoz_toolkit.sdk.report import Report


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_CANCELLED = 130


class ToolError(Exception):
    """Error esperado de una herramienta (se informa sin traceback)."""
    pass


class ToolCancelled(Exception):
    """El operador canceló la operación."""
    pass


class ToolSession:
    """
    Todo lo que necesita una herramienta durante su ejecución.
    """

    def __init__(
        self,
        context: ToolkitContext,
        run_dir: Path,
        report: Report,
        args: Optional[List[str]] = None,
        connection=None,
    ):
        self.context = context
        self.run_dir = Path(run_dir)
        self.report = report
        self.args = list(args or [])
        self._connection = connection
        self._owns_connection = connection is None

    @classmethod
    def from_environment(cls, argv: Optional[Sequence[str]] = None, script_name: str = "") -> "ToolSession":
        """
        Crea la sesión con lo que el launcher pasó al proceso hijo.

        Sin launcher (ejecución manual) se usa el contexto guardado del
        equipo y el directorio actual como RunDir.
        """
        context_file = os.getenv(ENV_CONTEXT_FILE)
        context = load_context(Path(context_file) if context_file else None)

        run_dir = Path(os.getenv(ENV_RUN_DIR) or os.getcwd())
        tool_id = os.getenv(ENV_TOOL_ID) or Path(script_name or sys.argv[0]).stem or "tool"
        tool_version = os.getenv(ENV_TOOL_VERSION, "")

        args = list(sys.argv[1:] if argv is None else argv)
        return cls(context, run_dir, Report(tool_id, tool_version), args=args)

    @property
    def connection(self):
        """Conexión a la base (se abre la primera vez que se usa)."""
        if self._connection is None:
            self._connection = db.connect(self.context)
            self._owns_connection = True
        return self._connection

    def cursor(self):
        return self.connection.cursor()

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[dict]:
        cursor = self.cursor()
        try:
            return db.fetch_all(cursor, sql, params)
        finally:
            cursor.close()

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[dict]:
        cursor = self.cursor()
        try:
            return db.fetch_one(cursor, sql, params)
        finally:
            cursor.close()

    def fetch_value(self, sql: str, params: Sequence[Any] = ()) -> Any:
        cursor = self.cursor()
        try:
            return db.fetch_value(cursor, sql, params)
        finally:
            cursor.close()

    def confirm(self, question: str, default: bool = False) -> bool:
        return confirm(question, default=default)

    def apply_changes(
        self,
        description: str,
        statements: Sequence[db.Statement],
        max_rows: Optional[int] = None,
    ) -> Optional[int]:
        """
        Confirma y aplica cambios en una transacción, registrándolos en el reporte.

        Returns:
            Filas afectadas, o None si el operador no confirmó
        """
        return db.confirm_and_execute(
            self.connection,
            description,
            statements,
            max_rows=max_rows,
            report=self.report,
        )

    def close(self) -> None:
        if self._connection is not None and self._owns_connection:
            try:
                self._connection.close()
            except Exception as e:
                print(f"tool.py: close: {e}", file=sys.stderr)
        self._connection = None


def run_tool(
    main: Callable[[ToolSession], Any],
    requires_db: bool = True,
    session: Optional[ToolSession] = None,
) -> int:
    """
    Ejecuta la función principal de una herramienta.

    - Valida el contexto si la herramienta usa la base
    - Si main() retorna un texto, se usa como resumen del reporte
    - Traduce excepciones a hallazgos del reporte y a un código de salida
    - Siempre guarda Report.json y cierra la conexión

    Returns:
        0 ok, 1 error, 2 error de configuración, 130 cancelado
    """
    session = session or ToolSession.from_environment()
    report = session.report
    exit_code = EXIT_OK

    try:
        if requires_db:
            session.context.validate()

        result = main(session)
        if isinstance(result, str) and not report.summary:
            report.summary = result
        if report.status == "error":
            exit_code = EXIT_ERROR

    except ContextError as e:
        report.error(str(e))
        print(f"ERROR: {e}", file=sys.stderr)
        exit_code = EXIT_CONFIG_ERROR
    except (ToolCancelled, KeyboardInterrupt) as e:
        message = str(e) or "Operación cancelada por el operador"
        report.mark_cancelled(message)
        print(message)
        exit_code = EXIT_CANCELLED
    except (ToolError, db.DatabaseError) as e:
        report.error(str(e))
        print(f"ERROR: {e}", file=sys.stderr)
        exit_code = EXIT_ERROR
    except Exception as e:
        traceback.print_exc()
        report.error(f"Error inesperado: {type(e).__name__}: {e}")
        exit_code = EXIT_ERROR
    finally:
        session.close()
        try:
            report.save(session.run_dir)
        except OSError as e:
            print(f"ERROR: No se pudo guardar el reporte: {e}", file=sys.stderr)
            exit_code = exit_code or EXIT_ERROR

    return exit_code


def main_entry(main: Callable[[ToolSession], Any], requires_db: bool = True) -> None:
    """run_tool() + sys.exit(), para usar en `if __name__ == "__main__"`."""
    sys.exit(run_tool(main, requires_db=requires_db))
