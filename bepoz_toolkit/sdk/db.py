"""
Acceso a SQL Server desde las herramientas.

Todas las herramientas se conectan con Integrated Security usando el
ToolkitContext. Las modificaciones se hacen siempre dentro de una
transacción y después de pedir confirmación al operador.

Las funciones reciben cursores DB-API 2.0 (pyodbc en producción) y usan
parámetros con "?".
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from bepoz_toolkit.context import ToolkitContext
from bepoz_toolkit.sdk.prompts import confirm


Statement = Tuple[str, Sequence[Any]]


class DatabaseError(Exception):
    """Error de conexión o de una operación contra la base de datos."""
    pass


def connect(ctx: ToolkitContext):
    """
    Abre una conexión a SQL Server con autenticación de Windows.

    La conexión queda con autocommit desactivado: usar transaction().

    Raises:
        ContextError: Si el contexto está incompleto
        DatabaseError: Si no se pudo conectar
    """
    connection_string = ctx.connection_string()

    import pyodbc

    try:
        return pyodbc.connect(connection_string, autocommit=False, timeout=ctx.connect_timeout)
    except pyodbc.Error as e:
        raise DatabaseError(
            f"No se pudo conectar a {ctx.sql_server} / {ctx.sql_database}: {e}"
        ) from e


@contextmanager
def transaction(conn) -> Iterator[Any]:
    """
    Ejecuta un bloque dentro de una transacción.

    Hace commit si el bloque termina bien y rollback si lanza cualquier
    excepción (incluido Ctrl+C), que luego se propaga.

    Uso:
        with transaction(conn) as cursor:
            execute(cursor, "UPDATE ...", (valor,))
    """
    cursor = conn.cursor()
    try:
        yield cursor
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        cursor.close()


@contextmanager
def driver_errors(sql: str) -> Iterator[None]:
    """Convierte los errores del driver en DatabaseError."""
    try:
        yield
    except DatabaseError:
        raise
    except Exception as e:
        first_line = sql.strip().splitlines()[0] if sql.strip() else sql
        raise DatabaseError(f"{type(e).__name__}: {e} (SQL: {first_line})") from e


def _columns(cursor) -> List[str]:
    return [column[0] for column in (cursor.description or [])]


def fetch_all(cursor, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
    """Ejecuta una consulta y retorna las filas como dicts."""
    with driver_errors(sql):
        cursor.execute(sql, tuple(params))
        columns = _columns(cursor)
        return [dict(zip(columns, row)) for row in cursor.fetchall()]


def fetch_one(cursor, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
    with driver_errors(sql):
        cursor.execute(sql, tuple(params))
        row = cursor.fetchone()
        if row is None:
            return None
        return dict(zip(_columns(cursor), row))


def fetch_value(cursor, sql: str, params: Sequence[Any] = ()) -> Any:
    """Primera columna de la primera fila (o None)."""
    with driver_errors(sql):
        cursor.execute(sql, tuple(params))
        row = cursor.fetchone()
        return row[0] if row is not None else None


def execute(cursor, sql: str, params: Sequence[Any] = ()) -> int:
    """Ejecuta una sentencia y retorna las filas afectadas (0 si el driver no lo informa)."""
    with driver_errors(sql):
        cursor.execute(sql, tuple(params))
        return max(cursor.rowcount, 0)


def confirm_and_execute(
    conn,
    description: str,
    statements: Sequence[Statement],
    max_rows: Optional[int] = None,
    report=None,
) -> Optional[int]:
    """
    Muestra qué se va a modificar, pide confirmación y ejecuta todas las
    sentencias en una sola transacción.

    Args:
        conn: Conexión abierta
        description: Qué hace el cambio (se muestra y se guarda en el reporte)
        statements: Lista de (sql, parámetros)
        max_rows: Si se indica y el total de filas afectadas lo supera, se hace rollback
        report: Report opcional donde registrar el cambio

    Returns:
        Filas afectadas, o None si el operador no confirmó

    Raises:
        DatabaseError: Si se supera max_rows (los cambios se revierten)
    """
    if not statements:
        return 0

    print(f"Cambio: {description}")
    print(f"Sentencias a ejecutar: {len(statements)}")
    if max_rows is not None:
        print(f"Máximo de filas permitido: {max_rows}")

    if not confirm("¿Está seguro de aplicar los cambios?"):
        print("Cambios cancelados por el operador.")
        return None

    total = 0
    with transaction(conn) as cursor:
        for sql, params in statements:
            total += execute(cursor, sql, params)
        if max_rows is not None and total > max_rows:
            raise DatabaseError(
                f"Se afectarían {total} filas (máximo {max_rows}). Cambios revertidos."
            )

    print(f"Cambios aplicados: {total} fila(s).")
    if report is not None:
        report.add_change(description, total)
    return total
