"""
Helpers para escribir herramientas del toolkit.

Cubren lo que cada script de mantenimiento necesita: leer el contexto de
conexión, conectarse a SQL Server, pedir confirmación, modificar datos en
una transacción y dejar un Report.json en su RunDir.
"""

from bepoz_toolkit.sdk.db import DatabaseError, confirm_and_execute, connect, transaction
from bepoz_toolkit.sdk.prompts import ask, choose, confirm
from bepoz_toolkit.sdk.report import Report, load_report
from bepoz_toolkit.sdk.tool import (
    ToolCancelled,
    ToolError,
    ToolSession,
    main_entry,
    run_tool,
)

__all__ = [
    "DatabaseError",
    "Report",
    "ToolCancelled",
    "ToolError",
    "ToolSession",
    "ask",
    "choose",
    "confirm",
    "confirm_and_execute",
    "connect",
    "load_report",
    "main_entry",
    "run_tool",
    "transaction",
]
