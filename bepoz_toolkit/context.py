"""
Contexto compartido de conexión (ToolkitContext.json).

El launcher guarda aquí el servidor y la base de datos de Bepoz del equipo.
Antes de cada ejecución se copia el contexto al RunDir y su ruta se pasa al
proceso hijo por variable de entorno, junto con el servidor y la base.

Las herramientas se conectan siempre con Integrated Security (el usuario de
Windows que ejecuta el launcher).
"""

import getpass
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from bepoz_toolkit.resources.config import (
    DEFAULT_ODBC_DRIVER,
    SQL_CONNECT_TIMEOUT,
    ENV_CONTEXT_FILE,
    ENV_SQL_SERVER,
    ENV_SQL_DATABASE,
    get_context_file_path,
)
from bepoz_toolkit.resources.utils import as_bool, read_json, write_json


class ContextError(Exception):
    """El contexto de conexión falta o está incompleto."""
    pass


def _default_operator() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


@dataclass
class ToolkitContext:
    sql_server: str = ""
    sql_database: str = ""
    odbc_driver: str = DEFAULT_ODBC_DRIVER
    integrated_security: bool = True
    trust_server_certificate: bool = True
    connect_timeout: int = SQL_CONNECT_TIMEOUT
    venue_name: str = ""
    operator: str = field(default_factory=_default_operator)
    extra: Dict[str, Any] = field(default_factory=dict)

    def is_configured(self) -> bool:
        return bool(self.sql_server.strip() and self.sql_database.strip())

    def validate(self) -> None:
        """
        Raises:
            ContextError: Si falta el servidor o la base de datos
        """
        missing = []
        if not self.sql_server.strip():
            missing.append("sql_server")
        if not self.sql_database.strip():
            missing.append("sql_database")
        if missing:
            raise ContextError(
                "Falta configurar la conexión SQL: " + ", ".join(missing)
                + ". Usa 'bepoz-toolkit configure' o la opción del menú."
            )
        if not self.integrated_security:
            raise ContextError("Solo se soporta Integrated Security (autenticación de Windows)")

    def connection_string(self) -> str:
        """
        Cadena de conexión ODBC con autenticación de Windows.

        Raises:
            ContextError: Si el contexto está incompleto
        """
        self.validate()
        parts = [
            f"Driver={{{self.odbc_driver}}}",
            f"Server={self.sql_server}",
            f"Database={self.sql_database}",
            "Trusted_Connection=yes",
        ]
        if self.trust_server_certificate:
            parts.append("TrustServerCertificate=yes")
        return ";".join(parts) + ";"

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToolkitContext":
        """
        Crea el contexto desde un dict. Las claves desconocidas se guardan en `extra`.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        raw_extra = data.get("extra")
        extra = dict(raw_extra) if isinstance(raw_extra, Mapping) else {}
        for key, value in data.items():
            if key == "extra":
                continue
            if key in known:
                kwargs[key] = value
            else:
                extra[key] = value

        if "connect_timeout" in kwargs:
            try:
                kwargs["connect_timeout"] = int(kwargs["connect_timeout"])
            except (TypeError, ValueError):
                kwargs["connect_timeout"] = SQL_CONNECT_TIMEOUT
        for key in ("integrated_security", "trust_server_certificate"):
            if key in kwargs:
                try:
                    kwargs[key] = as_bool(kwargs[key])
                except ValueError:
                    kwargs[key] = getattr(cls, key)
        for key in ("sql_server", "sql_database", "odbc_driver", "venue_name", "operator"):
            if key in kwargs:
                kwargs[key] = "" if kwargs[key] is None else str(kwargs[key])

        return cls(extra=extra, **kwargs)


def load_context(path: Optional[Path] = None) -> ToolkitContext:
    """
    Lee el contexto desde disco. Si no existe o es inválido, retorna un contexto vacío.
    """
    path = Path(path) if path else get_context_file_path()
    data = read_json(path)
    if not isinstance(data, dict):
        return ToolkitContext()
    return ToolkitContext.from_dict(data)


def save_context(ctx: ToolkitContext, path: Optional[Path] = None) -> Path:
    path = Path(path) if path else get_context_file_path()
    write_json(path, ctx.to_dict())
    return path


def child_environment(
    ctx: ToolkitContext,
    context_file: Path,
    base_env: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Variables de entorno para el proceso hijo de una herramienta.
    """
    env = dict(os.environ if base_env is None else base_env)
    env[ENV_CONTEXT_FILE] = str(context_file)
    env[ENV_SQL_SERVER] = ctx.sql_server
    env[ENV_SQL_DATABASE] = ctx.sql_database
    # La salida del hijo se lee por pipe: sin buffer y en UTF-8
    env["PYTHONUNBUFFERED"] = "1"
    env["PYTHONIOENCODING"] = "utf-8"
    return env
