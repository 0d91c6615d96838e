"""
Manifiesto de herramientas.

El manifiesto es un documento JSON publicado junto a las herramientas:

    {
        "toolkit_version": "1.4.0",
        "tools": [
            {
                "id": "table-audit",
                "name": "Auditoría de tablas",
                "version": "1.0.2",
                "entry": "table_audit/table_audit.py",
                "files": ["table_audit/defaults.json"],
                "sha256": "sha256:...",
                "category": "Auditoría",
                "requires_db": true,
                "args": []
            }
        ]
    }

Las rutas (`entry`, `files`) son relativas al directorio del manifiesto.
"""

import re
from dataclasses import dataclass, field, asdict
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional

from bepoz_toolkit.resources.utils import as_bool, read_json
from bepoz_toolkit.resources.version import parse_version


# El id se usa como nombre de carpeta
TOOL_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class ManifestError(Exception):
    """El manifiesto no tiene el formato esperado."""
    pass


@dataclass
class ToolInfo:
    """Una herramienta publicada en el manifiesto."""
    id: str
    version: str
    entry: str
    name: str = ""
    description: str = ""
    category: str = ""
    files: List[str] = field(default_factory=list)
    sha256: Optional[str] = None
    requires_db: bool = True
    args: List[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def all_files(self) -> List[str]:
        """Entry primero, luego los archivos adicionales (sin duplicados)."""
        result = [self.entry]
        for path in self.files:
            if path not in result:
                result.append(path)
        return result

    @property
    def entry_name(self) -> str:
        return PurePosixPath(self.entry).name

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Manifest:
    tools: List[ToolInfo]
    toolkit_version: Optional[str] = None
    source: str = ""
    fetched_at: Optional[str] = None

    def get(self, tool_id: str) -> Optional[ToolInfo]:
        for tool in self.tools:
            if tool.id == tool_id:
                return tool
        return None

    def find(self, query: str) -> Optional[ToolInfo]:
        """
        Busca una herramienta por id o por índice (1-based, como en el menú).
        """
        tool = self.get(query)
        if tool:
            return tool

        if str(query).isdigit():
            index = int(query) - 1
            if 0 <= index < len(self.tools):
                return self.tools[index]
        return None

    def categories(self) -> List[str]:
        result = []
        for tool in self.tools:
            category = tool.category or "General"
            if category not in result:
                result.append(category)
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "toolkit_version": self.toolkit_version,
            "source": self.source,
            "fetched_at": self.fetched_at,
            "tools": [tool.to_dict() for tool in self.tools],
        }


def _check_relative_path(tool_id: str, path: Any, label: str) -> str:
    """Valida que una ruta del manifiesto no escape del directorio de la herramienta."""
    if not isinstance(path, str) or not path.strip():
        raise ManifestError(f"Herramienta '{tool_id}': '{label}' debe ser un texto no vacío")

    normalized = path.replace("\\", "/").strip()
    pure = PurePosixPath(normalized)
    if not pure.parts or pure.is_absolute() or ".." in pure.parts or ":" in pure.parts[0]:
        raise ManifestError(f"Herramienta '{tool_id}': ruta no permitida en '{label}': {path}")
    return normalized


def _parse_tool(raw: Any, position: int) -> ToolInfo:
    if not isinstance(raw, dict):
        raise ManifestError(f"La herramienta #{position} no es un objeto")

    tool_id = raw.get("id")
    if not isinstance(tool_id, str) or not tool_id.strip():
        raise ManifestError(f"La herramienta #{position} no tiene 'id'")
    tool_id = tool_id.strip()
    if not TOOL_ID_PATTERN.match(tool_id):
        raise ManifestError(
            f"Id de herramienta inválido: '{tool_id}' (solo letras, números, '-', '_' y '.')"
        )

    version = raw.get("version")
    if version is None or str(version).strip() == "":
        raise ManifestError(f"Herramienta '{tool_id}': falta 'version'")
    version = str(version).strip()
    try:
        parse_version(version)
    except ValueError as e:
        raise ManifestError(f"Herramienta '{tool_id}': {e}")

    entry = _check_relative_path(tool_id, raw.get("entry"), "entry")

    files = raw.get("files") or []
    if not isinstance(files, list):
        raise ManifestError(f"Herramienta '{tool_id}': 'files' debe ser una lista")
    files = [_check_relative_path(tool_id, path, "files") for path in files]

    args = raw.get("args") or []
    if not isinstance(args, list):
        raise ManifestError(f"Herramienta '{tool_id}': 'args' debe ser una lista")

    try:
        requires_db = as_bool(raw.get("requires_db", True))
    except ValueError as e:
        raise ManifestError(f"Herramienta '{tool_id}': 'requires_db': {e}")

    return ToolInfo(
        id=tool_id,
        version=version,
        entry=entry,
        name=str(raw.get("name") or ""),
        description=str(raw.get("description") or ""),
        category=str(raw.get("category") or ""),
        files=files,
        sha256=raw.get("sha256") or None,
        requires_db=requires_db,
        args=[str(arg) for arg in args],
    )


def parse_manifest(data: Any, source: str = "") -> Manifest:
    """
    Valida y convierte el JSON del manifiesto.

    Raises:
        ManifestError: Si el documento no es válido
    """
    if not isinstance(data, dict):
        raise ManifestError("El manifiesto debe ser un objeto JSON")

    raw_tools = data.get("tools")
    if not isinstance(raw_tools, list):
        raise ManifestError("El manifiesto no tiene una lista 'tools'")

    tools = []
    seen = set()
    for position, raw in enumerate(raw_tools, start=1):
        tool = _parse_tool(raw, position)
        if tool.id in seen:
            raise ManifestError(f"Id de herramienta duplicado: '{tool.id}'")
        seen.add(tool.id)
        tools.append(tool)

    toolkit_version = data.get("toolkit_version")
    return Manifest(
        tools=tools,
        toolkit_version=str(toolkit_version) if toolkit_version else None,
        source=source or str(data.get("source") or ""),
        fetched_at=data.get("fetched_at"),
    )


def load_manifest_file(path: Path) -> Optional[Manifest]:
    """
    Lee un manifiesto guardado en disco.

    Returns:
        Manifest, o None si el archivo no existe o no es JSON válido

    Raises:
        ManifestError: Si el JSON es válido pero no tiene el formato esperado
    """
    data = read_json(path)
    if data is None:
        return None
    return parse_manifest(data)
