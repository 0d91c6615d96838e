"""
Gestor de Backups de herramientas.

Este módulo contiene la lógica para:
- Crear un backup de la versión instalada de una herramienta antes de actualizarla
- Restaurar la versión anterior desde el backup
- Descartar backups

Los backups se almacenan en una carpeta por herramienta dentro de la
carpeta "backup" del toolkit.
"""

import shutil
from pathlib import Path
from typing import Optional

from bepoz_toolkit.resources.config import TOOL_INFO_FILENAME
from bepoz_toolkit.resources.logging_method import log_simple_class_methods
from bepoz_toolkit.resources.utils import read_json, safe_rmtree


class BackupError(Exception):
    """Error durante la creación o restauración de un backup."""


@log_simple_class_methods
class BackupManager:
    """
    Gestor de backups.

    Métodos principales:
    - create_backup(): Copia la carpeta instalada de la herramienta al backup
    - restore(): Reemplaza la carpeta instalada con el backup
    - discard(): Elimina el backup
    """

    def __init__(self, tools_dir: Path, backup_dir: Path):
        self.tools_dir = Path(tools_dir)
        self.backup_dir = Path(backup_dir)

    def tool_dir(self, tool_id: str) -> Path:
        return self.tools_dir / tool_id

    def backup_path(self, tool_id: str) -> Path:
        return self.backup_dir / tool_id

    def has_backup(self, tool_id: str) -> bool:
        path = self.backup_path(tool_id)
        return path.is_dir() and any(path.iterdir())

    def backup_version(self, tool_id: str) -> Optional[str]:
        """Versión guardada en el backup (según su tool.json)."""
        data = read_json(self.backup_path(tool_id) / TOOL_INFO_FILENAME)
        if isinstance(data, dict):
            return data.get("version")
        return None

    def create_backup(self, tool_id: str) -> bool:
        """
        Crea un backup de la herramienta instalada.

        Este método:
        1. Elimina el backup anterior de la herramienta si existe
        2. Copia la carpeta instalada completa a la carpeta de backup

        Returns:
            True si se creó el backup, False si no hay nada instalado que respaldar.

        Raises:
            BackupError: Si ocurre un error durante la copia.
        """
        source = self.tool_dir(tool_id)
        if not source.is_dir():
            return False

        destination = self.backup_path(tool_id)
        if not safe_rmtree(destination):
            raise BackupError(f"No se pudo limpiar el backup anterior de '{tool_id}'")

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, destination)
        except (OSError, shutil.Error) as e:
            raise BackupError(f"Error copiando '{tool_id}' al backup: {e}")

        return True

    def restore(self, tool_id: str) -> bool:
        """
        Restaura la versión anterior desde el backup.

        Este método:
        1. Elimina la carpeta instalada de la herramienta
        2. Copia el backup a la carpeta de la herramienta
        3. Elimina el backup

        Raises:
            BackupError: Si no hay backup o falla la restauración.
        """
        if not self.has_backup(tool_id):
            raise BackupError(f"No hay backup disponible para '{tool_id}'")

        target = self.tool_dir(tool_id)
        if not safe_rmtree(target):
            raise BackupError(
                f"No se pudo eliminar la versión instalada de '{tool_id}'. "
                "Verifica que la herramienta no se esté ejecutando."
            )

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(self.backup_path(tool_id), target)
        except (OSError, shutil.Error) as e:
            raise BackupError(f"Error restaurando '{tool_id}': {e}")

        if not self.discard(tool_id):
            raise BackupError(f"No se pudo limpiar el backup de '{tool_id}'")

        return True

    def discard(self, tool_id: str) -> bool:
        """Elimina el backup de la herramienta."""
        return safe_rmtree(self.backup_path(tool_id))
