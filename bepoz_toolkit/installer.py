"""
Instalador de herramientas.

Este módulo contiene la lógica para:
- Descargar el manifiesto de herramientas (con caché local para trabajar sin red)
- Decidir si una herramienta debe (re)descargarse según su versión
- Descargar los archivos de una herramienta a una carpeta temporal
- Instalar la nueva versión con backup y rollback si algo falla

El manifiesto puede publicarse en una URL (http/https) o en una carpeta
local (útil para desarrollo y para equipos sin acceso a internet).

Uso:
    from bepoz_toolkit.installer import ToolInstaller

    installer = ToolInstaller()
    manifest = installer.fetch_manifest()

    tool = manifest.get("table-audit")
    entry_path = installer.ensure_installed(tool)
"""

import sys
import time
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Optional
from urllib.parse import urljoin, urlparse, unquote

import requests

from bepoz_toolkit.backup_manager import BackupManager, BackupError
from bepoz_toolkit.manifest import Manifest, ManifestError, ToolInfo, parse_manifest, load_manifest_file
from bepoz_toolkit.resources.config import (
    GITHUB_TOKEN,
    HTTP_TIMEOUT,
    DOWNLOAD_TIMEOUT,
    DOWNLOAD_CHUNK_SIZE,
    USER_AGENT,
    MAX_DOWNLOAD_RETRIES,
    RETRY_DELAY,
    TOOL_INFO_FILENAME,
    INSTALLED_INDEX_FILENAME,
    get_manifest_url,
    get_tools_dir,
    get_backup_dir,
    get_manifest_cache_path,
)
from bepoz_toolkit.resources.logging_method import log_simple_class_methods
from bepoz_toolkit.resources.utils import (
    ensure_dir,
    read_json,
    safe_rename,
    safe_rmtree,
    verify_checksum,
    write_json,
)
from bepoz_toolkit.resources.version import is_newer_version


STAGING_DIRNAME = ".staging"


class InstallError(Exception):
    """Error durante la descarga o instalación de herramientas."""
    pass


@log_simple_class_methods
class ToolInstaller:
    """
    Gestor de instalación de herramientas.

    Maneja la descarga del manifiesto, la descarga de los scripts de cada
    herramienta y el índice local de versiones instaladas (installed.json).
    """

    def __init__(
        self,
        manifest_url: Optional[str] = None,
        tools_dir: Optional[Path] = None,
        backup_dir: Optional[Path] = None,
        manifest_cache_path: Optional[Path] = None,
        session: Optional[requests.Session] = None,
        offline: bool = False,
        token: Optional[str] = GITHUB_TOKEN,
    ):
        """
        Inicializa el instalador.

        Args:
            manifest_url: URL o ruta local del manifiesto (por defecto la configurada)
            tools_dir: Carpeta de instalación de herramientas
            backup_dir: Carpeta de backups de herramientas
            manifest_cache_path: Copia local del último manifiesto descargado
            session: Sesión HTTP (se crea una si no se indica)
            offline: Si True, usa solo el manifiesto en caché y no descarga nada
            token: Token opcional enviado como "Authorization: Bearer"
        """
        self.manifest_url = manifest_url or get_manifest_url()
        self.tools_dir = Path(tools_dir) if tools_dir else get_tools_dir()
        self.manifest_cache_path = Path(manifest_cache_path) if manifest_cache_path else get_manifest_cache_path()
        self.backup_manager = BackupManager(self.tools_dir, Path(backup_dir) if backup_dir else get_backup_dir())
        self.session = session or requests.Session()
        self.offline = offline
        self.token = token

        self.staging_dir = self.tools_dir / STAGING_DIRNAME
        self.retry_delay = RETRY_DELAY
        self.manifest: Optional[Manifest] = None

        # True si el último fetch_manifest() tuvo que usar la caché
        self.used_cached_manifest = False
        self.last_error: Optional[str] = None

        # Callback para reportar progreso de descarga
        self.progress_callback: Optional[Callable[[int, int], None]] = None

    def set_progress_callback(self, callback: Optional[Callable[[int, int], None]]) -> None:
        """
        Establece un callback para reportar progreso de descarga.

        Args:
            callback: Función que recibe (bytes_descargados, bytes_totales)
        """
        self.progress_callback = callback

    # ------------------------------------------------------------------
    # Origen (HTTP o carpeta local)
    # ------------------------------------------------------------------

    def _is_remote(self) -> bool:
        return urlparse(self.manifest_url).scheme in ("http", "https")

    def _local_manifest_path(self) -> Path:
        parsed = urlparse(self.manifest_url)
        if parsed.scheme == "file":
            return Path(unquote(parsed.path))
        return Path(self.manifest_url)

    def tool_url(self, relative_path: str) -> str:
        """
        Resuelve un archivo de la herramienta relativo al manifiesto.
        """
        if self._is_remote():
            return urljoin(self.manifest_url, relative_path)
        return str(self._local_manifest_path().parent / PurePosixPath(relative_path))

    def _headers(self, binary: bool = False) -> Dict[str, str]:
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/octet-stream" if binary else "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get(self, url: str, timeout: int = HTTP_TIMEOUT, binary: bool = False) -> requests.Response:
        """
        Realiza una petición HTTP GET y traduce los errores a InstallError.
        """
        try:
            response = self.session.get(
                url,
                headers=self._headers(binary),
                timeout=timeout,
                stream=binary,
            )
            response.raise_for_status()
            return response
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 401:
                raise InstallError(
                    "Error de autenticación. Verifica que el token (GITHUB_TOKEN) sea válido."
                )
            elif status == 403:
                raise InstallError(
                    "Acceso denegado. El token puede no tener permisos suficientes "
                    "o el repositorio requiere autenticación."
                )
            elif status == 404:
                raise InstallError(f"No se encontró el recurso: {url}")
            raise InstallError(f"Error HTTP {status}: {url}")
        except requests.Timeout:
            raise InstallError(f"Timeout: El servidor no respondió a tiempo ({url})")
        except requests.ConnectionError as e:
            raise InstallError(f"Error de conexión: {e}")
        except requests.RequestException as e:
            raise InstallError(f"Error en la petición a {url}: {e}")

    # ------------------------------------------------------------------
    # Manifiesto
    # ------------------------------------------------------------------

    def fetch_manifest(self) -> Manifest:
        """
        Obtiene el manifiesto de herramientas.

        Si la descarga falla (o se está en modo offline), usa la última copia
        guardada en disco. Si tampoco hay copia, lanza InstallError.
        """
        self.used_cached_manifest = False
        self.last_error = None

        if self.offline:
            return self._use_cached_manifest("modo offline")

        try:
            manifest = self._download_manifest()
        except InstallError as e:
            self.last_error = str(e)
            print(f"installer.py: fetch_manifest: {e}", file=sys.stderr)
            return self._use_cached_manifest(str(e))

        manifest.fetched_at = datetime.now().isoformat(timespec="seconds")
        try:
            write_json(self.manifest_cache_path, manifest.to_dict())
        except OSError as e:
            print(f"installer.py: fetch_manifest: no se pudo guardar la caché: {e}", file=sys.stderr)

        self.manifest = manifest
        return manifest

    def _download_manifest(self) -> Manifest:
        if self._is_remote():
            response = self._get(self.manifest_url, timeout=HTTP_TIMEOUT)
            try:
                data = response.json()
            except ValueError:
                raise InstallError("El manifiesto descargado no es un JSON válido")
        else:
            path = self._local_manifest_path()
            if not path.exists():
                raise InstallError(f"No se encontró el manifiesto local: {path}")
            data = read_json(path)
            if data is None:
                raise InstallError(f"El manifiesto local no es un JSON válido: {path}")

        try:
            return parse_manifest(data, source=self.manifest_url)
        except ManifestError as e:
            raise InstallError(f"Manifiesto inválido: {e}")

    def _use_cached_manifest(self, reason: str) -> Manifest:
        try:
            cached = load_manifest_file(self.manifest_cache_path)
        except ManifestError as e:
            raise InstallError(f"La copia local del manifiesto es inválida: {e}")

        if cached is None:
            raise InstallError(f"No se pudo obtener el manifiesto ({reason}) y no hay copia local")

        self.used_cached_manifest = True
        self.manifest = cached
        return cached

    # ------------------------------------------------------------------
    # Índice de herramientas instaladas
    # ------------------------------------------------------------------

    @property
    def index_path(self) -> Path:
        return self.tools_dir / INSTALLED_INDEX_FILENAME

    def _read_index(self) -> Dict[str, dict]:
        data = read_json(self.index_path, default={})
        return data if isinstance(data, dict) else {}

    def _write_index(self, index: Dict[str, dict]) -> None:
        write_json(self.index_path, index)

    def get_installed(self, tool_id: str) -> Optional[dict]:
        """Entrada del índice (version, entry, installed_at, pinned) o None."""
        entry = self._read_index().get(tool_id)
        return entry if isinstance(entry, dict) else None

    def installed_version(self, tool_id: str) -> Optional[str]:
        installed = self.get_installed(tool_id)
        return installed.get("version") if installed else None

    def tool_dir(self, tool_id: str) -> Path:
        return self.tools_dir / tool_id

    def entry_path(self, tool: ToolInfo) -> Path:
        """Ruta al script instalado de la herramienta."""
        installed = self.get_installed(tool.id)
        entry = installed.get("entry") if installed and installed.get("entry") else tool.entry
        return self.tool_dir(tool.id) / PurePosixPath(entry)

    def needs_install(self, tool: ToolInfo) -> bool:
        """
        Indica si la herramienta debe descargarse.

        True si no está instalada, si falta el script, o si el manifiesto
        tiene una versión más nueva (salvo que la herramienta esté fijada
        después de restaurar una versión anterior).
        """
        installed = self.get_installed(tool.id)
        if not installed:
            return True

        if not self.entry_path(tool).exists():
            return True

        if installed.get("pinned"):
            return False

        return is_newer_version(tool.version, installed.get("version"))

    # ------------------------------------------------------------------
    # Instalación
    # ------------------------------------------------------------------

    def ensure_installed(self, tool: ToolInfo) -> Path:
        """Instala la herramienta si hace falta y retorna la ruta a su script."""
        return self.install(tool, force=False)

    def install(self, tool: ToolInfo, force: bool = False) -> Path:
        """
        Descarga e instala una herramienta.

        Este método:
        1. Descarga todos los archivos a una carpeta temporal (con reintentos)
        2. Verifica el checksum del script si el manifiesto lo indica
        3. Hace backup de la versión instalada
        4. Reemplaza la carpeta de la herramienta
        5. Actualiza installed.json

        Args:
            tool: Herramienta del manifiesto
            force: Si True, descarga aunque ya esté actualizada (y quita el pin)

        Returns:
            Ruta al script instalado

        Raises:
            InstallError: Si la instalación falla (la versión anterior se restaura)
        """
        if not force and not self.needs_install(tool):
            return self.entry_path(tool)

        if self.offline:
            raise InstallError(
                f"'{tool.display_name}' no está instalada o está desactualizada y el modo offline está activo"
            )

        staging = self.staging_dir / tool.id
        if not safe_rmtree(staging) or not ensure_dir(staging):
            raise InstallError(f"No se pudo preparar la carpeta temporal {staging}")

        try:
            for relative_path in tool.all_files:
                destination = staging / PurePosixPath(relative_path)
                destination.parent.mkdir(parents=True, exist_ok=True)
                self._download_with_retries(self.tool_url(relative_path), destination)

            if tool.sha256 and not verify_checksum(staging / PurePosixPath(tool.entry), tool.sha256):
                raise InstallError(
                    f"Verificación de checksum fallida para '{tool.display_name}'. "
                    "El archivo puede estar corrupto."
                )

            now = datetime.now().isoformat(timespec="seconds")
            tool_info = tool.to_dict()
            tool_info["installed_at"] = now
            write_json(staging / TOOL_INFO_FILENAME, tool_info)
        except OSError as e:
            safe_rmtree(staging)
            raise InstallError(f"Error escribiendo archivos de '{tool.display_name}': {e}")
        except InstallError:
            safe_rmtree(staging)
            raise

        self._swap_in(tool, staging, now)
        return self.entry_path(tool)

    def _swap_in(self, tool: ToolInfo, staging: Path, installed_at: str) -> None:
        """Reemplaza la versión instalada por la descargada, con rollback."""
        try:
            has_backup = self.backup_manager.create_backup(tool.id)
        except BackupError as e:
            safe_rmtree(staging)
            raise InstallError(f"No se pudo crear backup de '{tool.display_name}': {e}")

        try:
            if not safe_rename(staging, self.tool_dir(tool.id)):
                raise InstallError(f"No se pudo instalar la nueva versión de '{tool.display_name}'")

            index = self._read_index()
            index[tool.id] = {
                "version": tool.version,
                "entry": tool.entry,
                "installed_at": installed_at,
                "pinned": False,
                "sha256": tool.sha256,
            }
            self._write_index(index)
        except (InstallError, OSError) as e:
            safe_rmtree(staging)
            if has_backup:
                try:
                    self.backup_manager.restore(tool.id)
                except BackupError as restore_error:
                    print(f"installer.py: _swap_in: rollback fallido: {restore_error}", file=sys.stderr)
            if isinstance(e, InstallError):
                raise
            raise InstallError(f"Error instalando '{tool.display_name}': {e}")

    def _download_with_retries(self, url: str, destination: Path) -> None:
        last_error = None
        for attempt in range(MAX_DOWNLOAD_RETRIES):
            try:
                self._download_file(url, destination)
                return
            except InstallError as e:
                last_error = e
                if attempt < MAX_DOWNLOAD_RETRIES - 1:
                    time.sleep(self.retry_delay)

        raise InstallError(f"Descarga fallida después de {MAX_DOWNLOAD_RETRIES} intentos: {last_error}")

    def _download_file(self, url: str, destination: Path) -> None:
        """
        Descarga un archivo con reporte de progreso.
        """
        if not self._is_remote():
            self._copy_local_file(Path(url), destination)
            return

        with self._get(url, timeout=DOWNLOAD_TIMEOUT, binary=True) as response:
            total_size = int(response.headers.get("content-length") or 0)
            downloaded = 0
            try:
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if not chunk:
                            continue
                        f.write(chunk)
                        downloaded += len(chunk)
                        if self.progress_callback:
                            self.progress_callback(downloaded, total_size)
            except requests.RequestException as e:
                raise InstallError(f"Descarga interrumpida ({url}): {e}")
            except OSError as e:
                raise InstallError(f"Error escribiendo archivo: {e}")

    def _copy_local_file(self, source: Path, destination: Path) -> None:
        if not source.is_file():
            raise InstallError(f"No se encontró el archivo: {source}")
        try:
            data = source.read_bytes()
            destination.write_bytes(data)
        except OSError as e:
            raise InstallError(f"Error copiando {source}: {e}")
        if self.progress_callback:
            self.progress_callback(len(data), len(data))

    # ------------------------------------------------------------------
    # Backups, pin y desinstalación
    # ------------------------------------------------------------------

    def has_previous_version(self, tool_id: str) -> bool:
        return self.backup_manager.has_backup(tool_id)

    def restore_previous(self, tool_id: str) -> str:
        """
        Restaura la versión anterior de una herramienta y la fija (pin) para
        que no se actualice automáticamente.

        Returns:
            Versión restaurada

        Raises:
            BackupError: Si no hay backup o falla la restauración
        """
        self.backup_manager.restore(tool_id)

        tool_info = read_json(self.tool_dir(tool_id) / TOOL_INFO_FILENAME, default={}) or {}
        version = tool_info.get("version")
        index = self._read_index()
        index[tool_id] = {
            "version": version,
            "entry": tool_info.get("entry"),
            "installed_at": tool_info.get("installed_at"),
            "restored_at": datetime.now().isoformat(timespec="seconds"),
            "pinned": True,
            "sha256": tool_info.get("sha256"),
        }
        self._write_index(index)
        return version

    def unpin(self, tool_id: str) -> bool:
        """Quita el pin. Retorna False si la herramienta no está instalada."""
        index = self._read_index()
        if tool_id not in index:
            return False
        index[tool_id]["pinned"] = False
        self._write_index(index)
        return True

    def uninstall(self, tool_id: str) -> bool:
        """Elimina la herramienta instalada, su backup y su entrada del índice."""
        if not safe_rmtree(self.tool_dir(tool_id)):
            return False
        self.backup_manager.discard(tool_id)

        index = self._read_index()
        if index.pop(tool_id, None) is not None:
            self._write_index(index)
        return True

    def cleanup(self) -> None:
        """
        Limpia la carpeta temporal de descargas.
        """
        safe_rmtree(self.staging_dir)

    def status_rows(self, manifest: Optional[Manifest] = None) -> List[dict]:
        """
        Estado de cada herramienta del manifiesto, para los listados de la UI.
        """
        manifest = manifest or self.manifest
        if manifest is None:
            return []

        index = self._read_index()
        rows = []
        for position, tool in enumerate(manifest.tools, start=1):
            installed = index.get(tool.id) or {}
            rows.append({
                "index": position,
                "id": tool.id,
                "name": tool.display_name,
                "category": tool.category or "General",
                "available": tool.version,
                "installed": installed.get("version"),
                "pinned": bool(installed.get("pinned")),
                "needs_install": self.needs_install(tool),
            })
        return rows
