"""
Configuración del Toolkit.

Este archivo centraliza todas las configuraciones necesarias
para el launcher, la instalación de herramientas y su ejecución.
"""

import sys
import os
from pathlib import Path


# ============================================================================
# CONFIGURACIÓN DE LA APLICACIÓN
# ============================================================================

APP_NAME = "BepozToolkit"

# Documentos JSON que maneja el toolkit
MANIFEST_FILENAME = "manifest.json"
CONTEXT_FILENAME = "ToolkitContext.json"
REPORT_FILENAME = "Report.json"
OUTPUT_LOG_FILENAME = "output.log"
RUN_INFO_FILENAME = "run.json"
TOOL_INFO_FILENAME = "tool.json"
INSTALLED_INDEX_FILENAME = "installed.json"


# ============================================================================
# ORIGEN DEL MANIFIESTO
# ============================================================================

GITHUB_OWNER = "bepoz-onboarding"
GITHUB_REPO = "toolkit-tools"
GITHUB_BRANCH = "main"

# Token opcional (repos privados). Se envía como "Bearer".
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN")

DEFAULT_MANIFEST_URL = (
    f"https://raw.githubusercontent.com/{GITHUB_OWNER}/{GITHUB_REPO}/{GITHUB_BRANCH}/{MANIFEST_FILENAME}"
)


def get_manifest_url() -> str:
    """
    Retorna la URL del manifiesto.

    Se puede sobreescribir con la variable de entorno BEPOZ_TOOLKIT_MANIFEST_URL.
    """
    return os.getenv("BEPOZ_TOOLKIT_MANIFEST_URL") or DEFAULT_MANIFEST_URL


# ============================================================================
# CONFIGURACIÓN DE RUTAS
# ============================================================================

def get_base_dir() -> Path:
    """
    Retorna el directorio base de datos del toolkit.

    Orden de búsqueda:
        1. BEPOZ_TOOLKIT_HOME
        2. %LOCALAPPDATA%\\BepozToolkit (Windows)
        3. ~/.local/share/BepozToolkit
    """
    override = os.getenv("BEPOZ_TOOLKIT_HOME")
    if override:
        return Path(override)

    if sys.platform == "win32":
        local_appdata = os.environ.get("LOCALAPPDATA")
        if local_appdata:
            return Path(local_appdata) / APP_NAME

    return Path.home() / ".local" / "share" / APP_NAME


def get_tools_dir() -> Path:
    """Directorio donde se instalan las herramientas (una carpeta por herramienta)."""
    return get_base_dir() / "tools"


def get_runs_dir() -> Path:
    """Directorio que contiene un RunDir por cada ejecución."""
    return get_base_dir() / "runs"


def get_backup_dir() -> Path:
    """Directorio con la versión anterior de cada herramienta."""
    return get_base_dir() / "backup"


def get_manifest_cache_path() -> Path:
    return get_base_dir() / MANIFEST_FILENAME


def get_context_file_path() -> Path:
    return get_base_dir() / CONTEXT_FILENAME


# ============================================================================
# CONFIGURACIÓN DE RED
# ============================================================================

# Timeout para conexiones HTTP (segundos)
HTTP_TIMEOUT = 10

# Timeout para descarga de scripts (segundos)
DOWNLOAD_TIMEOUT = 120

# Tamaño del buffer para descarga (bytes)
DOWNLOAD_CHUNK_SIZE = 32768

USER_AGENT = f"{APP_NAME}-Launcher"

# Número de reintentos para descargas fallidas
MAX_DOWNLOAD_RETRIES = 3

# Tiempo de espera entre reintentos (segundos)
RETRY_DELAY = 2


# ============================================================================
# CONFIGURACIÓN DE EJECUCIÓN DE HERRAMIENTAS
# ============================================================================

# Variables de entorno que recibe el proceso hijo
ENV_CONTEXT_FILE = "BEPOZ_TOOLKIT_CONTEXT"
ENV_RUN_DIR = "BEPOZ_TOOLKIT_RUN_DIR"
ENV_TOOL_ID = "BEPOZ_TOOLKIT_TOOL_ID"
ENV_TOOL_VERSION = "BEPOZ_TOOLKIT_TOOL_VERSION"
ENV_SQL_SERVER = "BEPOZ_SQL_SERVER"
ENV_SQL_DATABASE = "BEPOZ_SQL_DATABASE"
ENV_ASSUME_YES = "BEPOZ_TOOLKIT_ASSUME_YES"
ENV_INTERACTIVE = "BEPOZ_TOOLKIT_INTERACTIVE"

# Opción con la que el launcher compilado ejecuta un script de herramienta
RUN_TOOL_FLAG = "--run-tool"

# Intervalo de sondeo del proceso hijo (segundos)
RUN_POLL_INTERVAL = 0.2

# Cantidad de RunDirs que se conservan
MAX_RUN_HISTORY = 30

# Tamaño de lectura de la salida del proceso hijo
OUTPUT_READ_SIZE = 4096


# ============================================================================
# CONFIGURACIÓN DE SQL SERVER
# ============================================================================

DEFAULT_ODBC_DRIVER = "ODBC Driver 17 for SQL Server"

# Timeout de conexión (segundos)
SQL_CONNECT_TIMEOUT = 15


# ============================================================================
# CONFIGURACIÓN DE UI
# ============================================================================

WINDOW_WIDTH = 760
WINDOW_HEIGHT = 560

WINDOW_TITLE = "Bepoz Onboarding Toolkit"

# Colores del tema
THEME_PRIMARY = "#1a73e8"      # Azul principal
THEME_SUCCESS = "#34a853"       # Verde éxito
THEME_ERROR = "#ea4335"         # Rojo error
THEME_WARNING = "#fbbc04"       # Amarillo advertencia
