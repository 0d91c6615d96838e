"""
Utilidades para el Toolkit.

Funciones auxiliares para:
- Cálculo y verificación de checksums SHA256
- Manejo de archivos, directorios y documentos JSON
"""

import hashlib
import json
import os
import shutil
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Optional


# ============================================================================
# CHECKSUMS
# ============================================================================

def calculate_sha256(file_path: Path, chunk_size: int = 8192) -> str:
    """
    Calcula el hash SHA256 de un archivo.

    Returns:
        Hash SHA256 en hexadecimal (lowercase)

    Raises:
        FileNotFoundError: Si el archivo no existe
        IOError: Si hay error de lectura
    """
    sha256 = hashlib.sha256()

    with open(file_path, 'rb') as f:
        while True:
            data = f.read(chunk_size)
            if not data:
                break
            sha256.update(data)

    return sha256.hexdigest()


def verify_checksum(file_path: Path, expected_hash: str) -> bool:
    """
    Verifica que el checksum de un archivo coincida con el esperado.

    Acepta el hash solo ("abc123...") o con prefijo ("sha256:abc123...").
    """
    if ':' in expected_hash:
        algorithm, expected_hash = expected_hash.split(':', 1)
        if algorithm.strip().lower() != 'sha256':
            return False

    try:
        actual_hash = calculate_sha256(file_path)
        return actual_hash.lower() == expected_hash.strip().lower()
    except (FileNotFoundError, IOError):
        return False


# ============================================================================
# MANEJO DE ARCHIVOS
# ============================================================================

def safe_rmtree(directory: Path, max_retries: int = 3, retry_delay: float = 0.5) -> bool:
    """Elimina un directorio completo, con reintentos."""
    for attempt in range(max_retries):
        try:
            if directory.exists():
                shutil.rmtree(directory)
            return True
        except PermissionError:
            if attempt < max_retries - 1:
                time.sleep(retry_delay)
            else:
                return False
        except OSError:
            return False
    return False


def safe_rename(src: Path, dst: Path, max_retries: int = 3, retry_delay: float = 0.5) -> bool:
    """
    Renombra/mueve un archivo o directorio de forma segura, con reintentos.

    Si el destino existe se elimina primero.

    Returns:
        True si se renombró, False si falló
    """
    for attempt in range(max_retries):
        try:
            if dst.is_dir():
                shutil.rmtree(dst)
            elif dst.exists():
                dst.unlink()

            shutil.move(str(src), str(dst))
            return True
        except PermissionError:
            if attempt < max_retries - 1:
                time.sleep(retry_delay)
            else:
                return False
        except OSError:
            return False
    return False


def ensure_dir(directory: Path) -> bool:
    """
    Crea un directorio si no existe.

    Returns:
        True si existe o se creó, False si falló
    """
    try:
        directory.mkdir(parents=True, exist_ok=True)
        return True
    except OSError:
        return False


def clean_old_dirs(directory: Path, keep: int) -> int:
    """
    Elimina los subdirectorios más antiguos, conservando los `keep` más recientes.

    El orden se toma del nombre (los RunDirs empiezan con un timestamp).

    Returns:
        Número de directorios eliminados
    """
    if not directory.exists() or keep < 0:
        return 0

    subdirs = sorted(p for p in directory.iterdir() if p.is_dir())
    to_remove = subdirs[:-keep] if keep else subdirs

    count = 0
    for path in to_remove:
        if safe_rmtree(path):
            count += 1
    return count


# ============================================================================
# DOCUMENTOS JSON
# ============================================================================

def read_json(path: Path, default: Any = None) -> Any:
    """
    Lee un documento JSON.

    Returns:
        El contenido, o `default` si el archivo no existe o es inválido
    """
    if not path.exists():
        return default
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError):
        return default


def write_json(path: Path, data: Any) -> None:
    """
    Escribe un documento JSON de forma atómica (archivo temporal + replace).

    Raises:
        OSError: Si no se puede escribir
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
    os.replace(tmp_path, path)


# ============================================================================
# DETECCIÓN DE ENTORNO
# ============================================================================

def is_frozen() -> bool:
    """
    Detecta si el launcher está compilado.

    Returns:
        True si está compilado, False si es código fuente
    """
    # PyInstaller
    if getattr(sys, 'frozen', False):
        return True

    # Nuitka
    import __main__
    if getattr(__main__, '__compiled__', False):
        return True

    return False


def get_python_executable() -> Optional[str]:
    """
    Intérprete usado para ejecutar las herramientas.

    Returns:
        BEPOZ_TOOLKIT_PYTHON si está definido, sys.executable desde el código
        fuente, o None si está compilado: el propio launcher ejecuta el script
        (el SDK y pyodbc van dentro del ejecutable).
    """
    override = os.getenv("BEPOZ_TOOLKIT_PYTHON")
    if override:
        return override

    if not is_frozen():
        return sys.executable

    return None


# ============================================================================
# VARIOS
# ============================================================================

def timestamp_slug(moment: Optional[datetime] = None) -> str:
    """Timestamp ordenable para nombres de directorio (ej: 20260118-093512-123456)."""
    moment = moment or datetime.now()
    return moment.strftime("%Y%m%d-%H%M%S-%f")


TRUE_VALUES = ("1", "true", "yes", "y", "si", "sí", "s", "on")
FALSE_VALUES = ("0", "false", "no", "n", "off", "")


def as_bool(value: Any) -> bool:
    """
    Convierte un valor leído de JSON a bool ("false", "0", "no" son False).

    Raises:
        ValueError: Si el valor no se reconoce como booleano
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_VALUES:
            return True
        if text in FALSE_VALUES:
            return False
    raise ValueError(f"Valor booleano inválido: {value!r}")
