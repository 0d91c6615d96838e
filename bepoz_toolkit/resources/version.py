"""
Sistema de versionado del Toolkit.

Este módulo centraliza la información de versión y metadata
del launcher, y las funciones para comparar versiones. Es usado por:
- El instalador para decidir si una herramienta debe re-descargarse
- La UI para mostrar "Acerca de"
- El script de compilación

Versionado Semántico (SemVer):
    MAJOR.MINOR.PATCH
"""

from datetime import datetime
from typing import Tuple, Optional, Dict, Any


# ============================================================================
# INFORMACIÓN DE LA APLICACIÓN
# ============================================================================

__version__ = "1.4.0"

APP_NAME = "BepozToolkit"
APP_FULL_NAME = "Bepoz Onboarding Toolkit"
APP_DESCRIPTION = "Launcher de herramientas de mantenimiento para Bepoz"
APP_AUTHOR = ""

# Año de inicio del proyecto (para copyright)
APP_COPYRIGHT_YEAR_START = 2026


# ============================================================================
# FUNCIONES DE VERSIÓN
# ============================================================================

def get_version() -> str:
    return __version__


def parse_version(version_str: str) -> Tuple[int, int, int]:
    """
    Convierte string de versión a tupla comparable.

    Acepta formatos:
        - "1.2.3"
        - "v1.2.3" (con prefijo v)
        - "1.2" o "1" (se completa con ceros)

    Raises:
        ValueError: Si el formato es inválido
    """
    if version_str is None:
        raise ValueError("Versión vacía")

    clean = str(version_str).strip().lstrip('vV')
    if not clean:
        raise ValueError("Versión vacía")

    parts = clean.split('.')
    if len(parts) > 3:
        raise ValueError(f"Formato de versión inválido: {version_str}")

    parts.extend(['0'] * (3 - len(parts)))
    try:
        return tuple(int(p) for p in parts)
    except ValueError:
        raise ValueError(f"Formato de versión inválido: {version_str}")


def compare_versions(v1: str, v2: str) -> int:
    """
    Compara dos versiones.

    Returns:
        -1 si v1 < v2
         0 si v1 == v2
         1 si v1 > v2

    Example:
        >>> compare_versions("1.0.0", "1.1.0")
        -1
        >>> compare_versions("v2.0", "1.9.9")
        1
    """
    t1 = parse_version(v1)
    t2 = parse_version(v2)
    return (t1 > t2) - (t1 < t2)


def is_newer_version(candidate: str, current: Optional[str]) -> bool:
    """
    Verifica si candidate es más nueva que current.

    Si no hay versión actual (None), cualquier versión es más nueva.
    Si alguna de las versiones no se puede interpretar, retorna False.
    """
    if current is None:
        return True

    try:
        return compare_versions(candidate, current) > 0
    except ValueError:
        return False


# ============================================================================
# INFORMACIÓN DE LA APLICACIÓN
# ============================================================================

def get_app_info() -> Dict[str, Any]:
    """
    Retorna información completa de la aplicación.

    Útil para la ventana "Acerca de" y para el script de compilación.
    """
    current_year = datetime.now().year

    if current_year == APP_COPYRIGHT_YEAR_START:
        copyright_years = str(APP_COPYRIGHT_YEAR_START)
    else:
        copyright_years = f"{APP_COPYRIGHT_YEAR_START}-{current_year}"

    return {
        "version": __version__,
        "name": APP_NAME,
        "full_name": APP_FULL_NAME,
        "description": APP_DESCRIPTION,
        "author": APP_AUTHOR,
        "copyright": f"Copyright {copyright_years} {APP_AUTHOR}" if APP_AUTHOR else f"Copyright {copyright_years}",
    }


def get_copyright_text() -> str:
    return get_app_info()["copyright"]
