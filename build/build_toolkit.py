#!/usr/bin/env python
"""
Script de compilación del Bepoz Onboarding Toolkit.

Compila el launcher con Nuitka como un único ejecutable. Las herramientas
no se incluyen: se descargan del manifiesto la primera vez que se usan.

Uso:
    python build/build_toolkit.py            # Compilar
    python build/build_toolkit.py --clean    # Limpiar y compilar
    python build/build_toolkit.py --dry-run  # Solo mostrar el comando

Requisitos:
    - Python 3.10+
    - pip install .[build]
    - Visual Studio Build Tools (Windows)
"""

import argparse
import re
import shutil
import subprocess
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional


PROJECT_ROOT = Path(__file__).resolve().parent.parent

ENTRY_SCRIPT = PROJECT_ROOT / "bepoz_toolkit" / "main.py"
VERSION_FILE = PROJECT_ROOT / "bepoz_toolkit" / "resources" / "version.py"
OUTPUT_DIR = PROJECT_ROOT / "dist"
OUTPUT_NAME = "BepozToolkit"
APP_ICON = PROJECT_ROOT / "assets" / "icon.ico"

# Módulos de la biblioteca estándar que los scripts de herramientas suelen
# importar y que el launcher no usa (el ejecutable compilado corre las herramientas)
TOOL_STDLIB_MODULES = ["csv", "decimal", "uuid"]

# Campos de version.py que se copian a los metadatos del ejecutable
VERSION_FIELDS = {
    "version": r'__version__\s*=\s*"([^"]+)"',
    "app_name": r'APP_NAME\s*=\s*"([^"]+)"',
    "app_full_name": r'APP_FULL_NAME\s*=\s*"([^"]+)"',
    "app_description": r'APP_DESCRIPTION\s*=\s*"([^"]+)"',
    "app_author": r'APP_AUTHOR\s*=\s*"([^"]*)"',
    "copyright_year_start": r"APP_COPYRIGHT_YEAR_START\s*=\s*(\d+)",
}


def read_version_info(version_file: Path = VERSION_FILE) -> Dict[str, object]:
    """
    Lee versión y metadatos desde version.py sin importar el paquete.

    Raises:
        RuntimeError: Si no se encuentra __version__
    """
    content = version_file.read_text(encoding="utf-8")

    info: Dict[str, object] = {}
    for key, pattern in VERSION_FIELDS.items():
        match = re.search(pattern, content)
        if match:
            info[key] = match.group(1)

    if "version" not in info:
        raise RuntimeError(f"No se pudo leer __version__ de {version_file}")

    info["copyright_year_start"] = int(info.get("copyright_year_start") or datetime.now().year)
    info.setdefault("app_name", "BepozToolkit")
    info.setdefault("app_full_name", info["app_name"])
    info.setdefault("app_description", "")
    info.setdefault("app_author", "")
    return info


def copyright_text(info: Dict[str, object], year: Optional[int] = None) -> str:
    start = info["copyright_year_start"]
    year = year or datetime.now().year
    text = f"Copyright {start}" if year == start else f"Copyright {start}-{year}"
    if info.get("app_author"):
        text += f" {info['app_author']}"
    return text


def build_nuitka_command(
    info: Dict[str, object],
    platform: str = sys.platform,
    python_executable: str = sys.executable,
) -> List[str]:
    """
    Construye el comando de Nuitka para la plataforma indicada.
    """
    is_windows = platform == "win32"

    cmd = [
        python_executable, "-m", "nuitka",
        "--standalone",
        "--onefile",
        "--enable-plugin=tk-inter",
        "--include-package=bepoz_toolkit",
        "--include-package=customtkinter",
        # pyodbc se importa solo cuando una herramienta abre la conexión
        "--include-module=pyodbc",
        *[f"--include-module={name}" for name in TOOL_STDLIB_MODULES],
        "--lto=yes",
        "--assume-yes-for-downloads",
    ]

    if is_windows:
        cmd += [
            f"--company-name={info['app_author'] or info['app_name']}",
            f"--product-name={info['app_full_name']}",
            f"--file-version={info['version']}",
            f"--product-version={info['version']}",
            f"--copyright={copyright_text(info)}",
            # El menú de consola es el modo por defecto
            "--windows-console-mode=force",
        ]
        if info.get("app_description"):
            cmd.append(f"--file-description={info['app_description']}")
        if APP_ICON.exists():
            cmd.append(f"--windows-icon-from-ico={APP_ICON}")

    extension = ".exe" if is_windows else ""
    cmd.append(f"--output-dir={OUTPUT_DIR}")
    cmd.append(f"--output-filename={OUTPUT_NAME}{extension}")
    cmd.append(str(ENTRY_SCRIPT))
    return cmd


def print_header(text: str) -> None:
    print("\n" + "=" * 60)
    print(f" {text}")
    print("=" * 60)


def run_command(cmd: List[str], cwd: Optional[Path] = None) -> bool:
    """
    Ejecuta un comando mostrando la salida en tiempo real.

    Returns:
        True si el comando terminó con código 0
    """
    print(f"Ejecutando: {' '.join(cmd)}")
    print("-" * 40)

    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            cwd=cwd,
            text=True,
            bufsize=1,
        )
    except FileNotFoundError:
        print(f"ERROR: Comando no encontrado: {cmd[0]}")
        return False

    for line in iter(process.stdout.readline, ""):
        print(line, end="")

    process.wait()
    return process.returncode == 0


def clean_build_artifacts() -> None:
    print("\n>>> Limpiando compilaciones anteriores...")
    for suffix in (".dist", ".build", ".onefile-build"):
        path = OUTPUT_DIR / f"{OUTPUT_NAME}{suffix}"
        if path.exists():
            print(f"  Eliminando: {path}")
            shutil.rmtree(path)

    for name in (OUTPUT_NAME, f"{OUTPUT_NAME}.exe"):
        path = OUTPUT_DIR / name
        if path.is_file():
            print(f"  Eliminando: {path}")
            path.unlink()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Compila el Bepoz Onboarding Toolkit con Nuitka")
    parser.add_argument("--clean", action="store_true", help="Limpiar artefactos antes de compilar")
    parser.add_argument("--dry-run", action="store_true", help="Mostrar el comando sin compilar")
    args = parser.parse_args(argv)

    info = read_version_info()
    cmd = build_nuitka_command(info)

    print_header(f"BUILD {info['app_name']} v{info['version']}")
    print(f"Python: {sys.version}")
    print(f"Plataforma: {sys.platform}")

    if args.dry_run:
        print(" ".join(cmd))
        return 0

    if args.clean:
        clean_build_artifacts()

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    start_time = time.time()
    success = run_command(cmd, cwd=PROJECT_ROOT)
    elapsed = int(time.time() - start_time)

    if success:
        print_header("¡COMPILACIÓN EXITOSA!")
        print(f"Tiempo: {elapsed // 60}m {elapsed % 60}s")
        print(f"Salida: {OUTPUT_DIR}")
    else:
        print_header("ERROR EN COMPILACIÓN")
        print("Revisa los mensajes de error arriba.")

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
