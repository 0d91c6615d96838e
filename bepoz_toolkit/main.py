"""
Punto de entrada del Bepoz Onboarding Toolkit.

Uso:
    bepoz-toolkit                      # menú de consola
    bepoz-toolkit gui                  # ventana de escritorio
    bepoz-toolkit list
    bepoz-toolkit install table-audit --force
    bepoz-toolkit run --yes table-audit -- Venue Till
    bepoz-toolkit restore table-audit
    bepoz-toolkit configure --server PC\\SQLEXPRESS --database BepozData
    bepoz-toolkit runs --limit 5

    python -m bepoz_toolkit ...

    BepozToolkit.exe --run-tool <script.py> [args]   # uso interno del launcher compilado
"""

import argparse
import runpy
import sys
from pathlib import Path
from typing import List, Optional

from bepoz_toolkit.backup_manager import BackupError
from bepoz_toolkit.context import ContextError, load_context, save_context
from bepoz_toolkit.installer import InstallError, ToolInstaller
from bepoz_toolkit.manifest import Manifest, ToolInfo
from bepoz_toolkit.resources.config import RUN_TOOL_FLAG
from bepoz_toolkit.resources.logging_method import log_function, method_logger
from bepoz_toolkit.resources.version import get_version
from bepoz_toolkit.runner import RunError, ToolRunner


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bepoz-toolkit",
        description="Launcher de herramientas de mantenimiento para Bepoz",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")
    parser.add_argument("--manifest-url", help="URL o ruta local del manifiesto de herramientas")
    parser.add_argument("--offline", action="store_true", help="Usar solo el manifiesto y las herramientas locales")
    parser.add_argument("--trace", action="store_true", help="Trazar las llamadas internas en stderr")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("menu", help="Menú de consola (por defecto)")
    subparsers.add_parser("gui", help="Ventana de escritorio")
    subparsers.add_parser("list", help="Listar herramientas")

    install = subparsers.add_parser("install", help="Instalar o actualizar una herramienta")
    install.add_argument("tool", help="Id o número de la herramienta")
    install.add_argument("--force", action="store_true", help="Descargar aunque esté actualizada")

    run = subparsers.add_parser("run", help="Ejecutar una herramienta")
    run.add_argument("tool", help="Id o número de la herramienta")
    run.add_argument("--yes", action="store_true", help="Confirmar automáticamente los cambios")
    run.add_argument("--no-input", action="store_true", help="Ejecutar sin consola (las confirmaciones se responden 'no')")
    run.add_argument("--timeout", type=float, default=None, help="Segundos máximos de ejecución")
    # Las opciones de "run" van antes del id: todo lo que sigue al id es de la herramienta
    run.add_argument("tool_args", nargs=argparse.REMAINDER, help="Argumentos para la herramienta (después de --)")

    restore = subparsers.add_parser("restore", help="Restaurar la versión anterior de una herramienta")
    restore.add_argument("tool", help="Id de la herramienta")

    unpin = subparsers.add_parser("unpin", help="Permitir de nuevo la actualización automática")
    unpin.add_argument("tool", help="Id de la herramienta")

    configure = subparsers.add_parser("configure", help="Configurar la conexión SQL compartida")
    configure.add_argument("--server", help="Servidor SQL (ej: PC\\SQLEXPRESS)")
    configure.add_argument("--database", help="Base de datos")
    configure.add_argument("--driver", help="Driver ODBC")
    configure.add_argument("--venue", help="Nombre del local")
    configure.add_argument("--show", action="store_true", help="Solo mostrar la configuración actual")

    runs = subparsers.add_parser("runs", help="Historial de ejecuciones")
    runs.add_argument("--limit", type=int, default=10)
    runs.add_argument("--tool", default=None, help="Filtrar por herramienta")

    return parser


def build_services(args: argparse.Namespace):
    installer = ToolInstaller(manifest_url=args.manifest_url, offline=args.offline)
    runner = ToolRunner()
    return installer, runner


def _fetch_manifest(installer: ToolInstaller) -> Manifest:
    manifest = installer.fetch_manifest()
    if installer.used_cached_manifest:
        print("AVISO: No se pudo descargar el manifiesto, se usa la última copia guardada.", file=sys.stderr)
    return manifest


def _resolve_tool(manifest: Manifest, query: str) -> ToolInfo:
    tool = manifest.find(query)
    if tool is None:
        raise InstallError(f"No existe la herramienta '{query}' en el manifiesto")
    return tool


@log_function
def cmd_list(installer: ToolInstaller) -> int:
    manifest = _fetch_manifest(installer)
    rows = installer.status_rows(manifest)
    if not rows:
        print("No hay herramientas en el manifiesto.")
        return EXIT_OK

    for row in rows:
        installed = row["installed"] or "-"
        status = "fijada" if row["pinned"] else ("pendiente" if row["needs_install"] else "al día")
        print(f"{row['index']:>3}  {row['id']:<28} {row['available']:<10} {installed:<10} {status:<10} {row['name']}")
    return EXIT_OK


@log_function
def cmd_install(installer: ToolInstaller, query: str, force: bool = False) -> int:
    manifest = _fetch_manifest(installer)
    tool = _resolve_tool(manifest, query)
    try:
        entry_path = installer.install(tool, force=force)
    finally:
        installer.cleanup()
    print(f"{tool.display_name} v{installer.installed_version(tool.id)} instalada en {entry_path.parent}")
    return EXIT_OK


@log_function
def cmd_run(
    installer: ToolInstaller,
    runner: ToolRunner,
    query: str,
    tool_args: List[str],
    assume_yes: bool = False,
    interactive: bool = True,
    timeout: Optional[float] = None,
) -> int:
    manifest = _fetch_manifest(installer)
    tool = _resolve_tool(manifest, query)

    context = load_context()
    if tool.requires_db:
        context.validate()

    try:
        entry_path = installer.ensure_installed(tool)
    finally:
        installer.cleanup()

    if tool_args and tool_args[0] == "--":
        tool_args = tool_args[1:]

    result = runner.run(
        tool,
        entry_path,
        context,
        args=tool_args,
        assume_yes=assume_yes,
        interactive=interactive,
        timeout=timeout,
    )
    print()
    print(result.summary())

    if result.exit_code is None:
        return EXIT_ERROR
    if result.timed_out:
        return EXIT_ERROR
    return result.exit_code


def cmd_restore(installer: ToolInstaller, tool_id: str) -> int:
    version = installer.restore_previous(tool_id)
    print(f"'{tool_id}' restaurada a la versión {version}. No se actualizará hasta ejecutar 'unpin'.")
    return EXIT_OK


def cmd_unpin(installer: ToolInstaller, tool_id: str) -> int:
    if not installer.unpin(tool_id):
        raise InstallError(f"'{tool_id}' no está instalada")
    print(f"'{tool_id}' se actualizará automáticamente.")
    return EXIT_OK


def cmd_configure(args: argparse.Namespace) -> int:
    context = load_context()
    if not args.show:
        if args.server is not None:
            context.sql_server = args.server
        if args.database is not None:
            context.sql_database = args.database
        if args.driver is not None:
            context.odbc_driver = args.driver
        if args.venue is not None:
            context.venue_name = args.venue
        path = save_context(context)
        print(f"Configuración guardada en {path}")

    print(f"Servidor:      {context.sql_server or '(sin configurar)'}")
    print(f"Base de datos: {context.sql_database or '(sin configurar)'}")
    print(f"Driver ODBC:   {context.odbc_driver}")
    print(f"Local:         {context.venue_name or '-'}")
    print(f"Operador:      {context.operator or '-'}")
    return EXIT_OK


def cmd_runs(runner: ToolRunner, limit: int, tool_id: Optional[str]) -> int:
    runs = runner.list_runs(limit=limit, tool_id=tool_id)
    if not runs:
        print("No hay ejecuciones registradas.")
    for run in runs:
        print(
            f"{run.get('started_at', '?')}  {run.get('tool_id', '?'):<24} "
            f"v{run.get('tool_version', '?'):<8} {run.get('status', '?'):<10} {run.get('run_dir', '')}"
        )
    return EXIT_OK


def run_gui(installer: ToolInstaller, runner: ToolRunner) -> int:
    # customtkinter solo se importa si se pide la ventana
    from bepoz_toolkit.ui import LauncherUI

    launcher_ui = LauncherUI(installer=installer, runner=runner)
    launcher_ui.mainloop()
    return EXIT_OK


@log_function
def run_command(args: argparse.Namespace) -> int:
    installer, runner = build_services(args)
    command = args.command or "menu"

    if command == "menu":
        from bepoz_toolkit.console import ConsoleUI

        ConsoleUI(installer, runner).mainloop()
        return EXIT_OK
    if command == "gui":
        return run_gui(installer, runner)
    if command == "list":
        return cmd_list(installer)
    if command == "install":
        return cmd_install(installer, args.tool, force=args.force)
    if command == "run":
        return cmd_run(
            installer,
            runner,
            args.tool,
            list(args.tool_args or []),
            assume_yes=args.yes,
            interactive=not args.no_input,
            timeout=args.timeout,
        )
    if command == "restore":
        return cmd_restore(installer, args.tool)
    if command == "unpin":
        return cmd_unpin(installer, args.tool)
    if command == "configure":
        return cmd_configure(args)
    if command == "runs":
        return cmd_runs(runner, args.limit, args.tool)

    raise ValueError(f"Comando desconocido: {command}")


def run_tool_script(entry: str, tool_args: List[str]) -> int:
    """
    Ejecuta el script de una herramienta dentro de este proceso.

    Lo usa el launcher compilado como intérprete hijo: el script importa
    bepoz_toolkit.sdk y pyodbc desde el propio ejecutable.
    """
    entry_path = Path(entry).resolve()
    if not entry_path.is_file():
        print(f"ERROR: No se encontró el script {entry_path}", file=sys.stderr)
        return EXIT_ERROR

    sys.argv = [str(entry_path), *tool_args]
    sys.path.insert(0, str(entry_path.parent))
    try:
        runpy.run_path(str(entry_path), run_name="__main__")
    except SystemExit as e:
        if e.code is None:
            return EXIT_OK
        if isinstance(e.code, int):
            return e.code
        print(e.code, file=sys.stderr)
        return EXIT_ERROR
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """
    Punto de entrada principal.

    Maneja excepciones a nivel global para evitar crashes silenciosos.
    """
    if argv is None:
        argv = sys.argv[1:]
    if argv and argv[0] == RUN_TOOL_FLAG:
        if len(argv) < 2:
            print(f"ERROR: {RUN_TOOL_FLAG} requiere la ruta del script", file=sys.stderr)
            return EXIT_ERROR
        return run_tool_script(argv[1], list(argv[2:]))

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.trace:
        method_logger.enable()

    try:
        return run_command(args)
    except KeyboardInterrupt:
        print("\nToolkit cancelado por el usuario")
        return EXIT_INTERRUPTED
    except (InstallError, RunError, BackupError, ContextError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
