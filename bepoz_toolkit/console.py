"""
Menú de consola del launcher.

Permite:
- Ver las herramientas del manifiesto con su versión instalada
- Ejecutar una herramienta (se instala o actualiza si hace falta)
- Configurar la conexión SQL compartida
- Actualizar el manifiesto y ver el historial de ejecuciones
"""

from pathlib import Path
from typing import Callable, Optional

from bepoz_toolkit.backup_manager import BackupError
from bepoz_toolkit.context import ContextError, ToolkitContext, load_context, save_context
from bepoz_toolkit.installer import InstallError, ToolInstaller
from bepoz_toolkit.manifest import Manifest, ToolInfo
from bepoz_toolkit.resources.logging_method import log_simple_class_methods
from bepoz_toolkit.resources.version import get_version
from bepoz_toolkit.runner import RunError, ToolRunner


SEPARATOR = "=" * 60


@log_simple_class_methods
class ConsoleUI:
    """
    Menú interactivo en consola.
    """

    def __init__(
        self,
        installer: ToolInstaller,
        runner: ToolRunner,
        context_path: Optional[Path] = None,
        input_func: Callable[[str], str] = input,
        assume_yes: bool = False,
    ):
        self.installer = installer
        self.runner = runner
        self.context_path = context_path
        self.input = input_func
        self.assume_yes = assume_yes
        self.manifest: Optional[Manifest] = None

    # ------------------------------------------------------------------
    # Entrada del operador
    # ------------------------------------------------------------------

    def _ask(self, label: str, default: str = "") -> str:
        prompt = f"{label} [{default}]: " if default else f"{label}: "
        try:
            value = self.input(prompt).strip()
        except EOFError:
            print()
            return default
        return value or default

    def _confirm(self, question: str) -> bool:
        try:
            answer = self.input(f"{question} [s/N]: ").strip().lower()
        except EOFError:
            print()
            return False
        return answer in ("s", "si", "sí", "y", "yes")

    # ------------------------------------------------------------------
    # Pantallas
    # ------------------------------------------------------------------

    def refresh_manifest(self) -> Optional[Manifest]:
        try:
            self.manifest = self.installer.fetch_manifest()
        except InstallError as e:
            print(f"ERROR: {e}")
            return self.manifest

        if self.installer.used_cached_manifest:
            print("AVISO: No se pudo descargar el manifiesto, se usa la última copia guardada.")
        return self.manifest

    def show_menu(self) -> None:
        print()
        print(SEPARATOR)
        print(f" Bepoz Onboarding Toolkit v{get_version()}")
        print(SEPARATOR)

        context = load_context(self.context_path)
        if context.is_configured():
            print(f"Conexión: {context.sql_server} / {context.sql_database}")
        else:
            print("Conexión: (sin configurar)")
        print()

        rows = self.installer.status_rows(self.manifest)
        if not rows:
            print("No hay herramientas disponibles.")
        categories = self.manifest.categories() if self.manifest else []
        for category in categories:
            print(f"-- {category} --")
            for row in rows:
                if row["category"] == category:
                    self._print_row(row)

        print()
        print("  [número] Ejecutar herramienta")
        print("  [c] Configurar conexión SQL")
        print("  [a] Actualizar lista de herramientas")
        print("  [h] Historial de ejecuciones")
        print("  [q] Salir")

    def _print_row(self, row: dict) -> None:
        installed = row["installed"] or "no instalada"
        marks = []
        if row["pinned"]:
            marks.append("fijada")
        elif row["installed"] and row["needs_install"]:
            marks.append("actualización disponible")
        suffix = f" ({', '.join(marks)})" if marks else ""
        print(f"  {row['index']:>2}. {row['name']}  v{row['available']}  [instalada: {installed}]{suffix}")

    def configure_context(self) -> ToolkitContext:
        """Pide servidor y base de datos y guarda ToolkitContext.json."""
        context = load_context(self.context_path)
        print()
        print("Configuración de conexión (autenticación de Windows)")
        context.sql_server = self._ask("Servidor SQL (ej: PC-SERVIDOR\\SQLEXPRESS)", context.sql_server)
        context.sql_database = self._ask("Base de datos", context.sql_database)
        context.odbc_driver = self._ask("Driver ODBC", context.odbc_driver)
        context.venue_name = self._ask("Nombre del local (opcional)", context.venue_name)

        try:
            context.validate()
        except ContextError as e:
            print(f"AVISO: {e}")

        path = save_context(context, self.context_path)
        print(f"Configuración guardada en {path}")
        return context

    def show_history(self, limit: int = 10) -> None:
        runs = self.runner.list_runs(limit=limit)
        print()
        if not runs:
            print("No hay ejecuciones registradas.")
            return
        for run in runs:
            print(
                f"  {run.get('started_at', '?')}  {run.get('tool_id', '?')} "
                f"v{run.get('tool_version', '?')}  {run.get('status', '?')}  "
                f"({run.get('duration', 0)}s)"
            )
            print(f"      {run.get('run_dir', '')}")

    def _print_progress(self, downloaded: int, total: int) -> None:
        if total > 0:
            print(f"\r  Descargando... {int(downloaded * 100 / total)}%", end="", flush=True)

    def run_tool(self, tool: ToolInfo) -> Optional[int]:
        """
        Instala (si hace falta) y ejecuta una herramienta.

        Returns:
            Código de salida de la herramienta, o None si no se ejecutó
        """
        print()
        print(SEPARATOR)
        print(f" {tool.display_name} (v{tool.version})")
        print(SEPARATOR)
        if tool.description:
            print(tool.description)

        context = load_context(self.context_path)
        if tool.requires_db and not context.is_configured():
            print("La herramienta necesita la conexión SQL configurada.")
            context = self.configure_context()
            if not context.is_configured():
                return None

        if not self._confirm(f"¿Ejecutar '{tool.display_name}'?"):
            return None

        self.installer.set_progress_callback(self._print_progress)
        try:
            needs_download = self.installer.needs_install(tool)
            entry_path = self.installer.ensure_installed(tool)
            if needs_download:
                print()
                print(f"Instalada la versión {tool.version}.")
        finally:
            self.installer.set_progress_callback(None)
            self.installer.cleanup()

        print("-" * 60)
        result = self.runner.run(tool, entry_path, context, assume_yes=self.assume_yes)
        print("-" * 60)
        print(result.summary())
        return result.exit_code

    def handle_choice(self, choice: str) -> bool:
        """
        Procesa una opción del menú.

        Returns:
            False si el operador eligió salir
        """
        choice = choice.strip().lower()
        if choice in ("q", "salir", "exit"):
            return False

        try:
            if choice == "c":
                self.configure_context()
            elif choice == "a":
                self.refresh_manifest()
            elif choice == "h":
                self.show_history()
            elif choice:
                tool = self.manifest.find(choice) if self.manifest else None
                if tool is None:
                    print(f"Opción inválida: {choice}")
                else:
                    self.run_tool(tool)
        except (InstallError, RunError, BackupError, ContextError) as e:
            print(f"ERROR: {e}")

        return True

    def mainloop(self) -> None:
        """Muestra el menú hasta que el operador salga."""
        self.refresh_manifest()
        while True:
            self.show_menu()
            try:
                choice = self.input("Opción: ")
            except EOFError:
                break
            if not self.handle_choice(choice):
                break
