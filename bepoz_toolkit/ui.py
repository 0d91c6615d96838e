"""
Interfaz gráfica del Launcher.

Ventana para elegir y ejecutar herramientas usando CustomTkinter con:
- Lista de herramientas del manifiesto con su versión instalada
- Barra de progreso para la descarga
- Salida de la herramienta en vivo
- Configuración de la conexión SQL compartida
"""

import customtkinter as ctk
from pathlib import Path
from typing import Optional
import threading

from bepoz_toolkit.context import load_context, save_context
from bepoz_toolkit.installer import ToolInstaller, InstallError
from bepoz_toolkit.manifest import Manifest, ToolInfo
from bepoz_toolkit.resources.config import (
    WINDOW_WIDTH,
    WINDOW_HEIGHT,
    WINDOW_TITLE,
    THEME_PRIMARY,
    THEME_SUCCESS,
    THEME_ERROR,
    THEME_WARNING,
)
from bepoz_toolkit.resources.version import get_version, get_copyright_text
from bepoz_toolkit.runner import ToolRunner, RunResult, RunError


class LauncherUI(ctk.CTk):
    """
    Ventana principal del launcher.

    Permite al usuario:
    - Ejecutar una herramienta (se descarga si hace falta)
    - Configurar servidor y base de datos
    - Refrescar la lista de herramientas
    """

    def __init__(
        self,
        installer: ToolInstaller,
        runner: ToolRunner,
        context_path: Optional[Path] = None,
    ):
        """
        Inicializa la ventana del launcher.

        Args:
            installer: Instancia del ToolInstaller
            runner: Instancia del ToolRunner
            context_path: Ruta de ToolkitContext.json (por defecto la configurada)
        """
        super().__init__()

        self.installer = installer
        self.runner = runner
        self.context_path = context_path
        self.manifest: Optional[Manifest] = None

        self._is_running = False
        self.tool_buttons = []

        self._setup_window()
        self._create_widgets()

        # Cargar el manifiesto después de mostrar la ventana
        self.after(300, self._start_loading_manifest)

    def _setup_window(self) -> None:
        """Configura la ventana principal."""
        self.title(f"{WINDOW_TITLE} v{get_version()}")
        self.geometry(f"{WINDOW_WIDTH}x{WINDOW_HEIGHT}")
        self.minsize(WINDOW_WIDTH, WINDOW_HEIGHT)

        # Centrar ventana
        self.update_idletasks()
        x = (self.winfo_screenwidth() - WINDOW_WIDTH) // 2
        y = (self.winfo_screenheight() - WINDOW_HEIGHT) // 2
        self.geometry(f"+{x}+{y}")

        ctk.set_appearance_mode("dark")
        ctk.set_default_color_theme("blue")

        self.protocol("WM_DELETE_WINDOW", self._on_close)

    def _create_widgets(self) -> None:
        """Crea todos los widgets de la interfaz."""
        self.main_frame = ctk.CTkFrame(self, fg_color="transparent")
        self.main_frame.pack(fill="both", expand=True, padx=20, pady=20)

        self._create_header()

        self.body_frame = ctk.CTkFrame(self.main_frame, fg_color="transparent")
        self.body_frame.pack(fill="both", expand=True)
        self.body_frame.grid_columnconfigure(0, weight=1)
        self.body_frame.grid_columnconfigure(1, weight=2)
        self.body_frame.grid_rowconfigure(0, weight=1)

        self._create_tool_list()
        self._create_output()
        self._create_progress_section()
        self._create_buttons()

    def _create_header(self) -> None:
        header_frame = ctk.CTkFrame(self.main_frame, fg_color="transparent")
        header_frame.pack(fill="x", pady=(0, 15))

        self.title_label = ctk.CTkLabel(
            header_frame,
            text="🧰 Bepoz Onboarding Toolkit",
            font=ctk.CTkFont(size=22, weight="bold"),
        )
        self.title_label.pack()

        self.subtitle_label = ctk.CTkLabel(
            header_frame,
            text="",
            font=ctk.CTkFont(size=13),
            text_color="gray",
        )
        self.subtitle_label.pack(pady=(5, 0))
        self._update_connection_label()

    def _update_connection_label(self) -> None:
        context = load_context(self.context_path)
        if context.is_configured():
            text = f"Conexión: {context.sql_server} / {context.sql_database}"
            color = "gray"
        else:
            text = "Conexión SQL sin configurar"
            color = THEME_WARNING
        self.subtitle_label.configure(text=text, text_color=color)

    def _create_tool_list(self) -> None:
        self.tools_frame = ctk.CTkScrollableFrame(
            self.body_frame,
            label_text="Herramientas",
        )
        self.tools_frame.grid(row=0, column=0, sticky="nsew", padx=(0, 10))

    def _create_output(self) -> None:
        output_frame = ctk.CTkFrame(self.body_frame, fg_color="transparent")
        output_frame.grid(row=0, column=1, sticky="nsew")

        ctk.CTkLabel(
            output_frame,
            text="📋 Salida:",
            font=ctk.CTkFont(size=13, weight="bold"),
            anchor="w",
        ).pack(fill="x")

        self.output_text = ctk.CTkTextbox(
            output_frame,
            font=ctk.CTkFont(family="Consolas", size=12),
            wrap="word",
        )
        self.output_text.pack(fill="both", expand=True, pady=(8, 0))
        self.output_text.configure(state="disabled")

    def _create_progress_section(self) -> None:
        self.progress_frame = ctk.CTkFrame(self.main_frame, fg_color="transparent")
        self.progress_frame.pack(fill="x", pady=(15, 0))

        self.status_label = ctk.CTkLabel(
            self.progress_frame,
            text="Buscando herramientas...",
            font=ctk.CTkFont(size=12),
            anchor="w",
        )
        self.status_label.pack(fill="x")

        self.progress_bar = ctk.CTkProgressBar(self.progress_frame, mode="determinate")
        self.progress_bar.pack(fill="x", pady=(8, 0))
        self.progress_bar.set(0)

    def _create_buttons(self) -> None:
        self.button_frame = ctk.CTkFrame(self.main_frame, fg_color="transparent")
        self.button_frame.pack(fill="x", pady=(15, 0))

        self.configure_button = ctk.CTkButton(
            self.button_frame,
            text="Configurar conexión",
            fg_color="transparent",
            border_width=1,
            text_color=("gray10", "gray90"),
            command=self._on_configure_clicked,
            width=160,
            corner_radius=8,
        )
        self.configure_button.pack(side="left", padx=(0, 10))

        self.refresh_button = ctk.CTkButton(
            self.button_frame,
            text="Actualizar lista",
            fg_color="transparent",
            border_width=1,
            text_color=("gray10", "gray90"),
            command=self._start_loading_manifest,
            width=140,
            corner_radius=8,
        )
        self.refresh_button.pack(side="left", padx=(0, 10))

        self.auto_confirm_var = ctk.BooleanVar(value=False)
        self.auto_confirm_check = ctk.CTkCheckBox(
            self.button_frame,
            text="Confirmar cambios automáticamente",
            variable=self.auto_confirm_var,
        )
        self.auto_confirm_check.pack(side="left")

        ctk.CTkLabel(
            self.button_frame,
            text=get_copyright_text(),
            font=ctk.CTkFont(size=10),
            text_color="gray",
        ).pack(side="right")

    # ------------------------------------------------------------------
    # Manifiesto
    # ------------------------------------------------------------------

    def _start_loading_manifest(self) -> None:
        if self._is_running:
            return
        self._set_busy(True)
        self._set_status("Buscando herramientas...")
        self.progress_bar.configure(mode="indeterminate")
        self.progress_bar.start()
        threading.Thread(target=self._load_manifest, daemon=True).start()

    def _load_manifest(self) -> None:
        """Descarga el manifiesto (ejecuta en hilo separado)."""
        try:
            manifest = self.installer.fetch_manifest()
            rows = self.installer.status_rows(manifest)
            self.after(0, lambda: self._on_manifest_loaded(manifest, rows))
        except InstallError as e:
            error_msg = str(e)
            self.after(0, lambda msg=error_msg: self._on_error(msg))

    def _on_manifest_loaded(self, manifest: Manifest, rows: list) -> None:
        self.manifest = manifest
        self.progress_bar.stop()
        self.progress_bar.configure(mode="determinate")
        self.progress_bar.set(0)
        self._set_busy(False)

        for button in self.tool_buttons:
            button.destroy()
        self.tool_buttons = []

        for row in rows:
            tool = manifest.get(row["id"])
            installed = row["installed"] or "no instalada"
            button = ctk.CTkButton(
                self.tools_frame,
                text=f"{row['name']}\nv{row['available']} (instalada: {installed})",
                anchor="w",
                fg_color=THEME_PRIMARY,
                command=lambda t=tool: self._on_tool_clicked(t),
                corner_radius=8,
            )
            button.pack(fill="x", pady=(0, 8))
            self.tool_buttons.append(button)

        if self.installer.used_cached_manifest:
            self._set_status("⚠ Sin conexión: se muestra la última lista guardada", THEME_WARNING)
        else:
            self._set_status(f"{len(rows)} herramienta(s) disponibles")

    # ------------------------------------------------------------------
    # Ejecución
    # ------------------------------------------------------------------

    def _on_tool_clicked(self, tool: ToolInfo) -> None:
        if self._is_running:
            return

        context = load_context(self.context_path)
        if tool.requires_db and not context.is_configured():
            self._set_status("Configura la conexión SQL antes de ejecutar esta herramienta", THEME_WARNING)
            return

        self._set_busy(True)
        self._clear_output()
        self._set_status(f"Preparando {tool.display_name}...")
        self.installer.set_progress_callback(self._update_progress)

        # Las variables de tkinter se leen en el hilo principal
        assume_yes = bool(self.auto_confirm_var.get())
        thread = threading.Thread(
            target=self._install_and_run,
            args=(tool, context, assume_yes),
            daemon=True,
        )
        thread.start()

    def _install_and_run(self, tool: ToolInfo, context, assume_yes: bool) -> None:
        """Instala y ejecuta la herramienta (ejecuta en hilo separado)."""
        try:
            entry_path = self.installer.ensure_installed(tool)
            self.installer.cleanup()

            self.after(0, lambda: self._set_status(f"Ejecutando {tool.display_name}..."))
            self.after(0, lambda: self.progress_bar.configure(mode="indeterminate"))
            self.after(0, lambda: self.progress_bar.start())

            result = self.runner.run(
                tool,
                entry_path,
                context,
                on_output=lambda text: self.after(0, lambda t=text: self._append_output(t)),
                assume_yes=assume_yes,
                interactive=False,
            )
            self.after(0, lambda: self._on_run_finished(result))

        except (InstallError, RunError) as e:
            error_msg = str(e)
            self.after(0, lambda msg=error_msg: self._on_error(msg))
        except Exception as e:
            error_msg = f"Error inesperado: {e}"
            self.after(0, lambda msg=error_msg: self._on_error(msg))

    def _update_progress(self, downloaded: int, total: int) -> None:
        if total > 0:
            progress = downloaded / total
            self.after(0, lambda: self.progress_bar.set(progress))

    def _on_run_finished(self, result: RunResult) -> None:
        self.progress_bar.stop()
        self.progress_bar.configure(mode="determinate")
        self.progress_bar.set(1 if result.succeeded else 0)
        self.installer.set_progress_callback(None)

        self._append_output("\n" + "-" * 40 + "\n" + result.summary() + "\n")
        if result.succeeded and result.status in ("ok", "cancelled"):
            self._set_status(f"✅ {result.tool_id}: {result.status}", THEME_SUCCESS)
        elif result.succeeded:
            self._set_status(f"⚠ {result.tool_id}: {result.status}", THEME_WARNING)
        else:
            self._set_status(f"❌ {result.tool_id}: {result.status}", THEME_ERROR)

        self._set_busy(False)
        # Refrescar versiones instaladas
        self._start_loading_manifest()

    def _on_error(self, error_message: str) -> None:
        self.progress_bar.stop()
        self.progress_bar.configure(mode="determinate")
        self.progress_bar.set(0)
        self.installer.set_progress_callback(None)
        self._set_status(f"❌ Error: {error_message}", THEME_ERROR)
        self._set_busy(False)

    # ------------------------------------------------------------------
    # Configuración
    # ------------------------------------------------------------------

    def _on_configure_clicked(self) -> None:
        if self._is_running:
            return

        context = load_context(self.context_path)

        server = ctk.CTkInputDialog(
            text=f"Servidor SQL (actual: {context.sql_server or '-'})",
            title="Conexión SQL",
        ).get_input()
        if server is None:
            return

        database = ctk.CTkInputDialog(
            text=f"Base de datos (actual: {context.sql_database or '-'})",
            title="Conexión SQL",
        ).get_input()
        if database is None:
            return

        context.sql_server = server.strip() or context.sql_server
        context.sql_database = database.strip() or context.sql_database
        save_context(context, self.context_path)
        self._update_connection_label()
        self._set_status("Configuración guardada", THEME_SUCCESS)

    # ------------------------------------------------------------------
    # Helpers de UI (hilo principal)
    # ------------------------------------------------------------------

    def _set_status(self, text: str, color: Optional[str] = None) -> None:
        self.status_label.configure(text=text, text_color=color or ("gray10", "gray90"))

    def _set_busy(self, busy: bool) -> None:
        self._is_running = busy
        state = "disabled" if busy else "normal"
        for button in self.tool_buttons:
            button.configure(state=state)
        self.configure_button.configure(state=state)
        self.refresh_button.configure(state=state)

    def _clear_output(self) -> None:
        self.output_text.configure(state="normal")
        self.output_text.delete("1.0", "end")
        self.output_text.configure(state="disabled")

    def _append_output(self, text: str) -> None:
        self.output_text.configure(state="normal")
        self.output_text.insert("end", text.replace("\r\n", "\n"))
        self.output_text.see("end")
        self.output_text.configure(state="disabled")

    def _on_close(self) -> None:
        """Maneja cierre de ventana."""
        if self._is_running:
            # No permitir cerrar durante una ejecución
            return

        self.destroy()
