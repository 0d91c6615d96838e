"""
Ejecución de herramientas.

Cada ejecución:
1. Crea un RunDir propio (carpeta de trabajo del proceso hijo)
2. Copia ahí el ToolkitContext.json
3. Inicia el script de la herramienta con un intérprete hijo
4. Muestra la salida a medida que llega y la guarda en output.log
5. Lee el Report.json que dejó la herramienta y guarda run.json

Se ejecuta una herramienta a la vez.
"""

import codecs
import os
import queue
import subprocess
import sys
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import bepoz_toolkit
from bepoz_toolkit.context import ToolkitContext, child_environment, save_context
from bepoz_toolkit.manifest import ToolInfo
from bepoz_toolkit.resources.config import (
    CONTEXT_FILENAME,
    REPORT_FILENAME,
    OUTPUT_LOG_FILENAME,
    RUN_INFO_FILENAME,
    ENV_RUN_DIR,
    ENV_TOOL_ID,
    ENV_TOOL_VERSION,
    ENV_ASSUME_YES,
    ENV_INTERACTIVE,
    RUN_POLL_INTERVAL,
    RUN_TOOL_FLAG,
    MAX_RUN_HISTORY,
    OUTPUT_READ_SIZE,
    get_runs_dir,
)
from bepoz_toolkit.resources.logging_method import log_simple_class_methods
from bepoz_toolkit.resources.utils import (
    clean_old_dirs,
    ensure_dir,
    get_python_executable,
    read_json,
    timestamp_slug,
    write_json,
)
from bepoz_toolkit.sdk.report import load_report


# Carpeta que contiene el paquete bepoz_toolkit (para ejecutar desde el código fuente)
PACKAGE_ROOT = Path(bepoz_toolkit.__file__).resolve().parent.parent


class RunError(Exception):
    """No se pudo iniciar la herramienta."""
    pass


def _write_to_stdout(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


@dataclass
class RunResult:
    """Resultado de una ejecución."""
    tool_id: str
    tool_version: str
    run_dir: Path
    exit_code: Optional[int]
    started_at: datetime
    finished_at: datetime
    report: Optional[Dict[str, Any]] = None
    timed_out: bool = False
    command: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def duration(self) -> float:
        """Duración en segundos."""
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def log_path(self) -> Path:
        return self.run_dir / OUTPUT_LOG_FILENAME

    @property
    def report_path(self) -> Path:
        return self.run_dir / REPORT_FILENAME

    @property
    def status(self) -> str:
        if self.timed_out:
            return "timeout"
        if self.report and self.report.get("status"):
            return str(self.report["status"])
        return "ok" if self.exit_code == 0 else "error"

    def summary(self) -> str:
        """Resumen legible para la consola."""
        lines = [
            f"Herramienta: {self.tool_id} v{self.tool_version}",
            f"Estado: {self.status} (código de salida {self.exit_code})",
            f"Duración: {self.duration:.1f}s",
        ]
        if self.report:
            if self.report.get("summary"):
                lines.append(f"Resumen: {self.report['summary']}")
            for finding in self.report.get("findings") or []:
                level = str(finding.get("level", "info")).upper()
                lines.append(f"  [{level}] {finding.get('message', '')}")
            for change in self.report.get("changes") or []:
                lines.append(f"  [CAMBIO] {change.get('description', '')}: {change.get('rows', 0)} fila(s)")
        else:
            lines.append("La herramienta no generó Report.json")
        lines.append(f"Carpeta de la ejecución: {self.run_dir}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool_id": self.tool_id,
            "tool_version": self.tool_version,
            "run_dir": str(self.run_dir),
            "exit_code": self.exit_code,
            "status": self.status,
            "timed_out": self.timed_out,
            "started_at": self.started_at.isoformat(timespec="seconds"),
            "finished_at": self.finished_at.isoformat(timespec="seconds"),
            "duration": round(self.duration, 3),
            "command": self.command,
        }


@log_simple_class_methods
class ToolRunner:
    """
    Ejecuta herramientas como procesos hijos, una a la vez.
    """

    def __init__(
        self,
        runs_dir: Optional[Path] = None,
        python_executable: Optional[str] = None,
        base_env: Optional[Mapping[str, str]] = None,
        max_history: int = MAX_RUN_HISTORY,
    ):
        """
        Args:
            runs_dir: Carpeta donde se crean los RunDirs
            python_executable: Intérprete para las herramientas (compilado, None = el propio launcher)
            base_env: Entorno base del hijo (por defecto os.environ)
            max_history: Cantidad de RunDirs que se conservan
        """
        self.runs_dir = Path(runs_dir) if runs_dir else get_runs_dir()
        self.python_executable = python_executable or get_python_executable()
        self.base_env = base_env
        self.max_history = max_history

    def create_run_dir(self, tool: ToolInfo) -> Path:
        run_dir = self.runs_dir / f"{timestamp_slug()}_{tool.id}"
        if not ensure_dir(run_dir):
            raise RunError(f"No se pudo crear la carpeta de ejecución {run_dir}")
        return run_dir

    def build_command(self, tool: ToolInfo, entry_path: Path, args: Sequence[str] = ()) -> List[str]:
        script_args = [*tool.args, *args]
        if self.python_executable is None:
            # Compilado: el launcher se relanza a sí mismo para ejecutar el script
            return [sys.executable, RUN_TOOL_FLAG, str(Path(entry_path).resolve()), *script_args]
        return [self.python_executable, str(Path(entry_path).resolve()), *script_args]

    def build_environment(self, tool: ToolInfo, context: ToolkitContext, run_dir: Path,
                          assume_yes: bool, interactive: bool) -> Dict[str, str]:
        env = child_environment(context, run_dir / CONTEXT_FILENAME, base_env=self.base_env)
        env[ENV_RUN_DIR] = str(run_dir)
        env[ENV_TOOL_ID] = tool.id
        env[ENV_TOOL_VERSION] = tool.version
        env[ENV_ASSUME_YES] = "1" if assume_yes else "0"
        env[ENV_INTERACTIVE] = "1" if interactive else "0"

        # Permite importar bepoz_toolkit.sdk aunque el paquete no esté instalado
        python_path = env.get("PYTHONPATH")
        env["PYTHONPATH"] = os.pathsep.join(p for p in (str(PACKAGE_ROOT), python_path) if p)
        return env

    def run(
        self,
        tool: ToolInfo,
        entry_path: Path,
        context: ToolkitContext,
        args: Sequence[str] = (),
        on_output: Optional[Callable[[str], None]] = None,
        assume_yes: bool = False,
        interactive: bool = True,
        timeout: Optional[float] = None,
    ) -> RunResult:
        """
        Ejecuta una herramienta y espera a que termine.

        Args:
            tool: Herramienta del manifiesto
            entry_path: Script instalado
            context: Contexto de conexión compartido
            args: Argumentos extra para el script
            on_output: Recibe la salida del hijo a medida que llega (por defecto stdout)
            assume_yes: Las confirmaciones de la herramienta se responden "sí"
            interactive: Si False, el hijo no recibe stdin (uso desde la UI de escritorio)
            timeout: Segundos máximos de ejecución (None = sin límite)

        Raises:
            RunError: Si el script no existe o no se pudo iniciar el proceso
        """
        entry_path = Path(entry_path)
        if not entry_path.is_file():
            raise RunError(f"No se encontró el script de '{tool.display_name}': {entry_path}")

        run_dir = self.create_run_dir(tool)
        try:
            save_context(context, run_dir / CONTEXT_FILENAME)
        except OSError as e:
            raise RunError(f"No se pudo escribir el contexto en {run_dir}: {e}")

        command = self.build_command(tool, entry_path, args)
        env = self.build_environment(tool, context, run_dir, assume_yes, interactive)
        write = on_output or _write_to_stdout

        started_at = datetime.now()
        try:
            process = subprocess.Popen(
                command,
                cwd=str(run_dir),
                env=env,
                stdin=None if interactive else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            raise RunError(f"No se pudo iniciar '{tool.display_name}': {e}")

        timed_out = self._pump_output(process, run_dir / OUTPUT_LOG_FILENAME, write, timeout)
        finished_at = datetime.now()

        result = RunResult(
            tool_id=tool.id,
            tool_version=tool.version,
            run_dir=run_dir,
            exit_code=process.returncode,
            started_at=started_at,
            finished_at=finished_at,
            report=load_report(run_dir / REPORT_FILENAME),
            timed_out=timed_out,
            command=command,
        )

        try:
            write_json(run_dir / RUN_INFO_FILENAME, result.to_dict())
        except OSError as e:
            print(f"runner.py: run: no se pudo guardar {RUN_INFO_FILENAME}: {e}", file=sys.stderr)

        clean_old_dirs(self.runs_dir, self.max_history)
        return result

    def _pump_output(
        self,
        process: subprocess.Popen,
        log_path: Path,
        write: Callable[[str], None],
        timeout: Optional[float],
    ) -> bool:
        """
        Reenvía la salida del hijo hasta que termine.

        La lectura se hace en un hilo y este método sondea la cola, así se
        puede cortar el proceso por timeout aunque no escriba nada.

        Returns:
            True si el proceso se terminó por timeout
        """
        chunks: "queue.Queue[Optional[bytes]]" = queue.Queue()

        def reader() -> None:
            try:
                while True:
                    data = process.stdout.read1(OUTPUT_READ_SIZE)
                    if not data:
                        break
                    chunks.put(data)
            except (OSError, ValueError):
                pass
            finally:
                chunks.put(None)

        thread = threading.Thread(target=reader, daemon=True)
        thread.start()

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        deadline = time.monotonic() + timeout if timeout else None
        timed_out = False

        with open(log_path, "w", encoding="utf-8", newline="") as log:
            def emit(text: str) -> None:
                if text:
                    log.write(text)
                    log.flush()
                    write(text)

            while True:
                if deadline is not None and not timed_out and time.monotonic() > deadline:
                    if process.poll() is None:
                        timed_out = True
                        process.kill()
                        emit(f"\n*** Tiempo máximo de ejecución agotado ({timeout}s) ***\n")

                try:
                    data = chunks.get(timeout=RUN_POLL_INTERVAL)
                except queue.Empty:
                    continue
                if data is None:
                    break
                emit(decoder.decode(data))

            emit(decoder.decode(b"", final=True))

        process.wait()
        thread.join(timeout=1)
        process.stdout.close()
        return timed_out

    def list_runs(self, limit: int = 10, tool_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Historial de ejecuciones (run.json), de la más reciente a la más antigua.
        """
        if not self.runs_dir.exists():
            return []

        runs = []
        for run_dir in sorted((p for p in self.runs_dir.iterdir() if p.is_dir()), reverse=True):
            info = read_json(run_dir / RUN_INFO_FILENAME)
            if not isinstance(info, dict):
                continue
            if tool_id and info.get("tool_id") != tool_id:
                continue
            runs.append(info)
            if len(runs) >= limit:
                break
        return runs
