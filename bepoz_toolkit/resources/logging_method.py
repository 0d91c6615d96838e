import functools
import inspect
import os
import sys
from datetime import datetime


TRACE_ENV_VAR = "BEPOZ_TOOLKIT_TRACE"

# Largo máximo de cada argumento/retorno en el log
MAX_VALUE_LENGTH = 200


class MethodLogger:
    """Clase singleton que traza llamadas de métodos y funciones con indentación.

    El trazado está apagado por defecto. Se activa con la variable de entorno
    BEPOZ_TOOLKIT_TRACE:
        BEPOZ_TOOLKIT_TRACE=all                      -> traza todo
        BEPOZ_TOOLKIT_TRACE=install,ToolRunner       -> solo desde esos triggers

    Uso con clases:
        @log_simple_class_methods
        class ToolInstaller:
            ...

    Uso con funciones:
        @log_function
        def run_launcher():
            ...

    La salida va a stderr para no mezclarse con la salida de las herramientas:
        ┌─ INPUT: [ToolInstaller][install]
        │   ┌─ INPUT: [ToolInstaller][_download_file]
        │   └─ OUTPUT: [ToolInstaller][_download_file]
        └─ OUTPUT: [ToolInstaller][install]
    """

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self.__class__._initialized = True

        self.indent_level = 0
        self.stream = None  # None = sys.stderr al momento de escribir

        self.trigger_functions = []
        self.trigger_classes = []
        self._enabled = False
        self._has_triggers = False
        self._trigger_depth = 0
        self._should_log = False

        self.symbols = {
            'input_start': '┌─',
            'output_end': '└─',
            'continue': '│ ',
        }

        self.configure_from_env()

    # ------------------------------------------------------------------
    # Configuración
    # ------------------------------------------------------------------

    def configure_from_env(self) -> None:
        """Lee BEPOZ_TOOLKIT_TRACE y configura el trazado."""
        raw = os.getenv(TRACE_ENV_VAR, "").strip()
        if not raw:
            self.disable()
        elif raw.lower() in ("1", "all", "true", "yes"):
            self.enable()
        else:
            names = [name.strip() for name in raw.split(",") if name.strip()]
            functions = [name for name in names if not name[:1].isupper()]
            classes = [name for name in names if name[:1].isupper()]
            self.set_triggers(functions=functions, classes=classes)

    def enable(self) -> None:
        """Traza todas las llamadas decoradas."""
        self._enabled = True
        self.clear_triggers()

    def disable(self) -> None:
        self._enabled = False
        self._has_triggers = False
        self._should_log = False
        self._trigger_depth = 0

    def set_stream(self, stream) -> None:
        """Cambia el destino del trazado (por defecto sys.stderr)."""
        self.stream = stream

    def set_triggers(self, functions: list = None, classes: list = None):
        """Configura los triggers de trazado.

        Cuando un método/clase trigger se ejecuta, se traza todo el árbol
        de ejecución hasta que ese método termine.
        """
        self._enabled = True
        self.trigger_functions = functions or []
        self.trigger_classes = classes or []
        self._has_triggers = bool(self.trigger_functions or self.trigger_classes)
        self._trigger_depth = 0
        self._should_log = not self._has_triggers

    def clear_triggers(self):
        """Limpia los triggers: si está habilitado, traza todo."""
        self.trigger_functions = []
        self.trigger_classes = []
        self._has_triggers = False
        self._trigger_depth = 0
        self._should_log = self._enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    # ------------------------------------------------------------------
    # Formato
    # ------------------------------------------------------------------

    def _get_indent(self) -> str:
        return "│   " * self.indent_level

    def _print_log(self, message: str, is_input: bool = True):
        indent = self._get_indent()
        symbol = self.symbols['input_start'] if is_input else self.symbols['output_end']
        if is_input:
            continuation = indent + self.symbols['continue'] + "  "
        else:
            continuation = indent + "   "

        stream = self.stream or sys.stderr
        lines = message.split('\n')
        print(f"{indent}{symbol} {lines[0]}", file=stream)
        for line in lines[1:]:
            print(f"{continuation}{line}", file=stream)

    @staticmethod
    def _short(value) -> str:
        text = repr(value)
        if len(text) > MAX_VALUE_LENGTH:
            text = text[:MAX_VALUE_LENGTH] + "..."
        return text

    def _is_trigger(self, class_name: str = None, method_name: str = None) -> bool:
        if not self._has_triggers:
            return False
        return method_name in self.trigger_functions or (
            class_name is not None and class_name in self.trigger_classes
        )

    # ------------------------------------------------------------------
    # Núcleo
    # ------------------------------------------------------------------

    def _call(self, func, label: str, class_name, method_name, bound_args: dict, call):
        if not self._enabled:
            return call()

        is_trigger = self._is_trigger(class_name, method_name)
        if self._has_triggers:
            if is_trigger:
                self._trigger_depth += 1
                self._should_log = True
            elif not self._should_log:
                return call()

        if bound_args:
            args_str = "\n    ".join(f"{k}: {self._short(v)}" for k, v in bound_args.items())
            self._print_log(f"INPUT: {label}\nArgs:\n    {args_str}", is_input=True)
        else:
            self._print_log(f"INPUT: {label}\nArgs: (sin argumentos)", is_input=True)

        self.indent_level += 1
        start_time = datetime.now()
        try:
            result = call()
        except Exception as e:
            self.indent_level -= 1
            self._print_log(f"ERROR: {label}\n{type(e).__name__}: {e}", is_input=False)
            self._leave_trigger(is_trigger)
            raise

        self.indent_level -= 1
        duration = datetime.now() - start_time
        self._print_log(
            f"OUTPUT: {label}\nReturn: {self._short(result)}\nTime: {duration}",
            is_input=False,
        )
        self._leave_trigger(is_trigger)
        return result

    def _leave_trigger(self, is_trigger: bool) -> None:
        if self._has_triggers and is_trigger:
            self._trigger_depth -= 1
            if self._trigger_depth == 0:
                self._should_log = False

    def log_class(self, cls):
        """Decorador que traza los métodos públicos y privados de una clase
        (excepto los dunder)."""
        logger = self

        methods = [
            attr for attr, value in vars(cls).items()
            if not attr.startswith('__') and inspect.isfunction(value)
        ]

        for method_name in methods:
            original_method = getattr(cls, method_name)

            def make_wrapper(orig_method, meth_name):
                params = list(inspect.signature(orig_method).parameters.keys())[1:]

                @functools.wraps(orig_method)
                def wrapper(self, *args, **kwargs):
                    bound = dict(zip(params, args))
                    bound.update(kwargs)
                    return logger._call(
                        orig_method,
                        f"[{cls.__name__}][{meth_name}]",
                        cls.__name__,
                        meth_name,
                        bound,
                        lambda: orig_method(self, *args, **kwargs),
                    )
                return wrapper

            setattr(cls, method_name, make_wrapper(original_method, method_name))

        return cls

    def log_function(self, func):
        """Decorador que traza una función cuando se ejecuta."""
        logger = self
        function_name = func.__name__
        params = list(inspect.signature(func).parameters.keys())

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            bound = dict(zip(params, args))
            bound.update(kwargs)
            return logger._call(
                func,
                f"[{function_name}]",
                None,
                function_name,
                bound,
                lambda: func(*args, **kwargs),
            )

        return wrapper


# Instancia global para uso conveniente
method_logger = MethodLogger()

log_simple_class_methods = method_logger.log_class
log_function = method_logger.log_function
