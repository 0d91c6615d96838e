"""
Confirmaciones y preguntas al operador desde una herramienta.

El launcher indica por variables de entorno cómo responder:
- BEPOZ_TOOLKIT_ASSUME_YES=1: toda confirmación se responde "sí"
- BEPOZ_TOOLKIT_INTERACTIVE=0: no hay consola; las confirmaciones se
  responden "no" y las preguntas usan su valor por defecto
"""

import os
import sys
from typing import Callable, Optional, Sequence

from bepoz_toolkit.resources.config import ENV_ASSUME_YES, ENV_INTERACTIVE


YES_ANSWERS = {"s", "si", "sí", "y", "yes"}
NO_ANSWERS = {"n", "no"}


def _flag(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip().lower() in ("1", "true", "yes", "y", "on")


def assume_yes() -> bool:
    return bool(_flag(ENV_ASSUME_YES))


def is_interactive() -> bool:
    flag = _flag(ENV_INTERACTIVE)
    if flag is not None:
        return flag
    return sys.stdin is not None and sys.stdin.isatty()


def confirm(question: str, default: bool = False, input_func: Callable[[str], str] = input) -> bool:
    """
    Pide confirmación antes de una operación ("¿Está seguro?").

    Returns:
        True si el operador confirma
    """
    if assume_yes():
        print(f"{question} [confirmado automáticamente]")
        return True

    if not is_interactive():
        print(f"{question} [sin consola: se responde 'no']")
        return False

    hint = "[S/n]" if default else "[s/N]"
    while True:
        try:
            answer = input_func(f"{question} {hint}: ").strip().lower()
        except EOFError:
            return False
        if not answer:
            return default
        if answer in YES_ANSWERS:
            return True
        if answer in NO_ANSWERS:
            return False
        print("Responder 's' o 'n'.")


def ask(
    label: str,
    default: Optional[str] = None,
    required: bool = False,
    input_func: Callable[[str], str] = input,
) -> str:
    """
    Pide un valor de texto.

    Raises:
        ValueError: Si es obligatorio, no hay consola y no hay valor por defecto
    """
    if not is_interactive():
        if default is not None:
            return default
        if required:
            raise ValueError(f"Falta un valor obligatorio y no hay consola: {label}")
        return ""

    prompt = label
    if default is not None:
        prompt += f" [{default}]"
    prompt += ": "

    while True:
        try:
            value = input_func(prompt).strip()
        except EOFError:
            value = ""
        if not value and default is not None:
            value = default
        if required and not value:
            print("El valor es obligatorio.")
            continue
        return value


def choose(label: str, options: Sequence[str], input_func: Callable[[str], str] = input) -> Optional[int]:
    """
    Muestra una lista numerada y retorna el índice elegido (0-based),
    o None si se cancela con un valor vacío o no hay consola.
    """
    if not options or not is_interactive():
        return None

    print(label)
    for number, option in enumerate(options, start=1):
        print(f"  {number}. {option}")

    while True:
        try:
            answer = input_func("Opción (vacío para cancelar): ").strip()
        except EOFError:
            return None
        if not answer:
            return None
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return int(answer) - 1
        print(f"Elegir un número entre 1 y {len(options)}.")
