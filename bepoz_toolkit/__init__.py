"""
Toolkit de onboarding para Bepoz.

Este paquete contiene el launcher que:
- Descarga el manifiesto de herramientas publicado
- Instala (o actualiza) cada herramienta cuando se la necesita
- Ejecuta la herramienta elegida como proceso hijo con el contexto SQL compartido
- Ofrece un menú de consola y una ventana de escritorio para elegir herramientas

El subpaquete `sdk` es lo que importan los scripts de las herramientas.
"""

from bepoz_toolkit.resources.version import __version__

__all__ = ["__version__"]
