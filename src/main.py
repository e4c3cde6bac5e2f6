"""Script de ejecución.

Permite ejecutar la CLI con `python -m main` desde `src/` además del script
`wsadmin` instalado por el paquete.
"""

from __future__ import annotations

import sys

# La salida JSON es UTF-8; en terminales Windows (cp1252) hay que forzarlo.
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")

from cli.main import run


def main() -> None:
    run()


if __name__ == "__main__":
    main()
