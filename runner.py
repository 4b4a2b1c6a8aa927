from __future__ import annotations

"""Repo-root convenience shim for the headless benchmark runner.

    python runner.py results.attaresult

It delegates to the canonical entry point:

    python -m attabench_ui
"""

import sys


def main() -> int:
    """Run the Attabench runner with the arguments given to this script."""

    # `attabench_ui.__main__.main()` prints the PySide6-missing message if needed.
    from attabench_ui.__main__ import main as ui_main

    sys.argv = ["attabench_ui", *sys.argv[1:]]

    return ui_main()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
