"""PySide6 (QtCore) client of the Attabench core.

This package is a *client* of the headless core:

- Core stays Qt-free (no Qt imports under `attabench/`).
- Benchmarks run as QProcess subprocesses driven by `RunController`.

Run from source:

    python -m attabench_ui path/to/results.attaresult
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
