"""Headless core of Attabench: statistics, result files, protocol and charts.

This package never imports Qt.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
