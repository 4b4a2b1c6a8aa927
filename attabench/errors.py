from __future__ import annotations


class ResultFormatError(ValueError):
    pass


class BenchmarkLaunchError(OSError):
    pass
