#!/usr/bin/env python3
from __future__ import annotations

"""A small benchmark speaking the Attabench subprocess protocol.

    python sample_benchmark.py list
    echo '{"tasks": ["sum"], "sizes": [1, 2, 4], "iterations": 3,
           "minimumDuration": 0.01, "maximumDuration": 1}' | python sample_benchmark.py run
"""

import json
import random
import sys
import time
from typing import Any, Callable

PREFIX = "@attabench "


def _sum(data: list[int]) -> None:
    sum(data)


def _sorted(data: list[int]) -> None:
    sorted(data)


def _set_insert(data: list[int]) -> None:
    s: set[int] = set()
    for v in data:
        s.add(v)


def _dict_lookup(data: list[int]) -> None:
    d = dict.fromkeys(data)
    for v in data:
        d.get(v)


TASKS: dict[str, Callable[[list[int]], None]] = {
    "sum": _sum,
    "sorted": _sorted,
    "set.add": _set_insert,
    "dict.get": _dict_lookup,
}


def _emit(obj: dict[str, Any]) -> None:
    sys.stdout.write(PREFIX + json.dumps(obj) + "\n")
    sys.stdout.flush()


def _measure(fn: Callable[[list[int]], None], data: list[int], minimum: float) -> float:
    """Seconds per call, repeating until at least `minimum` seconds have passed."""

    repeats = 0
    start = time.perf_counter()
    while True:
        fn(data)
        repeats += 1
        elapsed = time.perf_counter() - start
        if elapsed >= minimum:
            return elapsed / repeats


def run(options: dict[str, Any]) -> None:
    rng = random.Random(0)
    minimum = float(options["minimumDuration"])
    maximum = float(options["maximumDuration"])
    for size in options["sizes"]:
        data = [rng.randrange(1 << 30) for _ in range(size)]
        for name in options["tasks"]:
            fn = TASKS.get(name)
            if fn is None:
                _emit({"event": "fail", "error": f"unknown task {name!r}"})
                sys.exit(1)
            _emit({"event": "begin", "task": name, "size": size})
            deadline = time.perf_counter() + maximum
            for _ in range(int(options["iterations"])):
                _emit({"event": "measure", "task": name, "size": size, "time": _measure(fn, data, minimum)})
                if time.perf_counter() > deadline:
                    break


def main(argv: list[str]) -> int:
    if len(argv) != 2 or argv[1] not in ("list", "run"):
        sys.stderr.write("usage: sample_benchmark.py list|run\n")
        return 2
    if argv[1] == "list":
        for name in TASKS:
            print(name)
        return 0
    run(json.loads(sys.stdin.read()))
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
