from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from attabench.duration import Time
from attabench.errors import ResultFormatError
from attabench.ranges import ClosedRange
from attabench.result import ResultStore
from attabench.sample import Band
from attabench.task import Task

RESULT_SUFFIX = ".attaresult"


def _band_to_json(band: Band | None) -> str | None:
    return None if band is None else str(band)


def result_to_json(store: ResultStore) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if store.benchmark_path is not None:
        out["source"] = str(store.benchmark_path)
    out.update(
        {
            "tasks": [t.to_json() for t in store.tasks],
            "iterations": store.iterations,
            "minimumDuration": store.duration_range.lower.seconds,
            "maximumDuration": store.duration_range.upper.seconds,
            "minimumSizeScale": store.size_scale_range.lower,
            "maximumSizeScale": store.size_scale_range.upper,
            "sizeSubdivisions": store.size_subdivisions,
            "amortizedTime": store.amortized_time,
            "logarithmicSizeScale": store.logarithmic_size_scale,
            "logarithmicTimeScale": store.logarithmic_time_scale,
            "topBand": _band_to_json(store.top_band),
            "centerBand": _band_to_json(store.center_band),
            "bottomBand": _band_to_json(store.bottom_band),
            "highlightSelectedSizeRange": store.highlight_selected_size_range,
            "displaySizeScaleRangeMin": store.display_size_scale_range.lower,
            "displaySizeScaleRangeMax": store.display_size_scale_range.upper,
            "displayIncludeSizeScaleRange": store.display_include_size_scale_range,
            "displayIncludeAllMeasuredSizes": store.display_include_all_measured_sizes,
            "displayTimeRangeMin": store.display_time_range.lower.seconds,
            "displayTimeRangeMax": store.display_time_range.upper.seconds,
            "displayIncludeTimeRange": store.display_include_time_range,
            "displayIncludeAllMeasuredTimes": store.display_include_all_measured_times,
            "themeName": store.theme_name,
            "progressRefreshInterval": str(store.progress_refresh_interval),
            "chartRefreshInterval": str(store.chart_refresh_interval),
        }
    )
    return out


def _pair(obj: dict[str, Any], lo_key: str, hi_key: str, conv: Any) -> ClosedRange[Any] | None:
    # Ranges only apply when both ends are present.
    if obj.get(lo_key) is None or obj.get(hi_key) is None:
        return None
    return ClosedRange.of(conv(obj[lo_key]), conv(obj[hi_key]))


def _seconds(v: Any) -> Time:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise TypeError(f"expected a number of seconds, got {v!r}")
    return Time.from_seconds(float(v))


def _strict_int(v: Any) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise TypeError(f"expected an integer, got {v!r}")
    return v


def _strict_bool(v: Any) -> bool:
    if not isinstance(v, bool):
        raise TypeError(f"expected a boolean, got {v!r}")
    return v


def _time(v: Any) -> Time:
    if isinstance(v, str):
        return Time.parse(v)
    return _seconds(v)


def result_from_json(obj: Any) -> ResultStore:
    """Decode a result document. Nothing is returned unless everything decodes."""

    if not isinstance(obj, dict):
        raise ResultFormatError("result file must contain a JSON object")
    if not isinstance(obj.get("tasks"), list):
        raise ResultFormatError("result file has no 'tasks' array")

    tasks: list[Task] = []
    for raw_task in obj["tasks"]:
        if not isinstance(raw_task, dict):
            raise ResultFormatError(
                f"task entries must be objects (got {type(raw_task).__name__})"
            )
        tasks.append(Task.from_json(raw_task))
    names = [t.name for t in tasks]
    if len(set(names)) != len(names):
        raise ResultFormatError("result file contains duplicate task names")

    source = obj.get("source")
    store = ResultStore(Path(source) if isinstance(source, str) and source else None)
    try:
        store.replace_tasks(tasks)
        if obj.get("iterations") is not None:
            store.iterations = _strict_int(obj["iterations"])
        durations = _pair(obj, "minimumDuration", "maximumDuration", _seconds)
        if durations is not None:
            store.duration_range = durations
        scales = _pair(obj, "minimumSizeScale", "maximumSizeScale", _strict_int)
        if scales is not None:
            store.size_scale_range = scales
        if obj.get("sizeSubdivisions") is not None:
            store.size_subdivisions = _strict_int(obj["sizeSubdivisions"])

        for key, attr in (
            ("amortizedTime", "amortized_time"),
            ("logarithmicSizeScale", "logarithmic_size_scale"),
            ("logarithmicTimeScale", "logarithmic_time_scale"),
            ("highlightSelectedSizeRange", "highlight_selected_size_range"),
            ("displayIncludeSizeScaleRange", "display_include_size_scale_range"),
            ("displayIncludeAllMeasuredSizes", "display_include_all_measured_sizes"),
            ("displayIncludeTimeRange", "display_include_time_range"),
            ("displayIncludeAllMeasuredTimes", "display_include_all_measured_times"),
        ):
            if obj.get(key) is not None:
                setattr(store, attr, _strict_bool(obj[key]))

        for key, attr in (
            ("topBand", "top_band"),
            ("centerBand", "center_band"),
            ("bottomBand", "bottom_band"),
        ):
            if key in obj:
                setattr(store, attr, None if obj[key] is None else Band.parse(str(obj[key])))

        display_sizes = _pair(obj, "displaySizeScaleRangeMin", "displaySizeScaleRangeMax", _strict_int)
        if display_sizes is not None:
            store.display_size_scale_range = display_sizes
        display_times = _pair(obj, "displayTimeRangeMin", "displayTimeRangeMax", _seconds)
        if display_times is not None:
            store.display_time_range = display_times

        if obj.get("themeName") is not None:
            store.theme_name = str(obj["themeName"])
        if obj.get("progressRefreshInterval") is not None:
            store.progress_refresh_interval = _time(obj["progressRefreshInterval"])
        if obj.get("chartRefreshInterval") is not None:
            store.chart_refresh_interval = _time(obj["chartRefreshInterval"])
    except (KeyError, TypeError, ValueError) as e:
        raise ResultFormatError(f"invalid result file: {e}") from e
    return store


def read_result(path: Path) -> ResultStore:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ResultFormatError(f"{path}: not valid JSON ({e})") from e
    return result_from_json(raw)


def write_result(path: Path, store: ResultStore) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result_to_json(store), indent=2), encoding="utf-8")
