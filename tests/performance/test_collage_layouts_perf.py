import json
import timeit
from pathlib import Path
from typing import Any, Dict, Final

from collage_engine.cache import fingerprint
from collage_engine.models import CollageRequest
from imaging.collage_layouts import CollageLayouts
from imaging.image_operations import Adjustment, Rect, cover_fit

from .perf_baselines import PERF_BASELINES, PerfBaseline

RESULTS_FILENAME: Final[str] = "collage_engine_perf_metrics.json"

_NINE_IMAGES = CollageRequest.build(
    [f"photos/{index}.jpg" for index in range(9)],
    [{"offsetX": index * 10, "zoom": 1.2} for index in range(9)],
    layout="grid-3x3",
)


def _run_benchmark(stmt: str, baseline: PerfBaseline, namespace: Dict[str, Any]) -> float:
    duration = timeit.timeit(stmt, globals=namespace, number=baseline.loops)
    per_call_us = duration / baseline.loops * 1e6
    return per_call_us


def _record_metric(directory: Path, name: str, value_us: float) -> None:
    metrics_path = directory / RESULTS_FILENAME
    metrics = {}
    if metrics_path.exists():
        metrics = json.loads(metrics_path.read_text(encoding="utf-8"))
    metrics[name] = value_us
    metrics_path.write_text(json.dumps(metrics, indent=2), encoding="utf-8")


def _assert_perf(name: str, stmt: str, **namespace: Any) -> float:
    baseline = PERF_BASELINES[name]
    per_call_us = _run_benchmark(stmt, baseline, namespace)
    assert (
        per_call_us <= baseline.max_us_per_call
    ), f"{name} took {per_call_us:.3f}us per call, expected ≤ {baseline.max_us_per_call:.2f}us"
    return per_call_us


def test_get_layouts_by_tag_perf(tmp_path):
    per_call_us = _assert_perf(
        "get_layouts_by_tag",
        "CollageLayouts.get_layouts_by_tag('grid')",
        CollageLayouts=CollageLayouts,
    )
    _record_metric(tmp_path, "get_layouts_by_tag", per_call_us)


def test_get_cell_rects_perf(tmp_path):
    per_call_us = _assert_perf(
        "get_cell_rects",
        "layout.get_cell_rects(1200, 1200, 10, 2)",
        layout=CollageLayouts.get_layout("grid-3x3"),
    )
    _record_metric(tmp_path, "get_cell_rects", per_call_us)


def test_fingerprint_perf(tmp_path):
    per_call_us = _assert_perf(
        "fingerprint", "fingerprint(request)", fingerprint=fingerprint, request=_NINE_IMAGES
    )
    _record_metric(tmp_path, "fingerprint", per_call_us)


def test_cover_fit_perf(tmp_path):
    per_call_us = _assert_perf(
        "cover_fit",
        "cover_fit((4000, 3000), cell, adjustment)",
        cover_fit=cover_fit,
        cell=Rect(10, 10, 385, 385),
        adjustment=Adjustment(30, -20, 1.5),
    )
    _record_metric(tmp_path, "cover_fit", per_call_us)
