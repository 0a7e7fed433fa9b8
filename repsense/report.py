"""
Session report: session_metrics.json, report.html and per-rep plots.
"""
from __future__ import annotations

import html
import json
import logging
import os
from typing import Any, Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from .reps import SquatSession
from .rom import RangeOfMotion

logger = logging.getLogger(__name__)

# Below this many reps the first-vs-last comparison is skipped
MIN_REPS_FOR_FATIGUE = 2
# Share of reps (percent) / mean score below which a tip is shown
TIP_PCT = 70.0
TIP_SCORE = 0.7


def _mean(vals: list[float]) -> Optional[float]:
    return sum(vals) / len(vals) if vals else None


def _fmt(val: Any, digits: int = 2) -> str:
    if isinstance(val, bool):
        return "yes" if val else "no"
    if isinstance(val, (int, float)):
        return f"{val:.{digits}f}"
    return "--"


def fatigue_summary(session: SquatSession, min_reps: int = MIN_REPS_FOR_FATIGUE) -> str:
    reps = session.reps
    if len(reps) < min_reps:
        return f"Insufficient reps for fatigue analysis (need at least {min_reps})."
    first, last = reps[0], reps[-1]
    depth_change = (last.depth_percentage - first.depth_percentage) / (abs(first.depth_percentage) + 1e-6) * 100
    tempo_change = (last.total_duration_s - first.total_duration_s) / (abs(first.total_duration_s) + 1e-6) * 100
    form_change = (last.overall_form_score - first.overall_form_score) * 100
    logger.info(
        "report fatigue: depth %.1f%% -> %.1f%%, duration %.2fs -> %.2fs",
        first.depth_percentage, last.depth_percentage, first.total_duration_s, last.total_duration_s,
    )
    return (
        f"First vs last rep: depth change {depth_change:+.1f}%, "
        f"duration change {tempo_change:+.1f}%, form change {form_change:+.0f} points. "
        "Shallower, slower reps late in the set may indicate fatigue."
    )


def coaching_tips(session: SquatSession) -> list[str]:
    reps = session.reps
    if not reps:
        return []
    tips = []
    if session.parallel_percentage < TIP_PCT:
        tips.append("Try to reach parallel on most reps.")
    if _mean([r.trunk_score for r in reps]) < TIP_SCORE:
        tips.append("Keep your chest up to control forward lean.")
    if _mean([r.knee_tracking_score for r in reps]) < TIP_SCORE:
        tips.append("Track your knees over your toes.")
    if _mean([r.symmetry_score for r in reps]) < TIP_SCORE:
        tips.append("Load both legs evenly.")
    if len(reps) >= 2 and session.consistency_score < TIP_SCORE:
        tips.append("Aim for the same form rep to rep.")
    if not tips:
        tips.append("Nice work, keep the same cues next set.")
    return tips


def session_metrics(
    session: SquatSession,
    rom: Optional[dict[str, RangeOfMotion]] = None,
    frames_processed: Optional[int] = None,
    frames_rejected: Optional[int] = None,
    source: str = "replay",
) -> dict[str, Any]:
    data = session.to_dict()
    data["source"] = source
    data["frames_processed"] = frames_processed
    data["frames_rejected"] = frames_rejected
    data["range_of_motion"] = {
        name: {
            "min_degrees": r.min_degrees,
            "max_degrees": r.max_degrees,
            "range_degrees": r.range_degrees,
            "category": r.category.value,
            "samples": r.sample_count,
            "avg_confidence": r.avg_confidence,
        }
        for name, r in sorted((rom or {}).items())
    }
    return data


def _html_report(session: SquatSession, metrics: dict[str, Any], source: str) -> str:
    lines = [
        "<!DOCTYPE html>",
        "<html><head><meta charset='utf-8'><title>Squat Report</title></head><body>",
        "<h1>Squat Analysis Report</h1>",
        f"<p><b>Source:</b> {html.escape(source)}</p>",
        f"<p><b>Total reps:</b> {session.total_reps}</p>",
    ]
    if metrics.get("frames_processed") is not None:
        lines.append(
            f"<p><b>Frames:</b> {metrics['frames_processed']} processed, "
            f"{metrics.get('frames_rejected') or 0} rejected by validation</p>"
        )
    lines.append(f"<p><b>Fatigue:</b> {html.escape(fatigue_summary(session))}</p>")

    if session.reps:
        best = session.best_rep
        lines.append("<h2>Quick summary</h2>")
        lines.append(
            f"<p><b>Average form:</b> {session.average_form_score:.0%} | "
            f"<b>Best form:</b> {session.best_form_score:.0%} (rep {best.rep_number}) | "
            f"<b>Consistency:</b> {session.consistency_score:.0%}</p>"
        )
        lines.append(
            f"<p><b>Average depth:</b> {session.average_depth:.0f}% | "
            f"<b>Deepest knee angle:</b> {_fmt(session.deepest_knee_angle, 1)}° | "
            f"<b>Reps at parallel:</b> {session.reps_at_parallel} ({session.parallel_percentage:.0f}%)</p>"
        )
        lines.append(
            f"<p><b>Average rep time:</b> {_fmt(session.average_rep_duration_s)}s | "
            f"<b>Average rest:</b> {_fmt(session.average_rest_time_s)}s | "
            f"<b>Active time:</b> {session.total_active_time_s:.1f}s</p>"
        )
        lines.append("<p><b>Tips:</b> " + html.escape(" ".join(coaching_tips(session))) + "</p>")

    col_labels = [
        "Rep", "Grade", "Form", "Lowest knee (deg)", "Depth", "Parallel", "Bottom held",
        "Knee tracking", "Trunk", "Symmetry", "Max trunk (deg)", "Down (s)", "Bottom (s)", "Up (s)",
    ]
    lines.append("<h2>Per-rep metrics</h2>")
    lines.append("<table border='1'><tr>" + "".join(f"<th>{c}</th>" for c in col_labels) + "</tr>")
    for r in session.reps:
        cells = [
            r.rep_number,
            r.form_grade,
            _fmt(r.overall_form_score),
            _fmt(r.lowest_knee_angle, 1),
            f"{r.depth_percentage:.0f}% ({r.depth_description})",
            _fmt(r.reached_parallel),
            _fmt(r.reached_bottom),
            _fmt(r.knee_tracking_score),
            _fmt(r.trunk_score),
            _fmt(r.symmetry_score),
            _fmt(r.max_trunk_angle, 1),
            _fmt(r.descent_s),
            _fmt(r.bottom_s),
            _fmt(r.ascent_s),
        ]
        tds = "".join(f'<td data-label="{label}">{val}</td>' for label, val in zip(col_labels, cells))
        lines.append(f"<tr>{tds}</tr>")
    lines.append("</table>")

    rom = metrics.get("range_of_motion") or {}
    if rom:
        lines.append("<h2>Range of motion</h2>")
        lines.append("<table border='1'><tr><th>Joint</th><th>Min (deg)</th><th>Max (deg)</th><th>Range (deg)</th><th>Category</th></tr>")
        for name, r in rom.items():
            lines.append(
                f"<tr><td>{html.escape(name)}</td><td>{r['min_degrees']:.1f}</td><td>{r['max_degrees']:.1f}</td>"
                f"<td>{r['range_degrees']:.1f}</td><td>{r['category']}</td></tr>"
            )
        lines.append("</table>")
    lines.append("</body></html>")
    return "\n".join(lines)


def _plot_series(values: list[float], ylabel: str, title: str, path: str, xs: Optional[list[float]] = None, xlabel: str = "Rep") -> None:
    plt.figure(figsize=(6, 4))
    plt.plot(xs if xs is not None else range(1, len(values) + 1), values, "o-" if xs is None else "-")
    plt.xlabel(xlabel)
    plt.ylabel(ylabel)
    plt.title(title)
    plt.savefig(path, dpi=100)
    plt.close()


def write_session_report(
    session: SquatSession,
    output_dir: str,
    rom: Optional[dict[str, RangeOfMotion]] = None,
    knee_trace: Optional[list[tuple[float, float]]] = None,
    frames_processed: Optional[int] = None,
    frames_rejected: Optional[int] = None,
    source: str = "replay",
) -> dict[str, str]:
    """
    Write session_metrics.json and report.html, plus form/depth plots when there
    are reps and a knee-angle plot when ``knee_trace`` ((seconds, degrees) pairs)
    is given. Returns the written paths keyed by artifact name.
    """
    os.makedirs(output_dir, exist_ok=True)
    metrics = session_metrics(session, rom, frames_processed, frames_rejected, source)
    paths = {
        "metrics": os.path.join(output_dir, "session_metrics.json"),
        "report": os.path.join(output_dir, "report.html"),
    }
    with open(paths["metrics"], "w") as f:
        json.dump(metrics, f, indent=2)
    with open(paths["report"], "w") as f:
        f.write(_html_report(session, metrics, source))

    if session.reps:
        paths["form_plot"] = os.path.join(output_dir, "form_by_rep.png")
        _plot_series(session.form_score_trend, "Form score", "Form by rep", paths["form_plot"])
        paths["depth_plot"] = os.path.join(output_dir, "depth_by_rep.png")
        _plot_series(session.depth_trend, "Depth (%)", "Depth by rep", paths["depth_plot"])
    if knee_trace:
        paths["knee_plot"] = os.path.join(output_dir, "knee_angle.png")
        _plot_series(
            [a for _, a in knee_trace], "Knee angle (deg)", "Knee angle over time",
            paths["knee_plot"], xs=[t for t, _ in knee_trace], xlabel="Time (s)",
        )
    logger.info("report: %s reps written to %s", session.total_reps, output_dir)
    return paths
