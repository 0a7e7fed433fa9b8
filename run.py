#!/usr/bin/env python3
"""
Squat analysis from a recorded landmark stream.
Usage:
  python run.py --landmarks path/to/recording.json [--output-dir outputs] [--preset strict]
"""
from __future__ import annotations

import argparse
import logging
import os
import sys

# Run from project root so repsense is importable
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from repsense.config import InvalidConfigError, PipelineConfig
from repsense.io_stream import landmark_frames
from repsense.pipeline import PoseAnalysisPipeline
from repsense.report import write_session_report


def run_replay(
    landmarks_path: str,
    output_dir: str = "outputs",
    config: PipelineConfig | None = None,
) -> PoseAnalysisPipeline:
    """Feed every recorded frame through the pipeline and write the report."""
    pipeline = PoseAnalysisPipeline(config)
    knee_trace: list[tuple[float, float]] = []
    t0 = None
    for frame in landmark_frames(landmarks_path):
        result = pipeline.process(frame)
        if t0 is None:
            t0 = frame.timestamp_us
        metrics = result.squat_metrics
        if result.accepted and metrics is not None and metrics.knee_angle is not None:
            knee_trace.append(((frame.timestamp_us - t0) / 1_000_000.0, metrics.knee_angle))

    write_session_report(
        pipeline.session_summary(),
        output_dir,
        rom=pipeline.rom.records,
        knee_trace=knee_trace,
        frames_processed=pipeline.frames_processed,
        frames_rejected=pipeline.frames_rejected,
        source=os.path.basename(landmarks_path),
    )
    return pipeline


def main() -> None:
    ap = argparse.ArgumentParser(description="Squat analysis: replay a landmark recording")
    ap.add_argument("--landmarks", type=str, required=True, help="Path to a .json or .jsonl landmark recording")
    ap.add_argument("--output-dir", type=str, default="outputs", help="Output directory")
    ap.add_argument("--preset", choices=["default", "strict", "lenient"], default="default", help="Validator strictness")
    ap.add_argument("--no-validation", action="store_true", help="Analyze every frame without the plausibility gate")
    ap.add_argument("--log-level", type=str, default="INFO", help="Logging level (DEBUG, INFO, WARNING)")
    args = ap.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not os.path.isfile(args.landmarks):
        print(f"Error: landmark recording not found: {args.landmarks}", file=sys.stderr)
        sys.exit(1)
    try:
        config = PipelineConfig.preset(args.preset)
    except InvalidConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if args.no_validation:
        config = config.with_overrides(enable_validation=False)

    try:
        pipeline = run_replay(args.landmarks, output_dir=args.output_dir, config=config)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(
        f"Replay done. Reps: {pipeline.analyzer.completed_rep_count}. "
        f"Frames: {pipeline.frames_processed} ({pipeline.frames_rejected} rejected). "
        f"Report: {args.output_dir}/report.html"
    )


if __name__ == "__main__":
    main()
