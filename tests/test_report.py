"""Tests for the session report and the replay CLI."""

import json
import sys

import pytest

from pose_builders import DEEP_REP, knee_angle_sequence

import run
from repsense.config import FilterConfig, PipelineConfig
from repsense.io_stream import write_recording
from repsense.reps import SquatRep, SquatSession
from repsense.report import coaching_tips, fatigue_summary, session_metrics, write_session_report


def _rep(n, score=0.9, depth=110.0, parallel=True, start_us=0, end_us=1_000_000):
    return SquatRep(
        rep_number=n, start_frame=0, end_frame=10, start_timestamp_us=start_us, end_timestamp_us=end_us,
        lowest_knee_angle=85.0, depth_percentage=depth, reached_parallel=parallel, reached_bottom=True,
        descent_s=0.4, bottom_s=0.2, ascent_s=0.4, knee_tracking_score=0.9, trunk_score=0.9,
        symmetry_score=0.9, overall_form_score=score, max_trunk_angle=30.0, avg_knee_valgus=0.5,
    )


def _session(*reps):
    return SquatSession(start_timestamp_us=0, reps=tuple(reps))


# ============================================================================
# Report content
# ============================================================================

class TestReportContent:
    def test_fatigue_needs_two_reps(self):
        assert "Insufficient reps" in fatigue_summary(_session(_rep(1)))

    def test_fatigue_compares_first_and_last(self):
        text = fatigue_summary(_session(_rep(1, depth=100.0), _rep(2, depth=80.0, start_us=2_000_000, end_us=3_000_000)))
        assert "depth change -20.0%" in text

    def test_tips(self):
        assert coaching_tips(_session()) == []
        assert coaching_tips(_session(_rep(1))) == ["Nice work, keep the same cues next set."]
        shallow = _session(_rep(1, parallel=False))
        assert "Try to reach parallel on most reps." in coaching_tips(shallow)

    def test_metrics_include_frame_counts(self):
        data = session_metrics(_session(_rep(1)), frames_processed=40, frames_rejected=3, source="clip.json")
        assert data["total_reps"] == 1
        assert data["frames_rejected"] == 3
        assert data["source"] == "clip.json"
        assert data["range_of_motion"] == {}


# ============================================================================
# Written artifacts
# ============================================================================

class TestWriteReport:
    def test_empty_session_writes_metrics_and_html_only(self, tmp_path):
        paths = write_session_report(_session(), str(tmp_path))
        assert set(paths) == {"metrics", "report"}
        assert json.loads((tmp_path / "session_metrics.json").read_text())["total_reps"] == 0
        assert "Squat Analysis Report" in (tmp_path / "report.html").read_text()

    def test_plots_for_reps_and_trace(self, tmp_path):
        paths = write_session_report(
            _session(_rep(1), _rep(2, start_us=2_000_000, end_us=3_000_000)),
            str(tmp_path / "out"),
            knee_trace=[(0.0, 170.0), (0.5, 90.0), (1.0, 170.0)],
        )
        for key in ("form_plot", "depth_plot", "knee_plot"):
            with open(paths[key], "rb") as f:
                assert f.read(8) == b"\x89PNG\r\n\x1a\n"


# ============================================================================
# Replay CLI
# ============================================================================

class TestReplay:
    def test_run_replay(self, tmp_path):
        recording = str(tmp_path / "set.jsonl")
        write_recording(knee_angle_sequence(DEEP_REP * 2, spacing_us=40_000), recording)
        out = tmp_path / "out"
        pipeline = run.run_replay(recording, str(out), PipelineConfig(filter=FilterConfig(min_cutoff=1000.0)))
        assert pipeline.analyzer.completed_rep_count == 2
        data = json.loads((out / "session_metrics.json").read_text())
        assert data["total_reps"] == 2
        assert data["frames_processed"] == len(DEEP_REP) * 2
        assert data["source"] == "set.jsonl"
        assert "left_knee" in data["range_of_motion"]
        assert (out / "knee_angle.png").exists()

    def test_main_missing_file_exits(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["run.py", "--landmarks", str(tmp_path / "missing.json")])
        with pytest.raises(SystemExit) as exc:
            run.main()
        assert exc.value.code == 1
        assert "not found" in capsys.readouterr().err

    def test_main_prints_summary(self, tmp_path, monkeypatch, capsys):
        recording = str(tmp_path / "set.json")
        write_recording(knee_angle_sequence([170, 170, 170]), recording)
        out = str(tmp_path / "out")
        monkeypatch.setattr(
            sys, "argv", ["run.py", "--landmarks", recording, "--output-dir", out, "--no-validation"]
        )
        run.main()
        assert "Reps: 0" in capsys.readouterr().out
