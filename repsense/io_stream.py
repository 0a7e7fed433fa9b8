"""
Frame source for recorded landmark streams.
Yields PoseFrames from a JSON recording or a JSON-lines file (one frame per line).
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Generator, Iterable

from .pose import PoseFrame, frame_from_keypoints

logger = logging.getLogger(__name__)

# Used when a keypoint recording carries no fps
DEFAULT_FPS = 30.0


def _decode(raw: dict[str, Any], fps: float, image_size) -> PoseFrame:
    if "landmarks" in raw:
        return PoseFrame.from_dict(raw)
    # detector dump: {"frame": i, "keypoints": [[x, y], ...], "confidences": [...]}
    idx = int(raw["frame"])
    ts = raw.get("timestamp_us")
    if ts is None:
        ts = round(idx / fps * 1_000_000)
    return frame_from_keypoints(
        raw["keypoints"],
        timestamp_us=int(ts),
        frame_index=idx,
        image_size=tuple(image_size) if image_size else None,
        confidences=raw.get("confidences"),
    )


def _frames_from(records: Iterable[tuple[int, Any]], fps: float, image_size, path: str) -> Generator[PoseFrame, None, None]:
    for pos, raw in records:
        try:
            yield _decode(raw, fps, image_size)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("%s: skipping frame record %s: %s", path, pos, e)


def _jsonl_records(f, path: str) -> Generator[tuple[int, Any], None, None]:
    for lineno, line in enumerate(f, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            yield lineno, json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("%s: line %s is not valid JSON: %s", path, lineno, e)


def landmark_frames(path: str) -> Generator[PoseFrame, None, None]:
    """
    Yield frames from a recording, in file order.
    ``.jsonl`` files hold one frame object per line; anything else is read as a
    JSON document ``{"frames": [...], "fps": ..., "image_size": [w, h]}`` or a
    bare list of frames. Undecodable frames are logged and skipped.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Cannot open recording: {path}")
    if path.endswith(".jsonl"):
        with open(path) as f:
            yield from _frames_from(_jsonl_records(f, path), DEFAULT_FPS, None, path)
        return

    with open(path) as f:
        data = json.load(f)
    if isinstance(data, list):
        data = {"frames": data}
    fps = float(data.get("fps") or data.get("fps_est") or DEFAULT_FPS)
    yield from _frames_from(enumerate(data.get("frames", [])), fps, data.get("image_size"), path)


def write_recording(frames: Iterable[PoseFrame], path: str) -> int:
    """Save frames in the format ``landmark_frames`` reads. Returns the frame count."""
    out = [fr.to_dict() for fr in frames]
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w") as f:
        if path.endswith(".jsonl"):
            for d in out:
                f.write(json.dumps(d) + "\n")
        else:
            json.dump({"frames": out}, f, indent=2)
    return len(out)
