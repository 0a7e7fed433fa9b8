import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from pose_builders import make_inverted_pose, make_pose  # noqa: E402


@pytest.fixture
def standing_pose():
    return make_pose(170.0, timestamp_us=0, frame_index=0)


@pytest.fixture
def inverted_pose():
    return make_inverted_pose()
