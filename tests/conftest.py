"""
pytest configuration: shared synthetic cameras and scenes.
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tests.synthetic import make_camera_pair, make_scene  # noqa: E402


@pytest.fixture
def camera_pair():
    return make_camera_pair()


@pytest.fixture
def scene():
    return make_scene()
