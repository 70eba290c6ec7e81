"""Shared test fixtures for PalmAnchorTracker tests."""

import pytest

from PalmAnchorTracker.landmarks import HandLandmarks, LandmarkIndex


# Upright open palm facing the camera, fingers pointing up the image
WRIST = (0.5, 0.5, 0.0)
MIDDLE_MCP = (0.5, 0.4, 0.05)
INDEX_MCP = (0.45, 0.42, 0.05)
PINKY_MCP = (0.55, 0.42, 0.05)


def build_hand(
    wrist=WRIST,
    middle=MIDDLE_MCP,
    index=INDEX_MCP,
    pinky=PINKY_MCP,
    count=21
) -> HandLandmarks:
    """21 landmarks with the four used by pose extraction set explicitly."""
    points = [middle] * 21
    points[LandmarkIndex.WRIST] = wrist
    points[LandmarkIndex.INDEX_MCP] = index
    points[LandmarkIndex.MIDDLE_MCP] = middle
    points[LandmarkIndex.PINKY_MCP] = pinky
    return HandLandmarks.from_points(points[:count])


@pytest.fixture
def make_hand():
    return build_hand


@pytest.fixture
def open_palm():
    return build_hand()
