"""Tests for the viewport projector."""

import math

import numpy as np
import pytest


HALF_HEIGHT = 5.0 * math.tan(math.radians(25.0))


class TestViewportProjector:
    def test_visible_extent(self):
        from PalmAnchorTracker.viewport_projector import ViewportProjector

        projector = ViewportProjector(aspect=16 / 9)
        assert projector.visible_height == pytest.approx(2 * HALF_HEIGHT)
        assert projector.visible_width == pytest.approx(2 * HALF_HEIGHT * 16 / 9)

    def test_center_is_lifted_one_device_unit(self):
        from PalmAnchorTracker.viewport_projector import ViewportProjector

        projector = ViewportProjector(mirrored=False)
        world = projector.project(np.array([0.5, 0.5, 0.0]))
        np.testing.assert_allclose(world, [0.0, HALF_HEIGHT, -10.0])

    def test_vertical_mapping(self):
        from PalmAnchorTracker.viewport_projector import ViewportProjector

        projector = ViewportProjector()
        assert projector.to_device(0.5, 0.0)[1] == pytest.approx(2.0)
        assert projector.to_device(0.5, 1.0)[1] == pytest.approx(0.0)

    def test_depth_is_fixed(self):
        from PalmAnchorTracker.viewport_projector import ViewportProjector

        projector = ViewportProjector()
        for z in (-0.3, 0.0, 0.4):
            assert projector.project(np.array([0.2, 0.7, z]))[2] == -10.0

    @pytest.mark.parametrize("nx,ny", [(0.1, 0.2), (0.5, 0.5), (0.73, 0.9), (0.0, 1.0)])
    def test_mirror_symmetry(self, nx, ny):
        from PalmAnchorTracker.viewport_projector import ViewportProjector

        mirrored = ViewportProjector(mirrored=True, aspect=4 / 3)
        plain = ViewportProjector(mirrored=False, aspect=4 / 3)

        a = mirrored.project(np.array([nx, ny]))
        b = plain.project(np.array([1.0 - nx, ny]))
        c = plain.project(np.array([nx, ny]))

        np.testing.assert_allclose(a, b)
        assert a[0] == pytest.approx(-c[0])
        assert a[1] == pytest.approx(c[1])

    def test_edges_reach_frustum_bounds(self):
        from PalmAnchorTracker.viewport_projector import ViewportProjector

        projector = ViewportProjector(mirrored=False, aspect=2.0)
        left = projector.project(np.array([0.0, 0.5]))
        right = projector.project(np.array([1.0, 0.5]))
        assert left[0] == pytest.approx(-projector.visible_width / 2)
        assert right[0] == pytest.approx(projector.visible_width / 2)

    def test_custom_settings(self):
        from PalmAnchorTracker.config import ViewportSettings
        from PalmAnchorTracker.viewport_projector import ViewportProjector

        projector = ViewportProjector(ViewportSettings(fov_deg=90.0, distance=1.0, anchor_depth=-3.0))
        assert projector.visible_height == pytest.approx(2.0)
        assert projector.project(np.array([0.5, 0.5]))[2] == -3.0

    def test_invalid_parameters(self):
        from PalmAnchorTracker.config import ViewportSettings
        from PalmAnchorTracker.viewport_projector import ViewportProjector

        with pytest.raises(ValueError):
            ViewportProjector(aspect=-1.0)
        with pytest.raises(ValueError):
            ViewportProjector(ViewportSettings(fov_deg=180.0))
