"""Tests for the temporal smoother."""

import math

import numpy as np
import pytest


def _yaw(angle):
    return np.array([0.0, math.sin(angle / 2), 0.0, math.cos(angle / 2)])


class TestTemporalSmoother:
    def test_nothing_moves_without_target(self):
        from PalmAnchorTracker.temporal_smoother import TemporalSmoother

        smoother = TemporalSmoother()
        for _ in range(10):
            pose = smoother.tick()

        np.testing.assert_array_equal(pose.position, [0.0, 0.0, 0.0])
        np.testing.assert_array_equal(pose.scale, [1.0, 1.0, 1.0])
        np.testing.assert_array_equal(pose.orientation, [0.0, 0.0, 0.0, 1.0])
        assert smoother.has_target is False
        assert smoother.tick_count == 10

    def test_position_first_step(self):
        from PalmAnchorTracker.temporal_smoother import TemporalSmoother

        smoother = TemporalSmoother()
        smoother.set_target(position=np.array([1.0, 2.0, -10.0]))
        pose = smoother.tick()
        np.testing.assert_allclose(pose.position, [0.2, 0.4, -2.0])

    def test_position_converges_monotonically(self):
        from PalmAnchorTracker.temporal_smoother import TemporalSmoother

        target = np.array([1.5, 2.3, -10.0])
        smoother = TemporalSmoother()
        smoother.set_target(position=target)

        previous = np.linalg.norm(target)
        for n in range(1, 61):
            distance = np.linalg.norm(smoother.tick().position - target)
            assert distance < previous
            assert distance == pytest.approx(np.linalg.norm(target) * 0.8 ** n)
            previous = distance

        assert previous < 1e-4

    def test_scale_is_isotropic_and_slower(self):
        from PalmAnchorTracker.temporal_smoother import TemporalSmoother

        smoother = TemporalSmoother()
        smoother.set_target(scale=2.0)
        pose = smoother.tick()
        np.testing.assert_allclose(pose.scale, [1.1, 1.1, 1.1])

        for _ in range(200):
            pose = smoother.tick()
        np.testing.assert_allclose(pose.scale, [2.0, 2.0, 2.0], atol=1e-6)

    def test_orientation_converges_and_stays_unit(self):
        from PalmAnchorTracker.geometry import quaternion_angle
        from PalmAnchorTracker.temporal_smoother import TemporalSmoother

        target = _yaw(math.pi / 2)
        smoother = TemporalSmoother()
        smoother.set_target(orientation=target)

        previous = quaternion_angle(smoother.pose.orientation, target)
        for _ in range(100):
            pose = smoother.tick()
            assert np.linalg.norm(pose.orientation) == pytest.approx(1.0, abs=1e-12)
            angle = quaternion_angle(pose.orientation, target)
            assert angle <= previous + 1e-12
            previous = angle

        assert previous < 1e-4

    def test_first_orientation_step(self):
        from PalmAnchorTracker.geometry import quaternion_angle
        from PalmAnchorTracker.temporal_smoother import TemporalSmoother

        smoother = TemporalSmoother()
        pose = smoother.tick(raw_orientation=_yaw(1.0))
        assert quaternion_angle(pose.orientation, _yaw(0.0)) == pytest.approx(0.15)

    def test_absent_values_keep_last_target(self):
        from PalmAnchorTracker.temporal_smoother import TemporalSmoother

        smoother = TemporalSmoother()
        smoother.tick(raw_position=np.array([1.0, 0.0, 0.0]))
        pose = smoother.tick()
        np.testing.assert_allclose(pose.position, [0.36, 0.0, 0.0])

    def test_non_finite_position_rejected(self):
        from PalmAnchorTracker.temporal_smoother import TemporalSmoother

        smoother = TemporalSmoother()
        smoother.set_target(position=np.array([np.nan, 0.0, 0.0]))
        assert smoother.has_target is False

        smoother.set_target(position=np.array([1.0, 1.0, 1.0]))
        smoother.set_target(position=np.array([np.inf, 0.0, 0.0]))
        pose = smoother.tick()
        np.testing.assert_allclose(pose.position, [0.2, 0.2, 0.2])
        assert pose.is_finite()

    def test_invalid_scale_and_orientation_rejected(self):
        from PalmAnchorTracker.temporal_smoother import TemporalSmoother

        smoother = TemporalSmoother()
        smoother.set_target(scale=float("nan"))
        smoother.set_target(scale=-1.0)
        smoother.set_target(orientation=np.zeros(4))
        assert smoother.has_target is False

    def test_pose_is_a_snapshot(self):
        from PalmAnchorTracker.temporal_smoother import TemporalSmoother

        smoother = TemporalSmoother()
        pose = smoother.tick(raw_position=np.array([1.0, 0.0, 0.0]))
        pose.position[0] = 99.0
        assert smoother.pose.position[0] == pytest.approx(0.2)

    @pytest.mark.parametrize("field", ["position", "scale", "orientation"])
    def test_blend_out_of_range(self, field):
        from PalmAnchorTracker.config import SmoothingSettings
        from PalmAnchorTracker.temporal_smoother import TemporalSmoother

        with pytest.raises(ValueError):
            TemporalSmoother(SmoothingSettings(**{field: 1.5}))

    def test_reset(self):
        from PalmAnchorTracker.temporal_smoother import TemporalSmoother

        smoother = TemporalSmoother()
        smoother.tick(raw_position=np.ones(3), raw_scale=3.0)
        smoother.reset()
        assert smoother.has_target is False
        np.testing.assert_array_equal(smoother.pose.position, np.zeros(3))
        assert smoother.tick_count == 0
