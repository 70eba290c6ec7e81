"""Tests for the anchor pipeline orchestration."""

import math
import threading

import numpy as np
import pytest


HALF_HEIGHT = 5.0 * math.tan(math.radians(25.0))


def _coincident_hand(make_hand):
    same = (0.4, 0.4, 0.0)
    return make_hand(same, same, same, same)


class TestAnchorPipeline:
    def test_end_to_end_palm_facing_camera(self, open_palm):
        from PalmAnchorTracker.anchor_pipeline import AnchorPipeline
        from PalmAnchorTracker.pose_extractor import ForwardSource

        pipeline = AnchorPipeline(mirrored=False, aspect=1.0)
        assert pipeline.process_detection(open_palm, 0.0) is True

        raw = pipeline.latest_raw_pose
        assert raw.forward_source is ForwardSource.PALM_NORMAL
        assert raw.scale == pytest.approx(1.2)
        np.testing.assert_allclose(pipeline.latest_world_position, [0.0, HALF_HEIGHT, -10.0])

        for _ in range(120):
            frame = pipeline.tick()

        assert frame.visible is True
        assert frame.position[0] == pytest.approx(0.0, abs=1e-9)
        assert frame.position[1] == pytest.approx(HALF_HEIGHT, abs=1e-6)
        assert frame.position[2] == pytest.approx(-10.0, abs=1e-6)
        assert frame.scale == pytest.approx(1.2, abs=1e-4)
        np.testing.assert_allclose(frame.orientation, [0.0, 0.0, 0.0, 1.0], atol=1e-9)

    def test_no_hand_never_moves(self):
        from PalmAnchorTracker.anchor_pipeline import AnchorPipeline

        pipeline = AnchorPipeline()
        assert pipeline.process_detection(None, 0.0) is False
        frame = pipeline.tick()
        assert frame.visible is False
        assert frame.position == (0.0, 0.0, 0.0)
        assert frame.scale == 1.0
        assert frame.orientation == (0.0, 0.0, 0.0, 1.0)

    def test_first_tick_moves_a_fifth_of_the_way(self, open_palm):
        from PalmAnchorTracker.anchor_pipeline import AnchorPipeline

        pipeline = AnchorPipeline(mirrored=False)
        pipeline.process_detection(open_palm, 0.0)
        frame = pipeline.tick()
        assert frame.position[1] == pytest.approx(0.2 * HALF_HEIGHT)
        assert frame.scale == pytest.approx(1.0 + 0.1 * 0.2)

    def test_mirroring_applied_once(self, make_hand):
        from PalmAnchorTracker.anchor_pipeline import AnchorPipeline

        hand = make_hand(
            wrist=(0.2, 0.5, 0.0),
            middle=(0.2, 0.4, 0.05),
            index=(0.15, 0.42, 0.05),
            pinky=(0.25, 0.42, 0.05),
        )
        mirrored = AnchorPipeline(mirrored=True)
        plain = AnchorPipeline(mirrored=False)
        mirrored.process_detection(hand, 0.0)
        plain.process_detection(hand, 0.0)

        m = mirrored.latest_world_position
        p = plain.latest_world_position
        assert m[0] == pytest.approx(-p[0])
        assert m[0] > 0.0

    def test_detector_exception_counts_as_no_hand(self, open_palm):
        from PalmAnchorTracker.anchor_pipeline import AnchorPipeline

        def broken():
            raise RuntimeError("model crashed")

        pipeline = AnchorPipeline()
        assert pipeline.run_detection(broken, 0.0) is False
        assert pipeline.failure_count == 1

        pipeline.run_detection(lambda: open_palm, 10.0)
        assert pipeline.run_detection(broken, 40.0) is True
        assert pipeline.run_detection(broken, 70.0) is False
        assert pipeline.failure_count == 3
        assert pipeline.detection_count == 4

    def test_degenerate_keeps_presence_and_pose(self, open_palm, make_hand):
        from PalmAnchorTracker.anchor_pipeline import AnchorPipeline

        pipeline = AnchorPipeline()
        pipeline.process_detection(open_palm, 0.0)
        raw = pipeline.latest_raw_pose
        position = pipeline.latest_world_position

        for t in (100.0, 200.0, 300.0):
            assert pipeline.process_detection(_coincident_hand(make_hand), t) is True

        assert pipeline.latest_raw_pose is raw
        np.testing.assert_allclose(pipeline.latest_world_position, position)

        for _ in range(5):
            frame = pipeline.tick()
        assert all(math.isfinite(v) for v in frame.position)
        assert all(math.isfinite(v) for v in frame.orientation)

    def test_hides_after_hysteresis(self, open_palm):
        from PalmAnchorTracker.anchor_pipeline import AnchorPipeline

        pipeline = AnchorPipeline()
        pipeline.process_detection(open_palm, 0.0)
        pipeline.process_detection(None, 30.0)
        assert pipeline.tick().visible is True
        pipeline.process_detection(None, 60.0)
        assert pipeline.tick().visible is False

    def test_pose_keeps_converging_while_hidden(self, open_palm):
        from PalmAnchorTracker.anchor_pipeline import AnchorPipeline

        pipeline = AnchorPipeline(mirrored=False)
        pipeline.process_detection(open_palm, 0.0)
        pipeline.process_detection(None, 100.0)
        first = pipeline.tick()
        second = pipeline.tick()
        assert first.visible is False
        assert second.position[1] > first.position[1]

    def test_snapshot_does_not_advance(self, open_palm):
        from PalmAnchorTracker.anchor_pipeline import AnchorPipeline

        pipeline = AnchorPipeline()
        pipeline.process_detection(open_palm, 0.0)
        ticked = pipeline.tick()
        assert pipeline.snapshot() == ticked
        assert pipeline.snapshot() == ticked

    def test_snapshot_is_immutable(self):
        from dataclasses import FrozenInstanceError

        from PalmAnchorTracker.anchor_pipeline import AnchorPipeline

        frame = AnchorPipeline().snapshot()
        with pytest.raises(FrozenInstanceError):
            frame.visible = True

    def test_concurrent_detection_and_display(self, open_palm):
        from PalmAnchorTracker.anchor_pipeline import AnchorPipeline

        pipeline = AnchorPipeline()
        errors = []

        def detect_loop():
            try:
                for i in range(300):
                    pipeline.process_detection(open_palm if i % 3 else None, float(i))
            except Exception as e:
                errors.append(e)

        def display_loop():
            try:
                for _ in range(300):
                    frame = pipeline.tick()
                    assert all(math.isfinite(v) for v in frame.position)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=detect_loop), threading.Thread(target=display_loop)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert pipeline.detection_count == 300

    def test_reset(self, open_palm):
        from PalmAnchorTracker.anchor_pipeline import AnchorPipeline

        pipeline = AnchorPipeline()
        pipeline.process_detection(open_palm, 0.0)
        pipeline.tick()
        pipeline.reset()
        frame = pipeline.snapshot()
        assert frame.visible is False
        assert frame.position == (0.0, 0.0, 0.0)
        assert pipeline.latest_raw_pose is None
