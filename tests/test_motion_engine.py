import numpy as np
import pytest

import rotations
from keyframes import KeyFrameTrack
from motion_engine import PathCache, evaluate, interpolate_keyframes, locate_bracket, sample_interval
from pose import Pose


def _track(points, times=None, orientations=None):
    track = KeyFrameTrack()
    for i, p in enumerate(points):
        q = orientations[i] if orientations is not None else (0, 0, 0, 1)
        track.add_keyframe(Pose(p, q), None if times is None else times[i])
    return track


TIMES = np.array([0.0, 1.0, 2.0, 3.0])


@pytest.mark.parametrize("time, expected", [
    (1.5, (0, 1, 2, 3)),
    (0.5, (0, 0, 1, 2)),
    (2.5, (1, 2, 3, 3)),
    (1.0, (0, 1, 1, 2)),
    (0.0, (0, 0, 0, 1)),
    (-1.0, (0, 0, 0, 1)),
    (3.0, (2, 3, 3, 3)),
    (7.0, (2, 3, 3, 3)),
])
def test_locate_bracket(time, expected):
    assert locate_bracket(time, TIMES) == expected


def test_locate_bracket_single_keyframe():
    assert locate_bracket(0.3, np.array([0.0])) == (0, 0, 0, 0)


def test_locate_bracket_empty():
    with pytest.raises(ValueError):
        locate_bracket(0.0, np.array([]))


def test_sample_interval():
    assert sample_interval(30, 1.0) == pytest.approx(1 / 30)
    assert sample_interval(30, 2.0) == pytest.approx(1 / 60)
    assert sample_interval(25, 0.5) == pytest.approx(0.08)


class TestEvaluate:
    def test_collinear_midpoint(self):
        track = _track([(0, 0, 0), (1, 0, 0), (2, 0, 0)], times=[0, 1, 2])
        track.recompute_tangents()
        pose = evaluate(0.5, track.keyframes)
        assert 0.0 < pose.position[0] < 1.0
        assert pose.position[1] == 0.0
        assert pose.position[2] == 0.0
        assert pose.position[0] == pytest.approx(0.375)

    def test_passes_through_keyframes(self):
        qs = [rotations.from_euler_deg(a, b) for a, b in [(0, 0), (40, 10), (-30, 5)]]
        track = _track([(0, 0, 0), (1, 2, 0), (3, 1, 1)], times=[0.0, 0.7, 2.0], orientations=qs)
        track.recompute_tangents()
        for i in range(3):
            pose = evaluate(track.keyframe_time(i), track.keyframes)
            assert pose.allclose(track.keyframe(i), atol=1e-9)

    def test_clamped_outside_track(self):
        track = _track([(0, 0, 0), (1, 1, 0), (2, 0, 0)], times=[1.0, 2.0, 3.0])
        track.recompute_tangents()
        assert evaluate(0.0, track.keyframes).allclose(track.keyframe(0))
        assert evaluate(9.0, track.keyframes).allclose(track.keyframe(2))

    def test_orientation_between_keyframes(self):
        qs = [rotations.from_euler_deg(0, 0), rotations.from_euler_deg(90, 0)]
        track = _track([(0, 0, 0), (1, 0, 0)], times=[0, 1], orientations=qs)
        track.recompute_tangents()
        pan, tilt, _ = rotations.to_euler_deg(evaluate(0.5, track.keyframes).orientation)
        assert 0.0 < pan < 90.0
        assert tilt == pytest.approx(0.0, abs=1e-9)


class TestPathCache:
    def test_empty_track(self):
        cache = PathCache()
        assert cache.rebuild(KeyFrameTrack(), 0.1) == []
        assert cache.valid
        assert cache.positions().shape == (0, 3)

    def test_single_keyframe(self):
        cache = PathCache()
        samples = cache.rebuild(_track([(1, 2, 3)]), 0.1)
        assert len(samples) == 1
        assert samples[0].allclose(Pose([1, 2, 3], [0, 0, 0, 1]))

    def test_rebuild_covers_track(self):
        track = _track([(0, 0, 0), (1, 1, 0), (2, 0, 0)], times=[0, 1, 2])
        samples = PathCache().rebuild(track, 0.1)
        assert len(samples) >= 21
        assert samples[0].allclose(track.keyframe(0))
        assert samples[-1].allclose(track.keyframe(2))

    def test_rebuild_is_idempotent(self):
        track = _track([(0, 0, 0), (1, 1, 0), (2, 0, 1), (4, 0, 0)])
        cache = PathCache()
        first = cache.rebuild(track, 1 / 30)
        second = cache.rebuild(track, 1 / 30)
        assert first is not second
        assert len(first) == len(second)
        for a, b in zip(first, second):
            np.testing.assert_array_equal(a.position, b.position)
            np.testing.assert_array_equal(a.orientation, b.orientation)

    def test_invalidate_and_clear(self):
        cache = PathCache()
        cache.rebuild(_track([(0, 0, 0), (1, 0, 0)]), 0.1)
        cache.invalidate()
        assert not cache.valid
        assert len(cache) > 0
        cache.clear()
        assert len(cache) == 0


class TestSmooth:
    def test_keeps_end_points(self):
        track = _track([(0, 0, 0), (1, 1, 0), (2, 0, 0), (3, 1, 0)], times=[0, 1, 2, 3])
        cache = PathCache()
        cache.rebuild(track, 0.05)
        assert cache.smooth(track.duration(), track.first_time(), 0.05)
        assert cache[0].allclose(track.keyframe(0), atol=1e-9)
        assert cache[-1].allclose(track.keyframe(3), atol=1e-6)

    def test_does_not_touch_track(self):
        track = _track([(0, 0, 0), (1, 1, 0), (2, 0, 0)], times=[0, 1, 2])
        cache = PathCache()
        cache.rebuild(track, 0.1)
        cache.smooth(track.duration(), track.first_time(), 0.1)
        assert len(track) == 3
        np.testing.assert_allclose(track.times(), [0, 1, 2])

    def test_respects_track_start_time(self):
        track = _track([(0, 0, 0), (1, 1, 0), (2, 0, 0)], times=[5, 6, 7])
        cache = PathCache()
        cache.rebuild(track, 0.1)
        assert cache.smooth(track.duration(), track.first_time(), 0.1)
        assert cache[0].allclose(track.keyframe(0), atol=1e-9)
        assert cache[-1].allclose(track.keyframe(2), atol=1e-6)

    def test_skipped_for_too_few_samples(self):
        cache = PathCache()
        cache.rebuild(_track([(0, 0, 0)]), 0.1)
        assert not cache.smooth(0.0, 0.0, 0.1)
        assert len(cache) == 1

    def test_skipped_for_rotation_only_path(self, caplog):
        qs = [rotations.from_euler_deg(a, 0) for a in (0, 45, 90)]
        track = _track([(0, 0, 0)] * 3, times=[0, 1, 2], orientations=qs)
        cache = PathCache()
        before = cache.rebuild(track, 0.1)
        assert not cache.smooth(track.duration(), track.first_time(), 0.1)
        assert cache.samples is before
        assert "Smoothing skipped" in caplog.text


def test_interpolate_keyframes_empty():
    assert interpolate_keyframes([], 0.1, 0.0, 0.0) == []
