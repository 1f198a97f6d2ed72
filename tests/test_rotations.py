import math

import numpy as np
import pytest

import rotations


def _z_quat(deg):
    half = math.radians(deg) / 2.0
    return np.array([0.0, 0.0, math.sin(half), math.cos(half)])


def _same_rotation(a, b, atol=1e-9):
    return abs(abs(np.dot(a, b)) - 1.0) < atol


def test_multiply_identity():
    q = _z_quat(30)
    np.testing.assert_allclose(rotations.multiply(q, rotations.IDENTITY), q)
    np.testing.assert_allclose(rotations.multiply(rotations.IDENTITY, q), q)


def test_multiply_composes_rotations():
    np.testing.assert_allclose(rotations.multiply(_z_quat(30), _z_quat(60)), _z_quat(90), atol=1e-12)


def test_inverse():
    q = rotations.normalize([0.1, -0.4, 0.3, 0.8])
    np.testing.assert_allclose(rotations.multiply(q, rotations.inverse(q)), rotations.IDENTITY, atol=1e-12)


def test_normalize_zero_raises():
    with pytest.raises(ValueError):
        rotations.normalize([0, 0, 0, 0])


def test_log_exp_roundtrip():
    q = rotations.normalize([0.2, 0.1, -0.3, 0.9])
    np.testing.assert_allclose(rotations.exp(rotations.log(q)), q, atol=1e-12)


def test_log_of_identity_is_zero():
    np.testing.assert_allclose(rotations.log(rotations.IDENTITY), np.zeros(4))


class TestSlerp:
    def test_endpoints(self):
        a, b = _z_quat(0), _z_quat(90)
        np.testing.assert_allclose(rotations.slerp(a, b, 0.0), a, atol=1e-12)
        np.testing.assert_allclose(rotations.slerp(a, b, 1.0), b, atol=1e-12)

    def test_midpoint(self):
        mid = rotations.slerp(_z_quat(0), _z_quat(90), 0.5)
        np.testing.assert_allclose(mid, _z_quat(45), atol=1e-12)

    def test_takes_short_way_around(self):
        mid = rotations.slerp(_z_quat(0), -_z_quat(90), 0.5)
        assert _same_rotation(mid, _z_quat(45))

    def test_nearly_equal_inputs_stay_finite(self):
        mid = rotations.slerp(_z_quat(10), _z_quat(10.0001), 0.5)
        assert np.all(np.isfinite(mid))


class TestSquad:
    def test_tangent_of_constant_sequence(self):
        q = _z_quat(40)
        np.testing.assert_allclose(rotations.squad_tangent(q, q, q), q, atol=1e-12)

    def test_endpoints(self):
        a, b = _z_quat(0), _z_quat(80)
        tg_a = rotations.squad_tangent(a, a, b)
        tg_b = rotations.squad_tangent(a, b, b)
        np.testing.assert_allclose(rotations.squad(a, tg_a, tg_b, b, 0.0), a, atol=1e-12)
        np.testing.assert_allclose(rotations.squad(a, tg_a, tg_b, b, 1.0), b, atol=1e-12)

    def test_stays_in_rotation_plane(self):
        a, b = _z_quat(0), _z_quat(80)
        tg_a = rotations.squad_tangent(a, a, b)
        tg_b = rotations.squad_tangent(a, b, b)
        q = rotations.normalize(rotations.squad(a, tg_a, tg_b, b, 0.3))
        assert abs(q[0]) < 1e-9 and abs(q[1]) < 1e-9
        pan, _, _ = rotations.to_euler_deg(q)
        assert 0.0 < pan < 80.0


def test_from_euler_pan():
    np.testing.assert_allclose(rotations.from_euler_deg(90, 0, 0), _z_quat(90), atol=1e-12)


def test_euler_roundtrip():
    q = rotations.from_euler_deg(35.0, -12.0, 4.0)
    pan, tilt, roll = rotations.to_euler_deg(q)
    assert pan == pytest.approx(35.0)
    assert tilt == pytest.approx(-12.0)
    assert roll == pytest.approx(4.0)


def test_matrix_rotates_vector():
    np.testing.assert_allclose(rotations.as_matrix(_z_quat(90)) @ [1, 0, 0], [0, 1, 0], atol=1e-12)
