import numpy as np
import pytest

from surfmesh.errors import SurfaceError
from surfmesh.xform import (
    apply_matrix,
    as_matrix,
    compose,
    identity,
    rotation,
    scaling,
    translation,
)


class TestXform:
    """4x4 homogeneous transformation matrices"""

    def test_as_matrix(self):
        flat = list(range(16))
        m = as_matrix(flat)
        assert m.shape == (4, 4)
        assert m[1, 0] == 4
        np.testing.assert_array_equal(as_matrix(identity()), np.eye(4))
        with pytest.raises(ValueError):
            as_matrix([1, 2, 3])

    def test_rotation(self):
        r = rotation((0, 0, 1), 90.0)
        np.testing.assert_allclose(apply_matrix(r, [1.0, 0.0, 0.0]), (0, 1, 0), atol=1e-12)
        ri = rotation((0, 0, 1), 90.0, inverse=True)
        np.testing.assert_allclose(r @ ri, np.eye(4), atol=1e-12)
        with pytest.raises(ValueError):
            rotation((0, 0, 0), 10.0)

    def test_translation(self):
        t = translation((1, 2, 3))
        np.testing.assert_allclose(apply_matrix(t, [0, 0, 0]), (1, 2, 3))
        np.testing.assert_allclose(t @ translation((1, 2, 3), inverse=True), np.eye(4))

    def test_scaling(self):
        np.testing.assert_allclose(apply_matrix(scaling(2), [1, 1, 1]), (2, 2, 2))
        np.testing.assert_allclose(apply_matrix(scaling(1, 2, 3), [1, 1, 1]), (1, 2, 3))
        np.testing.assert_allclose(apply_matrix(scaling([2, 4, 8], inverse=True), [1, 1, 1]),
                                   (0.5, 0.25, 0.125))
        with pytest.raises(ValueError):
            scaling(0)

    def test_compose_order(self):
        m = compose(translation((1, 0, 0)), scaling(2))
        # scale first, then translate
        np.testing.assert_allclose(apply_matrix(m, [1, 1, 1]), (3, 2, 2))

    def test_apply_to_grid(self):
        grid = np.zeros((3, 4, 3))
        out = apply_matrix(translation((0, 0, 5)), grid)
        assert out.shape == (3, 4, 3)
        assert np.all(out[..., 2] == 5)

    def test_projective(self):
        m = np.eye(4)
        m[3, 3] = 2.0
        np.testing.assert_allclose(apply_matrix(m, [2, 4, 6]), (1, 2, 3))
        m = np.eye(4)
        m[3] = (1.0, 0.0, 0.0, 0.0)
        with pytest.raises(SurfaceError):
            apply_matrix(m, [0.0, 1.0, 0.0])
