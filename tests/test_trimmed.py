from math import pi

import numpy as np
import pytest

from surfmesh.errors import ParameterDomainError, SurfaceConstructionError
from surfmesh.function_surface import FunctionSurface
from surfmesh.nurbs import NurbsSurface
from surfmesh.trimmed import TrimmedSurface


class TestTrimmedSurface:
    """parameter sub-rectangles of a base surface"""

    plane = NurbsSurface.plane(2.0, 2.0)

    def test_remaps_parameters(self):
        t = self.plane.trim((0.5, 1.0), (0.0, 0.5))
        assert isinstance(t, TrimmedSurface)
        assert t.domain == ((0.0, 1.0), (0.0, 1.0))
        np.testing.assert_allclose(t.evaluate(0, 0), (0.0, -1.0, 0.0), atol=1e-12)
        np.testing.assert_allclose(t.evaluate(1, 1), (1.0, 0.0, 0.0), atol=1e-12)

    def test_derivatives_are_scaled(self):
        t = self.plane.trim((0.5, 1.0), (0.0, 0.25))
        ders = t.partial_derivatives(0.3, 0.3, 1)
        np.testing.assert_allclose(ders[(1, 0)], (1.0, 0.0, 0.0), atol=1e-12)
        np.testing.assert_allclose(ders[(0, 1)], (0.0, 0.5, 0.0), atol=1e-12)
        np.testing.assert_allclose(t.compute_normal(0.3, 0.3), (0.0, 0.0, 1.0), atol=1e-12)

    def test_curvature_is_invariant(self):
        sphere = NurbsSurface.sphere(1.0)
        t = sphere.trim((0.25, 0.5), (0.3, 0.7))
        curv = t.compute_curvatures(0.4, 0.6)
        assert curv.gaussian == pytest.approx(1.0, abs=1e-6)

    def test_curvature_of_a_tiny_trim(self):
        t = NurbsSurface.sphere(1.0).trim((0.25, 0.2505), (0.4, 0.4005))
        curv = t.compute_curvatures(0.0, 0.0)
        assert not curv.degenerate
        assert curv.gaussian == pytest.approx(1.0, rel=1e-4)
        assert abs(curv.mean) == pytest.approx(1.0, rel=1e-4)
        base = t.base.compute_curvatures(0.25, 0.4)
        np.testing.assert_allclose(curv.normal, base.normal, atol=1e-9)

    def test_trimming_composes(self):
        t = self.plane.trim((0.5, 1.0)).trim((0.0, 0.5))
        assert t.base is self.plane
        assert t.u_range == (0.5, 0.75)
        assert t.v_range == (0.0, 1.0)

    def test_no_ranges_returns_self(self):
        t = self.plane.trim((0.5, 1.0))
        assert t.trim() is t

    def test_invalid_ranges(self):
        with pytest.raises(SurfaceConstructionError):
            self.plane.trim((0.5, 0.5))
        with pytest.raises(ParameterDomainError):
            self.plane.trim((0.5, 1.5))
        with pytest.raises(SurfaceConstructionError):
            self.plane.trim(0.5)

    def test_out_of_domain(self):
        t = self.plane.trim((0.5, 1.0))
        with pytest.raises(ParameterDomainError):
            t.evaluate(1.2, 0.5)

    def test_function_base(self):
        s = FunctionSurface.cylinder(1.0, 2.0)
        t = s.trim((0.0, pi / 2))
        assert t.u_range == (0.0, pi / 2)
        np.testing.assert_allclose(t.evaluate(1.0, 0.5), (0.0, 0.0, 1.0), atol=1e-12)
        box = t.bounding_box()
        assert box.min[0] == pytest.approx(0.0, abs=1e-12)
        assert box.max[2] == pytest.approx(1.0)

    def test_nurbs_base_box(self):
        t = self.plane.trim((0.5, 1.0))
        assert t.bounding_box() is self.plane.bounding_box()

    def test_tessellates(self):
        t = NurbsSurface.sphere().trim((0.0, 0.5), (0.25, 0.75))
        mesh = t.tessellate(6, 4)
        assert mesh.vertex_count == 35
        for p in mesh.vertices():
            assert abs(np.linalg.norm(p) - 1.0) < 1e-5

    def test_to_dict(self):
        data = self.plane.trim((0.5, 1.0)).to_dict()
        assert data['type'] == 'trimmed_surface'
        assert data['u_range'] == [0.5, 1.0]
        assert data['base']['type'] == 'nurbs_surface'

    def test_clone(self):
        t = self.plane.trim((0.5, 1.0))
        c = t.clone()
        assert c.base is not t.base
        np.testing.assert_allclose(c.evaluate(0.2, 0.7), t.evaluate(0.2, 0.7))
