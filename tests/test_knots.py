import pytest

from surfmesh.errors import ParameterDomainError, SurfaceConstructionError
from surfmesh.knots import KnotVector, as_knot_vector


class TestKnotVector:
    """construction and validation of knot vectors"""

    def test_uniform_is_clamped(self):
        kv = KnotVector.uniform(5, 3)
        assert kv.to_list() == [0.0, 0.0, 0.0, 0.0, 0.5, 1.0, 1.0, 1.0, 1.0]
        assert kv.is_clamped
        assert kv.domain == (0.0, 1.0)
        assert len(kv) == 5 + 3 + 1

    def test_uniform_without_interior_knots(self):
        kv = KnotVector.uniform(2, 1)
        assert kv.to_list() == [0.0, 0.0, 1.0, 1.0]

    def test_length_mismatch(self):
        with pytest.raises(SurfaceConstructionError):
            KnotVector([0, 0, 1, 1], 1, num_points=3)

    def test_decreasing_knots(self):
        with pytest.raises(SurfaceConstructionError):
            KnotVector([0, 0, 0.7, 0.3, 1, 1], 1)

    def test_not_enough_points(self):
        with pytest.raises(SurfaceConstructionError):
            KnotVector.uniform(2, 3)

    def test_empty_domain(self):
        with pytest.raises(SurfaceConstructionError):
            KnotVector([0, 0, 0, 0], 1)

    def test_as_knot_vector_generates_defaults(self):
        kv = as_knot_vector(None, 4, 2)
        assert kv == KnotVector.uniform(4, 2)

    def test_as_knot_vector_rejects_mismatched_vector(self):
        with pytest.raises(SurfaceConstructionError):
            as_knot_vector(KnotVector.uniform(4, 2), 5, 2)

    def test_equality_and_hash(self):
        a = KnotVector([0, 0, 0.5, 1, 1], 1)
        b = KnotVector((0.0, 0.0, 0.5, 1.0, 1.0), 1)
        assert a == b
        assert hash(a) == hash(b)
        assert {a: 1}[b] == 1


class TestFindSpan:
    """binary search for the knot span"""

    kv = KnotVector([0, 0, 0, 1, 2, 3, 4, 4, 5, 5, 5], 2)

    def test_interior_values(self):
        # knot vector from The NURBS Book, example 2.3
        assert self.kv.find_span(2.5) == 4
        assert self.kv.find_span(0.0) == 2
        assert self.kv.find_span(1.0) == 3
        assert self.kv.find_span(4.5) == 7

    def test_end_of_domain_maps_to_last_span(self):
        assert self.kv.find_span(5.0) == self.kv.num_points - 1

    def test_span_brackets_value(self):
        for i in range(51):
            u = i / 10.0
            span = self.kv.find_span(u)
            assert self.kv[span] <= u
            if u < 5.0:
                assert u < self.kv[span + 1]

    def test_out_of_domain(self):
        with pytest.raises(ParameterDomainError):
            self.kv.find_span(-0.1)
        with pytest.raises(ParameterDomainError):
            self.kv.find_span(5.1)


class TestKnotEditing:
    """multiplicity, insertion and parameter mapping"""

    def test_multiplicity(self):
        kv = KnotVector([0, 0, 0, 1, 2, 3, 4, 4, 5, 5, 5], 2)
        assert kv.multiplicity(4.0) == 2
        assert kv.multiplicity(0.0) == 3
        assert kv.multiplicity(2.5) == 0

    def test_inserted(self):
        kv = KnotVector.uniform(4, 2)
        new = kv.inserted(0.25, 2)
        assert new.num_points == 6
        assert new.multiplicity(0.25) == 2
        assert kv.num_points == 4  # original untouched

    def test_parameter_mapping(self):
        kv = KnotVector([2, 2, 3, 4, 4], 1)
        assert kv.to_parameter(0.0) == 2.0
        assert kv.to_parameter(0.5) == 3.0
        assert kv.from_parameter(4.0) == 1.0
        assert kv.scaled().to_list() == [0.0, 0.0, 0.5, 1.0, 1.0]
