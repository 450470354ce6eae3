import random

import numpy as np
import pytest

from surfmesh.basis import basis_function_derivatives, basis_functions
from surfmesh.knots import KnotVector


KNOTS = KnotVector([0, 0, 0, 1, 2, 3, 4, 4, 5, 5, 5], 2)


class TestBasisFunctions:
    """Cox-de Boor basis values"""

    def test_book_example(self):
        # The NURBS Book, example 2.3: N_{2,2}, N_{3,2}, N_{4,2} at u = 5/2
        span = KNOTS.find_span(2.5)
        N = basis_functions(2.5, span, 2, KNOTS.knots)
        np.testing.assert_allclose(N, [1 / 8, 6 / 8, 1 / 8])

    @pytest.mark.parametrize('degree', [1, 2, 3, 4])
    def test_partition_of_unity(self, degree):
        kv = KnotVector.uniform(8, degree)
        rng = random.Random(degree)
        for _ in range(50):
            u = rng.random()
            N = basis_functions(u, kv.find_span(u), degree, kv.knots)
            assert abs(N.sum() - 1.0) < 1e-9
            assert np.all(N >= -1e-12)

    def test_end_of_domain(self):
        span = KNOTS.find_span(5.0)
        N = basis_functions(5.0, span, 2, KNOTS.knots)
        np.testing.assert_allclose(N, [0.0, 0.0, 1.0])


class TestBasisDerivatives:
    """derivatives of the basis functions"""

    def test_row_zero_matches_values(self):
        for u in (0.0, 0.3, 1.0, 2.5, 3.99, 4.5, 5.0):
            span = KNOTS.find_span(u)
            ders = basis_function_derivatives(u, span, 2, 2, KNOTS.knots)
            np.testing.assert_allclose(ders[0], basis_functions(u, span, 2, KNOTS.knots))

    def test_derivative_rows_sum_to_zero(self):
        kv = KnotVector.uniform(7, 3)
        for i in range(21):
            u = i / 20.0
            ders = basis_function_derivatives(u, kv.find_span(u), 3, 3, kv.knots)
            for k in (1, 2, 3):
                assert abs(ders[k].sum()) < 1e-8

    def test_book_example_derivatives(self):
        # first derivatives at u = 5/2 are (-1/2, 0, 1/2), second (1, -2, 1)
        span = KNOTS.find_span(2.5)
        ders = basis_function_derivatives(2.5, span, 2, 2, KNOTS.knots)
        np.testing.assert_allclose(ders[1], [-0.5, 0.0, 0.5], atol=1e-12)
        np.testing.assert_allclose(ders[2], [1.0, -2.0, 1.0], atol=1e-12)

    def test_orders_above_degree_are_zero(self):
        kv = KnotVector.uniform(4, 2)
        ders = basis_function_derivatives(0.4, kv.find_span(0.4), 2, 4, kv.knots)
        assert ders.shape == (5, 3)
        assert np.all(ders[3:] == 0.0)

    def test_matches_finite_differences(self):
        kv = KnotVector.uniform(6, 3)
        u, h = 0.41, 1e-6
        span = kv.find_span(u)
        ders = basis_function_derivatives(u, span, 3, 1, kv.knots)
        fd = (basis_functions(u + h, span, 3, kv.knots)
              - basis_functions(u - h, span, 3, kv.knots)) / (2 * h)
        np.testing.assert_allclose(ders[1], fd, atol=1e-5)
