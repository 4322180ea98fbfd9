"""
Unit tests for the tanhsinh package.

Tests cover:
- Parameter validation and numeric type resolution
- Row formula identities
- Table layout, lazy extension and memoization
- Integration accuracy, endpoint clipping and termination rules
- Evaluation failure on non-finite estimates
"""

import math
from concurrent.futures import ThreadPoolExecutor

import mpmath
import numpy as np
import pytest

from tanhsinh.numeric import (
    RealType,
    NumpyReal,
    MPMathReal,
    get_real_type,
    uses_precomputed_table,
)
from tanhsinh.rows import (
    abscissa_at_t,
    weight_at_t,
    abscissa_complement_at_t,
    t_from_abscissa_complement,
)
from tanhsinh.table import AbscissaTable
from tanhsinh.integrate import (
    TanhSinh,
    TanhSinhParameters,
    EvaluationError,
    MIN_REFINEMENTS,
    tanh_sinh,
)


F64 = NumpyReal(np.float64)


class CountingIntegrand:
    """Records every (x, xc) pair it is called with."""

    def __init__(self, func):
        self.func = func
        self.calls = []

    def __call__(self, x, xc):
        self.calls.append((float(x), float(xc)))
        return self.func(x, xc)


class TestParameters:
    """Tests for TanhSinhParameters validation."""

    def test_default_parameters(self):
        """Test default parameter creation."""
        params = TanhSinhParameters()
        assert params.tolerance is None
        assert params.max_refinements == 15
        assert params.initial_commit == 4
        assert params.real_type.name == "float64"

    def test_invalid_max_refinements(self):
        with pytest.raises(ValueError, match="max_refinements must be >= 0"):
            TanhSinhParameters(max_refinements=-1)

    def test_invalid_initial_commit(self):
        with pytest.raises(ValueError, match="initial_commit must be >= 0"):
            TanhSinhParameters(initial_commit=-2)

    def test_invalid_tolerance(self):
        with pytest.raises(ValueError, match="tolerance must be > 0"):
            TanhSinhParameters(tolerance=0.0)

    def test_unknown_real_type(self):
        with pytest.raises(ValueError, match="Unknown numeric type"):
            TanhSinhParameters(real_type="float128x")

    def test_default_tolerance_is_root_epsilon(self):
        integrator = TanhSinh()
        assert integrator.tolerance == pytest.approx(math.sqrt(np.finfo(np.float64).eps))


class TestNumericTypes:
    """Tests for numeric type profiles and strategy selection."""

    def test_float64_traits(self):
        rt = get_real_type("float64")
        assert rt.is_binary_radix
        assert rt.digits == 53
        assert rt.max_exponent == 1024
        assert rt.epsilon == np.finfo(np.float64).eps
        assert not uses_precomputed_table(rt)

    def test_float32_uses_precomputed_table(self):
        rt = get_real_type("float32")
        assert rt.digits == 24
        assert rt.max_exponent == 128
        assert uses_precomputed_table(rt)

    def test_float16_uses_precomputed_table(self):
        assert uses_precomputed_table(get_real_type(np.float16))

    def test_incomplete_profile_rejected(self):
        class CastOnly(RealType):
            def cast(self, value):
                return float(value)

        with pytest.raises(TypeError):
            CastOnly()

    def test_float16_positions_are_distinct(self):
        """Odd multiples of 2**-10 up to t_max stay distinct for float16."""
        rt = get_real_type("float16")
        h = 2.0 ** -10
        grid = rt.positions(h, 4, 2 * h)
        assert grid.dtype == np.float64
        assert len(grid) == 2048
        assert len(np.unique(grid)) == len(grid)
        np.testing.assert_array_equal(grid, (2 * np.arange(2048) + 1) * h)

    def test_float16_rows_evaluated_in_float64(self):
        rt = get_real_type("float16")
        assert rt.working.name == "float64"
        row = rt.apply(abscissa_at_t, [0.5])
        assert row.dtype == np.float16
        assert row[0] == np.float16(abscissa_at_t(F64.cast(0.5), F64))

    def test_mpmath_is_generic(self):
        rt = get_real_type("mpmath:40")
        assert isinstance(rt, MPMathReal)
        assert rt.max_exponent is None
        assert rt.digits > 100
        assert not uses_precomputed_table(rt)

    def test_builtin_float_maps_to_float64(self):
        assert get_real_type(float).name == "float64"

    def test_mpmath_profile_leaves_global_precision(self):
        before = mpmath.mp.prec
        MPMathReal(80)
        assert mpmath.mp.prec == before

    def test_non_float_dtype_rejected(self):
        with pytest.raises(ValueError):
            get_real_type(np.int32)


class TestRowFormula:
    """Tests for abscissa, weight and complement formulas."""

    def test_centre(self):
        assert abscissa_at_t(F64.cast(0), F64) == 0.0
        np.testing.assert_allclose(weight_at_t(F64.cast(0), F64), np.pi / 2)
        np.testing.assert_allclose(abscissa_complement_at_t(F64.cast(0), F64), 1.0)

    def test_complement_matches_abscissa(self):
        t = np.array([0.1, 0.5, 1.0, 1.5])
        np.testing.assert_allclose(abscissa_complement_at_t(t, F64),
                                   1.0 - abscissa_at_t(t, F64), rtol=1e-12)

    def test_weight_is_derivative(self):
        """Weight equals dx/dt (central difference check)."""
        t = np.array([0.25, 0.75, 1.25])
        dt = 1e-6
        numeric = (abscissa_at_t(t + dt, F64) - abscissa_at_t(t - dt, F64)) / (2 * dt)
        np.testing.assert_allclose(weight_at_t(t, F64), numeric, rtol=1e-8)

    def test_inverse_complement(self):
        for t in [0.3, 1.0, 2.0, 3.0]:
            xc = abscissa_complement_at_t(F64.cast(t), F64)
            np.testing.assert_allclose(t_from_abscissa_complement(xc, F64), t, rtol=1e-10)

    def test_crossover_complement_is_half(self):
        t_cross = t_from_abscissa_complement(0.5, F64)
        np.testing.assert_allclose(abscissa_complement_at_t(t_cross, F64), 0.5, rtol=1e-14)

    def test_mpmath_scalars(self):
        rt = MPMathReal(40)
        t = rt.cast("0.75")
        diff = abscissa_complement_at_t(t, rt) - (1 - abscissa_at_t(t, rt))
        assert abs(diff) < rt.cast("1e-38")


class TestTable:
    """Tests for the abscissa/weight table cache."""

    def test_generic_layout(self):
        table = AbscissaTable("float64", max_refinements=10)
        assert not table.precomputed
        assert float(table.t_max) == 7.0
        assert table.initial_row_length == 7
        assert len(table.row(0)) == 8
        assert table.first_complement_index(0) == 1
        for level in range(1, 6):
            assert len(table.row(level)) == 7 * 2 ** (level - 1)

    def test_rows_and_weights_have_equal_length(self):
        table = AbscissaTable("float64", max_refinements=8)
        for level in range(9):
            assert len(table.row(level)) == len(table.weight_row(level))
            assert 0 <= table.first_complement_index(level) <= len(table.row(level))

    def test_encoding_signs(self):
        table = AbscissaTable("float64", max_refinements=6)
        for level in range(7):
            row = table.row(level)
            first = table.first_complement_index(level)
            assert np.all(row[:first] >= 0)
            assert np.all(row[:first] < 1)
            assert np.all(row[first:] <= 0)
            assert np.all(table.weight_row(level) >= 0)

    def test_extension_matches_formula(self):
        table = AbscissaTable("float64", max_refinements=6)
        level = 3
        h = 2.0 ** -level
        row = table.row(level)
        first = table.first_complement_index(level)
        for j in range(len(row)):
            t = F64.cast((2 * j + 1) * h)
            expected = abscissa_at_t(t, F64) if j < first else -abscissa_complement_at_t(t, F64)
            np.testing.assert_allclose(row[j], expected, rtol=1e-14)

    def test_lazy_extension(self):
        table = AbscissaTable("float64", max_refinements=10, initial_commit=2)
        assert table.committed_refinements == 2
        table.row(6)
        assert table.committed_refinements == 6
        assert table.extend_refinements() == 7

    def test_initial_commit_clamped_to_max(self):
        table = AbscissaTable("float64", max_refinements=3, initial_commit=8)
        assert table.committed_refinements == 3
        assert table.max_refinements == 3

    def test_beyond_max_refinements(self):
        table = AbscissaTable("float64", max_refinements=5)
        with pytest.raises(IndexError):
            table.row(6)
        table.row(5)
        with pytest.raises(IndexError):
            table.extend_refinements()

    def test_rows_are_memoized(self):
        """Requesting a row twice returns the identical data."""
        table = AbscissaTable("float64", max_refinements=8, initial_commit=0)
        first = table.row(7)
        second = table.row(7)
        assert first is second
        np.testing.assert_array_equal(first, second)
        assert table.weight_row(7) is table.weight_row(7)

    def test_rows_are_read_only(self):
        table = AbscissaTable("float64", max_refinements=4)
        with pytest.raises(ValueError):
            table.row(2)[0] = 0.5

    @pytest.mark.parametrize("real_type", ["float64", "float32"])
    def test_first_complement_monotonic(self, real_type):
        """Non-decreasing from level 1 on; level 0 holds t = 0, level 1 does not."""
        table = AbscissaTable(real_type, max_refinements=12)
        indices = [table.first_complement_index(level) for level in range(13)]
        assert indices[0] == 1
        assert indices[1] == 0
        assert all(b >= a for a, b in zip(indices[1:], indices[2:]))

    def test_precomputed_layout(self):
        table = AbscissaTable("float32", max_refinements=5)
        assert table.precomputed
        assert float(table.t_max) == 4.0
        assert table.initial_row_length == 4
        assert table.committed_refinements == 7
        assert table.max_refinements == 7
        assert table.row(0).dtype == np.float32
        assert [table.first_complement_index(n) for n in range(8)] == [1, 0, 1, 1, 3, 5, 11, 22]

    def test_precomputed_extends_lazily(self):
        table = AbscissaTable("float32", max_refinements=10)
        assert table.committed_refinements == 7
        row = table.row(9)
        assert len(row) == 2 ** 10
        assert table.first_complement_index(9) >= table.first_complement_index(7)

    def test_precomputed_close_to_formula(self):
        """Literal float32 rows agree with the formula to single precision."""
        table = AbscissaTable("float32", max_refinements=8)
        literal = table.row(7)
        first = table.first_complement_index(7)
        h = 2.0 ** -7
        for j in range(0, len(literal), 17):
            t = F64.cast((2 * j + 1) * h)
            if j < first:
                expected = abscissa_at_t(t, F64)
            else:
                expected = -abscissa_complement_at_t(t, F64)
            np.testing.assert_allclose(float(literal[j]), expected, rtol=1e-4, atol=1e-37)
        computed = table.row(8)
        assert len(computed) == 2 * len(literal)
        assert np.all(computed[table.first_complement_index(8):] <= 0)

    def test_float16_extends_past_literal_block(self):
        table = AbscissaTable("float16", max_refinements=11)
        assert table.precomputed
        row = table.row(10)
        assert row.dtype == np.float16
        assert len(row) == 2 ** 11
        first = table.first_complement_index(10)
        assert first >= table.first_complement_index(7)
        assert np.all(row[:first] >= 0)
        assert np.all(row[first:] <= 0)

    def test_mpmath_table(self):
        table = AbscissaTable("mpmath:30", max_refinements=5)
        row = table.row(3)
        assert isinstance(row, tuple)
        assert len(row) == 7 * 4
        assert len(table.weight_row(3)) == len(row)


class TestIntegration:
    """Tests for the integration driver."""

    def test_constant(self):
        integrator = TanhSinh()
        result = integrator.integrate(lambda x, xc: 1.0)
        assert abs(result.value - 2.0) <= integrator.tolerance * 2.0
        assert result.error <= integrator.tolerance * result.l1_norm
        assert result.converged

    def test_odd_function(self):
        integrator = TanhSinh()
        for f in (lambda x, xc: x ** 3, lambda x, xc: np.sin(3 * x), lambda x, xc: x * np.exp(x * x)):
            result = integrator.integrate(f)
            assert abs(result.value) <= integrator.tolerance

    def test_quadratic(self):
        integrator = TanhSinh()
        result = integrator.integrate(lambda x, xc: x * x)
        assert abs(result.value - 2.0 / 3.0) <= integrator.tolerance * result.l1_norm
        np.testing.assert_allclose(result.value, 2.0 / 3.0, rtol=1e-12)

    def test_chebyshev_weight_singularity(self):
        """1/sqrt(1 - x^2) written through the endpoint distance integrates to pi."""
        integrator = TanhSinh()
        result = integrator.integrate(lambda x, xc: 1 / np.sqrt(xc * (2 - xc)),
                                      left_min_complement=1e-300,
                                      right_min_complement=1e-300)
        assert abs(result.value - np.pi) <= integrator.tolerance * result.l1_norm
        np.testing.assert_allclose(result.value, np.pi, rtol=1e-10)

    def test_log_singularity(self):
        integrator = TanhSinh()
        result = integrator.integrate(lambda x, xc: np.log(xc) if x < 0 else np.log1p(x),
                                      left_min_complement=1e-300)
        np.testing.assert_allclose(result.value, 2 * np.log(2) - 2, rtol=1e-10)

    def test_minimum_four_levels(self):
        """A zero integrand converges trivially but still runs four levels."""
        f = CountingIntegrand(lambda x, xc: 0.0)
        result = TanhSinh().integrate(f)
        assert result.value == 0.0
        assert result.levels == MIN_REFINEMENTS
        assert result.converged
        assert len(result.history) == MIN_REFINEMENTS + 1
        assert result.evaluations == len(f.calls)

    def test_minimum_levels_override_small_max(self):
        result = TanhSinh(max_refinements=1).integrate(lambda x, xc: x * x)
        assert result.levels == MIN_REFINEMENTS

    def test_stops_at_max_refinements(self):
        integrator = TanhSinh(tolerance=1e-30, max_refinements=6)
        result = integrator.integrate(lambda x, xc: np.sqrt(np.abs(x - 0.3)))
        assert result.levels == 6
        assert not result.converged
        assert np.isfinite(result.value)

    def test_history(self):
        result = TanhSinh().integrate(lambda x, xc: np.exp(x))
        assert [step.level for step in result.history] == list(range(result.levels + 1))
        assert result.history[0].error is None
        assert result.history[-1].estimate == result.value
        assert result.history[-1].error == result.error

    def test_complement_argument(self):
        f = CountingIntegrand(lambda x, xc: 1.0)
        TanhSinh().integrate(f)
        eps = np.finfo(np.float64).eps
        assert f.calls[0] == (0.0, 1.0)
        for x, xc in f.calls:
            assert xc > 0
            assert abs((1 - abs(x)) - xc) <= 2 * eps

    def test_left_min_complement_excludes_left_endpoint(self):
        f = CountingIntegrand(lambda x, xc: 1.0)
        TanhSinh().integrate(f, left_min_complement=0.5)
        left = [x for x, _ in f.calls if x < 0]
        right = [x for x, _ in f.calls if x > 0]
        assert left
        assert min(left) >= -0.5
        assert max(right) > 0.999

    def test_right_min_complement_excludes_right_endpoint(self):
        f = CountingIntegrand(lambda x, xc: 1.0)
        TanhSinh().integrate(f, right_min_complement=1e-3)
        xs = [x for x, _ in f.calls]
        assert max(xs) <= 1 - 1e-3
        assert min(xs) < -0.999

    def test_non_finite_raises(self):
        f = lambda x, xc: math.inf if x > 0.9 else 1.0
        with pytest.raises(EvaluationError, match="my_integrand") as excinfo:
            TanhSinh().integrate(f, label="my_integrand")
        assert excinfo.value.label == "my_integrand"
        assert not np.isfinite(excinfo.value.value)

    def test_nan_raises(self):
        with pytest.raises(EvaluationError):
            TanhSinh().integrate(lambda x, xc: math.nan)

    def test_reuse_is_deterministic(self):
        integrator = TanhSinh(initial_commit=0)
        first = integrator.integrate(lambda x, xc: 1 / (1 + 25 * x * x))
        second = integrator.integrate(lambda x, xc: 1 / (1 + 25 * x * x))
        assert first.value == second.value
        assert first.evaluations == second.evaluations
        np.testing.assert_allclose(first.value, 0.4 * np.arctan(5.0), rtol=1e-10)

    def test_concurrent_use(self):
        integrator = TanhSinh(initial_commit=0, max_refinements=10)
        f = lambda x, xc: np.cos(x)
        with ThreadPoolExecutor(max_workers=4) as pool:
            values = list(pool.map(lambda _: integrator.integrate(f).value, range(8)))
        assert len(set(values)) == 1
        np.testing.assert_allclose(values[0], 2 * np.sin(1.0), rtol=1e-12)

    def test_float32_fast_path(self):
        integrator = TanhSinh(real_type="float32")
        assert integrator.table.precomputed
        result = integrator.integrate(lambda x, xc: x * x)
        assert isinstance(result.value, np.float32)
        assert abs(float(result.value) - 2.0 / 3.0) < 1e-5

    def test_float32_matches_float64(self):
        f = lambda x, xc: np.exp(x)
        v32 = TanhSinh(real_type="float32").integrate(f).value
        v64 = TanhSinh(real_type="float64").integrate(f).value
        np.testing.assert_allclose(float(v32), float(v64), rtol=1e-5)

    def test_float16_integrate(self):
        integrator = TanhSinh(real_type="float16")
        assert integrator.table.precomputed
        result = integrator.integrate(lambda x, xc: x * x)
        assert isinstance(result.value, np.float16)
        assert abs(float(result.value) - 2.0 / 3.0) < 2e-2

    def test_mpmath_high_precision(self):
        integrator = TanhSinh(tolerance=1e-25, real_type="mpmath:30")
        rt = integrator.real_type
        result = integrator.integrate(lambda x, xc: x * x)
        assert result.converged
        assert abs(result.value - rt.cast(2) / 3) < rt.cast("1e-20")

    def test_mpmath_endpoint_singularity(self):
        integrator = TanhSinh(tolerance=1e-10, max_refinements=8, real_type="mpmath:30")
        ctx = integrator.real_type.ctx
        result = integrator.integrate(lambda x, xc: 1 / ctx.sqrt(xc * (2 - xc)))
        assert abs(result.value - ctx.pi) < ctx.mpf("1e-12")

    def test_tanh_sinh_convenience(self):
        result = tanh_sinh(lambda x, xc: np.cos(np.pi / 2 * x), tolerance=1e-10)
        np.testing.assert_allclose(result.value, 4 / np.pi, rtol=1e-10)
        assert float(result) == float(result.value)

    def test_tanh_sinh_initial_commit(self):
        result = tanh_sinh(lambda x, xc: x * x, initial_commit=0, max_refinements=6)
        np.testing.assert_allclose(result.value, 2.0 / 3.0, rtol=1e-12)
        with pytest.raises(ValueError):
            tanh_sinh(lambda x, xc: x * x, initial_commit=-1)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
