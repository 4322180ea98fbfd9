"""
Tanh-Sinh - double exponential quadrature over (-1, 1)

An adaptive tanh-sinh integrator with a lazily extended, memoized
abscissa/weight table. Samples close to the endpoints are stored as
complements so integrable endpoint singularities keep full precision.

Usage:
    python -m tanhsinh --help
    python -m tanhsinh --integrand chebyshev_weight
    python -m tanhsinh --suite --sweep --compare-tables --outdir outputs

Main components:
    - numeric: Numeric type profiles (numpy dtypes, mpmath)
    - rows: Abscissa, weight and complement formulas
    - table: Refinement level cache
    - integrate: Adaptive integration driver
    - integrands / experiments: Reference integrands and diagnostics
    - plot / report: Visualization and report generation
"""

__version__ = "0.1.0"

from .numeric import (
    RealType,
    NumpyReal,
    MPMathReal,
    get_real_type,
    uses_precomputed_table,
)

from .rows import (
    abscissa_at_t,
    weight_at_t,
    abscissa_complement_at_t,
    t_from_abscissa_complement,
)

from .table import AbscissaTable

from .integrate import (
    TanhSinh,
    TanhSinhParameters,
    IntegrationResult,
    LevelEstimate,
    EvaluationError,
    MIN_REFINEMENTS,
    tanh_sinh,
)

__all__ = [
    "RealType",
    "NumpyReal",
    "MPMathReal",
    "get_real_type",
    "uses_precomputed_table",
    "abscissa_at_t",
    "weight_at_t",
    "abscissa_complement_at_t",
    "t_from_abscissa_complement",
    "AbscissaTable",
    "TanhSinh",
    "TanhSinhParameters",
    "IntegrationResult",
    "LevelEstimate",
    "EvaluationError",
    "MIN_REFINEMENTS",
    "tanh_sinh",
]
