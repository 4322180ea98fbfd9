"""
Numeric Type Profiles

This module describes the scalar types the quadrature engine can run on.
Each profile exposes the traits used to pick a table-initialisation
strategy (radix, mantissa digits, exponent range, epsilon) together with
the elementary functions needed by the row formula.

Supported backends:
- numpy floating dtypes (float16, float32, float64, longdouble)
- mpmath arbitrary precision via a private ``MPContext``
"""

from __future__ import annotations

import bisect
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Sequence

import mpmath
import numpy as np
from numpy.typing import NDArray


class RealType(ABC):
    """Trait profile and elementary operations for one scalar type.

    Attributes:
        name: Human readable type name
        is_binary_radix: Whether the type stores a base-2 mantissa
        digits: Number of binary mantissa digits
        max_exponent: Largest binary exponent, or None when unbounded
        epsilon: Machine epsilon of the type
    """

    name: str
    is_binary_radix: bool
    digits: int
    max_exponent: Optional[int]
    epsilon: Any

    @abstractmethod
    def cast(self, value: Any) -> Any:
        raise NotImplementedError

    @property
    def zero(self) -> Any:
        return self.cast(0)

    @property
    def one(self) -> Any:
        return self.cast(1)

    @property
    @abstractmethod
    def pi(self) -> Any:
        raise NotImplementedError

    @property
    def half_pi(self) -> Any:
        return self.pi / 2

    @property
    def working(self) -> "RealType":
        """Profile the row formulas are evaluated in."""
        return self

    @abstractmethod
    def tanh(self, x):
        raise NotImplementedError

    @abstractmethod
    def sinh(self, x):
        raise NotImplementedError

    @abstractmethod
    def cosh(self, x):
        raise NotImplementedError

    @abstractmethod
    def exp(self, x):
        raise NotImplementedError

    @abstractmethod
    def log(self, x):
        raise NotImplementedError

    @abstractmethod
    def sqrt(self, x):
        raise NotImplementedError

    @abstractmethod
    def cos(self, x):
        raise NotImplementedError

    @abstractmethod
    def log1p(self, x):
        raise NotImplementedError

    @abstractmethod
    def isfinite(self, x) -> bool:
        raise NotImplementedError

    @abstractmethod
    def ldexp(self, x, exponent: int):
        raise NotImplementedError

    @abstractmethod
    def positions(self, start, stop, step):
        """Ascending grid ``start, start + step, ...`` strictly below ``stop``."""
        raise NotImplementedError

    @abstractmethod
    def apply(self, fn: Callable, grid):
        """Evaluate ``fn(grid, working)`` over a whole grid in this type."""
        raise NotImplementedError

    @abstractmethod
    def concat(self, first, second):
        raise NotImplementedError

    @abstractmethod
    def freeze(self, row):
        """Return an immutable view of a computed row."""
        raise NotImplementedError

    def count_below(self, grid: Sequence, threshold) -> int:
        """Number of leading grid points strictly below ``threshold``."""
        return bisect.bisect_left(grid, threshold)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class NumpyReal(RealType):
    """Profile for a numpy floating dtype.

    Rows are stored as read-only numpy arrays and the row formula is
    evaluated with ufuncs over the whole grid.
    """

    def __init__(self, dtype) -> None:
        self.dtype = np.dtype(dtype)
        if self.dtype.kind != "f":
            raise ValueError(f"dtype must be a floating type, got {self.dtype}")
        info = np.finfo(self.dtype)
        self.name = self.dtype.name
        self.is_binary_radix = True
        self.digits = int(info.nmant) + 1
        self.max_exponent = int(info.maxexp)
        self.epsilon = self.dtype.type(info.eps)
        self._type = self.dtype.type
        # Transform parameters and row formulas are evaluated at least in
        # float64; odd multiples of 2**-n past t = 2 are not representable
        # in float16.
        self._work = np.promote_types(self.dtype, np.float64)
        self._working = self if self._work == self.dtype else NumpyReal(self._work)
        # atan(1) keeps full precision for longdouble, unlike np.pi.
        self._pi = np.arctan(self._type(1)) * 4

    def cast(self, value: Any) -> Any:
        return self._type(value)

    @property
    def pi(self) -> Any:
        return self._pi

    @property
    def working(self) -> "NumpyReal":
        return self._working

    def tanh(self, x):
        return np.tanh(x)

    def sinh(self, x):
        return np.sinh(x)

    def cosh(self, x):
        return np.cosh(x)

    def exp(self, x):
        return np.exp(x)

    def log(self, x):
        return np.log(x)

    def sqrt(self, x):
        return np.sqrt(x)

    def cos(self, x):
        return np.cos(x)

    def log1p(self, x):
        return np.log1p(x)

    def isfinite(self, x) -> bool:
        return bool(np.isfinite(x))

    def ldexp(self, x, exponent: int):
        return np.ldexp(self._type(x), exponent)

    def positions(self, start, stop, step) -> NDArray:
        work = self._work.type
        return np.arange(work(start), work(stop), work(step), dtype=self._work)

    def apply(self, fn: Callable, grid) -> NDArray:
        # cosh/exp overflow far out in t; the resulting weights and
        # complements are exactly zero, which is what we want.
        with np.errstate(over="ignore", under="ignore"):
            return np.asarray(fn(np.asarray(grid, dtype=self._work), self._working),
                              dtype=self.dtype)

    def concat(self, first, second) -> NDArray:
        return np.concatenate([np.asarray(first, dtype=self.dtype),
                               np.asarray(second, dtype=self.dtype)])

    def freeze(self, row) -> NDArray:
        arr = np.array(row, dtype=self.dtype)
        arr.setflags(write=False)
        return arr


class MPMathReal(RealType):
    """Profile for mpmath multiprecision floats at a fixed decimal precision.

    Each profile owns its own ``mpmath.MPContext`` so the global
    ``mpmath.mp`` precision is never touched.
    """

    def __init__(self, dps: int = 50) -> None:
        if dps < 1:
            raise ValueError(f"dps must be >= 1, got {dps}")
        self.ctx = mpmath.MPContext()
        self.ctx.dps = dps
        self.dps = dps
        self.name = f"mpmath:{dps}"
        self.is_binary_radix = True
        self.digits = int(self.ctx.prec)
        self.max_exponent = None
        self.epsilon = self.ctx.eps
        self._pi = +self.ctx.pi

    def cast(self, value: Any) -> Any:
        return self.ctx.mpf(value)

    @property
    def pi(self) -> Any:
        return self._pi

    def tanh(self, x):
        return self.ctx.tanh(x)

    def sinh(self, x):
        return self.ctx.sinh(x)

    def cosh(self, x):
        return self.ctx.cosh(x)

    def exp(self, x):
        return self.ctx.exp(x)

    def log(self, x):
        return self.ctx.log(x)

    def sqrt(self, x):
        return self.ctx.sqrt(x)

    def cos(self, x):
        return self.ctx.cos(x)

    def log1p(self, x):
        return self.ctx.log1p(x)

    def isfinite(self, x) -> bool:
        return not (self.ctx.isinf(x) or self.ctx.isnan(x))

    def ldexp(self, x, exponent: int):
        return self.ctx.ldexp(self.ctx.mpf(x), exponent)

    def positions(self, start, stop, step) -> list:
        start, stop, step = self.cast(start), self.cast(stop), self.cast(step)
        grid = []
        pos = start
        while pos < stop:
            grid.append(pos)
            pos += step
        return grid

    def apply(self, fn: Callable, grid) -> list:
        return [fn(t, self) for t in grid]

    def concat(self, first, second) -> list:
        return list(first) + list(second)

    def freeze(self, row) -> tuple:
        return tuple(row)


_NAMED_DTYPES = {
    "float16": np.float16,
    "half": np.float16,
    "float32": np.float32,
    "single": np.float32,
    "float64": np.float64,
    "double": np.float64,
    "longdouble": np.longdouble,
}


def get_real_type(spec: Any = "float64") -> RealType:
    """Resolve a numeric type specification to a profile.

    Args:
        spec: A RealType, a numpy dtype or scalar type, the builtin ``float``,
              or one of ``"float16"``, ``"float32"``, ``"float64"``,
              ``"longdouble"``, ``"mpmath:<digits>"``

    Returns:
        The matching RealType

    Raises:
        ValueError: If the specification is not recognised
    """
    if isinstance(spec, RealType):
        return spec
    if spec is float:
        return NumpyReal(np.float64)
    if isinstance(spec, str):
        key = spec.strip().lower()
        if key in _NAMED_DTYPES:
            return NumpyReal(_NAMED_DTYPES[key])
        if key == "mpmath" or key.startswith("mpmath:"):
            _, _, digits = key.partition(":")
            try:
                return MPMathReal(int(digits) if digits else 50)
            except ValueError as exc:
                raise ValueError(f"Invalid mpmath precision in '{spec}'") from exc
        valid = ", ".join(list(_NAMED_DTYPES) + ["mpmath:<digits>"])
        raise ValueError(f"Unknown numeric type '{spec}'. Valid: {valid}")
    try:
        dtype = np.dtype(spec)
    except TypeError as exc:
        raise ValueError(f"Unknown numeric type {spec!r}") from exc
    return NumpyReal(dtype)


def uses_precomputed_table(real_type: RealType) -> bool:
    """Whether a type is narrow enough for the literal single-precision levels.

    Narrow binary types (fewer than 30 mantissa bits and an exponent range
    no wider than binary32) load precomputed levels instead of evaluating
    the row formula.
    """
    return (
        real_type.is_binary_radix
        and real_type.digits < 30
        and real_type.max_exponent is not None
        and real_type.max_exponent <= 128
    )
